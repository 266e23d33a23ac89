"""
Operator configuration using Pydantic Settings.
Loads configuration from environment variables with validation.
"""
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Main operator settings with environment variable loading."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Database Instance Operator", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: str = Field(default="development", description="Environment (development/staging/production)")
    log_level: str = Field(default="INFO", description="Logging level")
    log_json: bool = Field(default=False, description="Render logs as JSON outside production")

    # Probe server
    host: str = Field(default="0.0.0.0", description="Probe server host")
    port: int = Field(default=8081, ge=1, le=65535, description="Probe server port")

    # Kubernetes
    kubeconfig_path: Optional[str] = Field(
        default=None, description="Path to kubeconfig file (None for in-cluster)"
    )
    k8s_in_cluster: bool = Field(default=False, description="Running inside Kubernetes cluster")
    watch_namespace: str = Field(
        default="", description="Namespace to reconcile (empty for all namespaces)"
    )

    # DatabaseInstance custom resource
    crd_group: str = Field(default="apps.zwjk.com", description="DatabaseInstance API group")
    crd_version: str = Field(default="v1", description="DatabaseInstance API version")
    crd_plural: str = Field(default="databaseinstances", description="DatabaseInstance plural name")

    # Child resources
    image_registry_prefix: str = Field(
        default="registry.zwjk.com/middleware/",
        description="Registry path prepended to every database image",
    )
    nfs_server: str = Field(default="192.168.4.43", description="NFS server backing database data")
    nfs_path: str = Field(default="/home/nfs", description="Exported NFS path")
    backup_pvc_name: str = Field(
        default="backup-pvc", description="Pre-provisioned PVC mounted at /backup by backup jobs"
    )
    credential_scope: str = Field(
        default="kind",
        description="Credential secret scope: 'kind' (one per database type) or 'instance'",
    )
    observe_workload_status: bool = Field(
        default=False,
        description="Derive readyReplicas and phase from the Deployment instead of constants",
    )

    # Reconciliation worker
    reconcile_interval: int = Field(default=30, ge=5, le=3600, description="Resync interval in seconds")
    max_concurrent_reconciles: int = Field(
        default=4, ge=1, le=64, description="Instances reconciled in parallel"
    )
    reconcile_max_attempts: int = Field(
        default=5, ge=1, le=20, description="Attempts per instance before giving up for this cycle"
    )
    reconcile_backoff_initial: float = Field(
        default=1.0, gt=0, description="Initial retry backoff in seconds"
    )
    reconcile_backoff_max: float = Field(
        default=60.0, gt=0, description="Maximum retry backoff in seconds"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment."""
        valid_envs = ["development", "staging", "production", "testing"]
        if v.lower() not in valid_envs:
            raise ValueError(f"Environment must be one of {valid_envs}")
        return v.lower()

    @field_validator("credential_scope")
    @classmethod
    def validate_credential_scope(cls, v: str) -> str:
        """Validate credential scope."""
        valid_scopes = ["kind", "instance"]
        if v.lower() not in valid_scopes:
            raise ValueError(f"Credential scope must be one of {valid_scopes}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


# Global settings instance
settings = Settings()
