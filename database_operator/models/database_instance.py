"""
Pydantic models for the DatabaseInstance custom resource.

Field aliases are the CRD's JSON names and must not change: existing
objects in the cluster are read and written through them.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

API_KIND = "DatabaseInstance"


def utc_now() -> datetime:
    """Current time truncated to seconds, as Kubernetes stores it."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Render a datetime in the RFC 3339 form used by metav1.Time."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class DatabaseKind(str, Enum):
    """Supported database types."""

    MYSQL = "mysql"
    POSTGRES = "postgres"
    OCEANBASE_CE = "oceanbase-ce"


class InstancePhase(str, Enum):
    """Observed lifecycle phase of a DatabaseInstance."""

    PENDING = "Pending"
    RUNNING = "Running"
    FAILED = "Failed"


class ConditionStatus(str, Enum):
    """Condition status values."""

    TRUE = "True"
    FALSE = "False"


class CamelModel(BaseModel):
    """Base model reading and writing the CRD's camelCase names."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ResourceRequests(CamelModel):
    """Memory and CPU requests for the database container."""

    memory: str = Field(default="", description="Memory request, e.g. '1Gi'")
    cpu: str = Field(default="", description="CPU request, e.g. '500m'")


class Resources(CamelModel):
    """Resource requests for the database container."""

    requests: ResourceRequests = Field(default_factory=ResourceRequests)


class BackupPolicy(CamelModel):
    """Scheduled backup configuration."""

    enabled: bool = Field(default=False, description="Whether the backup CronJob should exist")
    schedule: str = Field(default="", description="Cron schedule of the backup job")
    retention: str = Field(default="", description="Backup retention policy")
    backup_image: str = Field(default="", alias="backupImage", description="Image running the backup")


class DatabaseInstanceSpec(CamelModel):
    """Desired state of a DatabaseInstance."""

    database_type: str = Field(
        default="",
        alias="databaseType",
        description="Database type (mysql, postgres, oceanbase-ce)",
    )
    version: str = Field(default="", description="Database version / image tag")
    storage: str = Field(default="", description="Requested storage size")
    replicas: int = Field(default=1, ge=0, description="Number of database replicas")
    resources: Resources = Field(default_factory=Resources)
    backup_policy: BackupPolicy = Field(default_factory=BackupPolicy, alias="backupPolicy")
    image: str = Field(default="", description="Image override including tag")


class DatabaseInstanceCondition(CamelModel):
    """State of one aspect of a DatabaseInstance."""

    type: str
    status: ConditionStatus
    last_transition_time: datetime = Field(alias="lastTransitionTime")
    reason: str
    message: str

    @field_serializer("last_transition_time")
    def _serialize_transition_time(self, value: datetime) -> Optional[str]:
        return format_timestamp(value)


class DatabaseInstanceStatus(CamelModel):
    """Observed state of a DatabaseInstance."""

    phase: Optional[InstancePhase] = None
    message: str = ""
    ready_replicas: int = Field(default=0, alias="readyReplicas")
    last_updated: Optional[datetime] = Field(default=None, alias="lastUpdated")
    conditions: List[DatabaseInstanceCondition] = Field(default_factory=list)

    @field_serializer("last_updated")
    def _serialize_last_updated(self, value: Optional[datetime]) -> Optional[str]:
        return format_timestamp(value)


class ObjectMeta(CamelModel):
    """The subset of object metadata the operator reads."""

    name: str
    namespace: str = "default"
    uid: Optional[str] = None
    resource_version: Optional[str] = Field(default=None, alias="resourceVersion")
    generation: Optional[int] = None
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)


class DatabaseInstance(CamelModel):
    """A DatabaseInstance object as stored in the cluster."""

    api_version: str = Field(default="apps.zwjk.com/v1", alias="apiVersion")
    kind: str = API_KIND
    metadata: ObjectMeta
    spec: DatabaseInstanceSpec = Field(default_factory=DatabaseInstanceSpec)
    status: DatabaseInstanceStatus = Field(default_factory=DatabaseInstanceStatus)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @classmethod
    def from_object(cls, obj: Dict[str, Any]) -> "DatabaseInstance":
        """Parse a raw object returned by the API server."""
        return cls.model_validate(obj)

    def to_object(self) -> Dict[str, Any]:
        """Serialize back to the JSON shape the API server expects."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def owner_reference(self) -> Optional[Dict[str, Any]]:
        """Controller ownerReference for child objects, if the uid is known."""
        if not self.metadata.uid:
            return None
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "name": self.metadata.name,
            "uid": self.metadata.uid,
            "controller": True,
            "blockOwnerDeletion": True,
        }
