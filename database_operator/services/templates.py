"""
Resource templates for DatabaseInstance children.

Pure functions from a DatabaseInstance to the manifests of its Secret,
Deployment, Service and backup CronJob. Nothing here talks to the cluster,
so the same output backs both reconciliation and the preview endpoint.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from database_operator.config.settings import settings
from database_operator.core.naming import (
    ChildRole,
    ObjectRef,
    child_name,
    child_ref,
    credentials_are_instance_scoped,
)
from database_operator.core.profiles import (
    UNSUPPORTED_BACKUP_COMMAND,
    is_supported,
    profile_for,
)
from database_operator.models.database_instance import DatabaseInstance, DatabaseInstanceSpec

DATA_VOLUME_NAME = "nfs-volume"
BACKUP_VOLUME_NAME = "backup-volume"
BACKUP_MOUNT_PATH = "/backup"


@dataclass
class ChildResourceSet:
    """Everything one reconciliation converges for an instance."""

    image: str
    credential: ObjectRef
    deployment: Dict[str, Any]
    service: Dict[str, Any]
    cronjob: Optional[Dict[str, Any]]


def unprefixed_image(spec: DatabaseInstanceSpec) -> str:
    """The image override if set, else ``<databaseType>:<version>``."""
    if spec.image:
        return spec.image
    return f"{spec.database_type}:{spec.version}"


def resolve_image(spec: DatabaseInstanceSpec, prefix: Optional[str] = None) -> str:
    """Fully qualified image for the database container."""
    if prefix is None:
        prefix = settings.image_registry_prefix
    return f"{prefix}{unprefixed_image(spec)}"


def labels_for(instance: DatabaseInstance) -> Dict[str, str]:
    return {"app": instance.name}


def _metadata(
    instance: DatabaseInstance,
    name: str,
    owned: bool = True,
) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {
        "name": name,
        "namespace": instance.namespace,
        "labels": labels_for(instance),
    }
    owner = instance.owner_reference() if owned else None
    if owner:
        metadata["ownerReferences"] = [owner]
    return metadata


def _resource_requests(spec: DatabaseInstanceSpec) -> Dict[str, str]:
    requests = spec.resources.requests
    return {
        key: value
        for key, value in (("memory", requests.memory), ("cpu", requests.cpu))
        if value
    }


def _secret_env(env_name: str, secret_name: str, key: str) -> Dict[str, Any]:
    return {
        "name": env_name,
        "valueFrom": {"secretKeyRef": {"name": secret_name, "key": key}},
    }


def build_secret(
    instance: DatabaseInstance,
    secret_name: str,
    data: Dict[str, str],
) -> Dict[str, Any]:
    """
    Credential Secret manifest.

    Args:
        instance: Owning DatabaseInstance
        secret_name: Name from the credential identity
        data: Key to base64-encoded value, as stored in Secret.data

    Returns:
        Secret manifest
    """
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": _metadata(
            instance, secret_name, owned=credentials_are_instance_scoped()
        ),
        "type": "Opaque",
        "data": dict(data),
    }


def build_deployment(instance: DatabaseInstance, image: str) -> Dict[str, Any]:
    """Deployment running the database container on the NFS-backed data volume."""
    spec = instance.spec
    profile = profile_for(spec.database_type)
    labels = labels_for(instance)

    container: Dict[str, Any] = {
        "name": instance.name,
        "image": image,
        "ports": [{"containerPort": profile.port, "name": profile.port_name}],
        "volumeMounts": [
            {
                "name": DATA_VOLUME_NAME,
                "mountPath": profile.mount_path,
                "subPath": spec.database_type,
            }
        ],
    }
    requests = _resource_requests(spec)
    if requests:
        container["resources"] = {"requests": requests}

    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": _metadata(instance, child_name(instance.name, ChildRole.WORKLOAD)),
        "spec": {
            "replicas": spec.replicas,
            "selector": {"matchLabels": dict(labels)},
            "template": {
                "metadata": {"labels": dict(labels)},
                "spec": {
                    "containers": [container],
                    "volumes": [
                        {
                            "name": DATA_VOLUME_NAME,
                            "nfs": {"server": settings.nfs_server, "path": settings.nfs_path},
                        }
                    ],
                },
            },
        },
    }


def build_service(instance: DatabaseInstance) -> Dict[str, Any]:
    """Service exposing the database port; its selector equals the pod labels."""
    profile = profile_for(instance.spec.database_type)
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": _metadata(instance, child_name(instance.name, ChildRole.ENDPOINT)),
        "spec": {
            "selector": labels_for(instance),
            "ports": [
                {
                    "name": profile.port_name,
                    "port": profile.port,
                    "targetPort": profile.port,
                }
            ],
        },
    }


def backup_job_config(
    instance: DatabaseInstance,
    secret_name: str,
) -> Tuple[List[str], List[Dict[str, Any]]]:
    """
    Command and environment of the backup container.

    Unknown database types get a diagnostic no-op command and no
    environment rather than an error.
    """
    spec = instance.spec
    if not is_supported(spec.database_type):
        return list(UNSUPPORTED_BACKUP_COMMAND), []

    profile = profile_for(spec.database_type)
    env = [
        _secret_env(profile.user_env, secret_name, profile.user_key),
        _secret_env(profile.password_env, secret_name, profile.password_key),
        {"name": "DB_HOST", "value": child_name(instance.name, ChildRole.ENDPOINT)},
        {"name": "DB_PORT", "value": str(profile.port)},
    ]
    if spec.backup_policy.retention:
        env.append({"name": "BACKUP_RETENTION", "value": spec.backup_policy.retention})
    return profile.backup_command, env


def build_cronjob(instance: DatabaseInstance, image: str, secret_name: str) -> Dict[str, Any]:
    """
    Backup CronJob writing dumps to the pre-provisioned backup PVC.

    Args:
        instance: Owning DatabaseInstance
        image: Resolved database image, used when no backup image is set
        secret_name: Name of the credential Secret referenced by the job

    Returns:
        CronJob manifest
    """
    policy = instance.spec.backup_policy
    labels = labels_for(instance)
    command, env = backup_job_config(instance, secret_name)

    container: Dict[str, Any] = {
        "name": "backup",
        "image": policy.backup_image or image,
        "command": command,
        "volumeMounts": [{"name": BACKUP_VOLUME_NAME, "mountPath": BACKUP_MOUNT_PATH}],
    }
    if env:
        container["env"] = env

    return {
        "apiVersion": "batch/v1",
        "kind": "CronJob",
        "metadata": _metadata(instance, child_name(instance.name, ChildRole.SCHEDULED_JOB)),
        "spec": {
            "schedule": policy.schedule,
            "jobTemplate": {
                "spec": {
                    "template": {
                        "metadata": {"labels": dict(labels)},
                        "spec": {
                            "containers": [container],
                            "restartPolicy": "OnFailure",
                            "volumes": [
                                {
                                    "name": BACKUP_VOLUME_NAME,
                                    "persistentVolumeClaim": {"claimName": settings.backup_pvc_name},
                                }
                            ],
                        },
                    }
                }
            },
        },
    }


def build_child_resources(
    instance: DatabaseInstance,
    image: Optional[str] = None,
) -> ChildResourceSet:
    """Template every child of an instance; the CronJob only when backups are enabled."""
    if image is None:
        image = resolve_image(instance.spec)
    credential = child_ref(
        instance.namespace, instance.name, ChildRole.CREDENTIAL, instance.spec.database_type
    )
    cronjob = None
    if instance.spec.backup_policy.enabled:
        cronjob = build_cronjob(instance, image, credential.name)
    return ChildResourceSet(
        image=image,
        credential=credential,
        deployment=build_deployment(instance, image),
        service=build_service(instance),
        cronjob=cronjob,
    )
