"""
Identities of the objects the operator reads and writes.

Child names are a pure function of the owning DatabaseInstance and the
child's role, so every reconciliation addresses the same objects.
"""

from dataclasses import dataclass
from enum import Enum

from database_operator.config.settings import settings

BACKUP_JOB_SUFFIX = "-backup"
SECRET_SUFFIX = "-secret"


class ResourceKind(str, Enum):
    """Kubernetes kinds managed by the operator."""

    SECRET = "Secret"
    DEPLOYMENT = "Deployment"
    SERVICE = "Service"
    CRONJOB = "CronJob"
    DATABASE_INSTANCE = "DatabaseInstance"


class ChildRole(str, Enum):
    """Roles of the child objects of a DatabaseInstance."""

    WORKLOAD = "workload"
    ENDPOINT = "endpoint"
    CREDENTIAL = "credential"
    SCHEDULED_JOB = "scheduled-job"


ROLE_KINDS = {
    ChildRole.WORKLOAD: ResourceKind.DEPLOYMENT,
    ChildRole.ENDPOINT: ResourceKind.SERVICE,
    ChildRole.CREDENTIAL: ResourceKind.SECRET,
    ChildRole.SCHEDULED_JOB: ResourceKind.CRONJOB,
}


@dataclass(frozen=True)
class ObjectRef:
    """Kind, namespace and name of one object in the store."""

    kind: ResourceKind
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.kind.value}/{self.namespace}/{self.name}"

    @classmethod
    def of(cls, obj: dict) -> "ObjectRef":
        """Build a reference from a manifest."""
        metadata = obj.get("metadata", {})
        return cls(
            kind=ResourceKind(obj["kind"]),
            namespace=metadata.get("namespace", "default"),
            name=metadata["name"],
        )


def credentials_are_instance_scoped(scope: str = "") -> bool:
    return (scope or settings.credential_scope) == "instance"


def child_name(instance_name: str, role: ChildRole, database_type: str = "", scope: str = "") -> str:
    """
    Name of a child object.

    Credentials are shared by every instance of the same database type in a
    namespace unless the credential scope is "instance".
    """
    if role is ChildRole.CREDENTIAL:
        if credentials_are_instance_scoped(scope):
            return f"{instance_name}{SECRET_SUFFIX}"
        return f"{database_type}{SECRET_SUFFIX}"
    if role is ChildRole.SCHEDULED_JOB:
        return f"{instance_name}{BACKUP_JOB_SUFFIX}"
    return instance_name


def child_ref(
    namespace: str,
    instance_name: str,
    role: ChildRole,
    database_type: str = "",
    scope: str = "",
) -> ObjectRef:
    """Identity of the child object playing ``role`` for an instance."""
    return ObjectRef(
        kind=ROLE_KINDS[role],
        namespace=namespace,
        name=child_name(instance_name, role, database_type, scope),
    )


def instance_ref(namespace: str, name: str) -> ObjectRef:
    return ObjectRef(kind=ResourceKind.DATABASE_INSTANCE, namespace=namespace, name=name)
