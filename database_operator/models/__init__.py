from database_operator.models.database_instance import (
    BackupPolicy,
    ConditionStatus,
    DatabaseInstance,
    DatabaseInstanceCondition,
    DatabaseInstanceSpec,
    DatabaseInstanceStatus,
    DatabaseKind,
    InstancePhase,
)

__all__ = [
    "BackupPolicy",
    "ConditionStatus",
    "DatabaseInstance",
    "DatabaseInstanceCondition",
    "DatabaseInstanceSpec",
    "DatabaseInstanceStatus",
    "DatabaseKind",
    "InstancePhase",
]
