"""
Status reporting for DatabaseInstance objects.

The status sub-resource is overwritten wholesale on every report.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from database_operator.config.logging import get_logger
from database_operator.config.settings import settings
from database_operator.core.naming import ChildRole, child_ref
from database_operator.models.database_instance import (
    ConditionStatus,
    DatabaseInstance,
    DatabaseInstanceCondition,
    DatabaseInstanceStatus,
    InstancePhase,
    utc_now,
)
from database_operator.services.object_store import ObjectStore

logger = get_logger(__name__)

READY_CONDITION = "Ready"
READY_REASON = "Deployment completed successfully"
READY_MESSAGE = "Database instance deployed successfully"
RUNNING_MESSAGE = "Database instance is running"
PLACEHOLDER_READY_REPLICAS = 1


def _condition(
    status: ConditionStatus,
    reason: str,
    message: str,
    now: datetime,
) -> DatabaseInstanceCondition:
    return DatabaseInstanceCondition(
        type=READY_CONDITION,
        status=status,
        last_transition_time=now,
        reason=reason,
        message=message,
    )


def build_running_status(now: Optional[datetime] = None) -> DatabaseInstanceStatus:
    """Fixed-shape status written after every successful reconciliation."""
    now = now or utc_now()
    return DatabaseInstanceStatus(
        phase=InstancePhase.RUNNING,
        message=RUNNING_MESSAGE,
        ready_replicas=PLACEHOLDER_READY_REPLICAS,
        last_updated=now,
        conditions=[_condition(ConditionStatus.TRUE, READY_REASON, READY_MESSAGE, now)],
    )


def build_observed_status(
    instance: DatabaseInstance,
    workload: Dict[str, Any],
    now: Optional[datetime] = None,
) -> DatabaseInstanceStatus:
    """Status derived from the Deployment's ready replica count."""
    now = now or utc_now()
    ready = (workload.get("status") or {}).get("readyReplicas") or 0
    desired = instance.spec.replicas
    if ready >= desired:
        status = build_running_status(now)
        status.ready_replicas = ready
        return status
    return DatabaseInstanceStatus(
        phase=InstancePhase.PENDING,
        message=f"Waiting for replicas: {ready}/{desired} ready",
        ready_replicas=ready,
        last_updated=now,
        conditions=[
            _condition(
                ConditionStatus.FALSE,
                "ReplicasNotReady",
                f"{ready} of {desired} replicas are ready",
                now,
            )
        ],
    )


def build_failed_status(error: Exception, now: Optional[datetime] = None) -> DatabaseInstanceStatus:
    """Status recorded when reconciliation keeps failing."""
    now = now or utc_now()
    message = getattr(error, "message", None) or str(error)
    return DatabaseInstanceStatus(
        phase=InstancePhase.FAILED,
        message=message,
        ready_replicas=0,
        last_updated=now,
        conditions=[
            _condition(ConditionStatus.FALSE, type(error).__name__, message, now)
        ],
    )


class StatusReporter:
    """Writes ObservedStatus onto a DatabaseInstance."""

    def __init__(self, store: ObjectStore, observe_workload: Optional[bool] = None):
        self.store = store
        if observe_workload is None:
            observe_workload = settings.observe_workload_status
        self.observe_workload = observe_workload

    async def report_status(self, instance: DatabaseInstance) -> DatabaseInstanceStatus:
        """
        Record a successful reconciliation.

        Raises:
            StoreError, ConflictError: If the status cannot be persisted
        """
        if self.observe_workload:
            ref = child_ref(instance.namespace, instance.name, ChildRole.WORKLOAD)
            workload = await self.store.get(ref)
            status = build_observed_status(instance, workload)
        else:
            status = build_running_status()
        await self._write(instance, status)
        logger.info(
            "instance_status_updated",
            namespace=instance.namespace,
            name=instance.name,
            phase=status.phase.value if status.phase else None,
            ready_replicas=status.ready_replicas,
        )
        return status

    async def report_failure(self, instance: DatabaseInstance, error: Exception) -> DatabaseInstanceStatus:
        """Record that reconciliation of an instance failed."""
        return await self.report_failure_object(instance.to_object(), error)

    async def report_failure_object(self, obj: Dict[str, Any], error: Exception) -> DatabaseInstanceStatus:
        """
        Record a failure on the stored object as read.

        Works for objects whose spec no longer parses into a DatabaseInstance.
        """
        status = build_failed_status(error)
        await self._write_object(obj, status)
        metadata = obj.get("metadata") or {}
        logger.warning(
            "instance_status_failed",
            namespace=metadata.get("namespace", "default"),
            name=metadata.get("name"),
            error=status.message,
        )
        return status

    async def _write(self, instance: DatabaseInstance, status: DatabaseInstanceStatus) -> None:
        await self._write_object(instance.to_object(), status)

    async def _write_object(self, obj: Dict[str, Any], status: DatabaseInstanceStatus) -> None:
        updated = dict(obj)
        updated["status"] = status.model_dump(mode="json", by_alias=True, exclude_none=True)
        await self.store.update_status(updated)
