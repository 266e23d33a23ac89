"""
DatabaseInstance reconciler.

One call to ``reconcile`` converges every child of one instance, in order:

1. Load the DatabaseInstance (absent means deleted: nothing to do)
2. Resolve the database image
3. Ensure the credential Secret
4. Ensure the Deployment
5. Ensure the Service
6. Create or delete the backup CronJob according to backupPolicy.enabled
7. Write the observed status

The first failure aborts the sequence and is raised unchanged; children
converged earlier in the same call are left in place and the next call
picks up from the store's current state.
"""
from dataclasses import dataclass, field
from typing import Dict, Optional

import structlog
from pydantic import ValidationError

from database_operator.config.logging import get_logger
from database_operator.core.naming import ChildRole, child_ref, instance_ref
from database_operator.exceptions import InvalidInstanceError, NotFoundError
from database_operator.models.database_instance import DatabaseInstance, DatabaseInstanceStatus
from database_operator.services.convergence import ApplyResult, ensure, reconcile_optional_child
from database_operator.services.credentials import CredentialProvisioner
from database_operator.services.object_store import ObjectStore
from database_operator.services.status import StatusReporter
from database_operator.services.templates import build_child_resources, resolve_image

logger = get_logger(__name__)

_CHANGES = {ApplyResult.CREATED, ApplyResult.UPDATED, ApplyResult.DELETED}


@dataclass
class ReconcileResult:
    """Result of reconciling one DatabaseInstance."""

    namespace: str
    name: str
    found: bool = True
    image: Optional[str] = None
    children: Dict[ChildRole, ApplyResult] = field(default_factory=dict)
    status: Optional[DatabaseInstanceStatus] = None

    @property
    def changed(self) -> bool:
        """Whether any child was created, updated or deleted."""
        return any(result in _CHANGES for result in self.children.values())

    def to_dict(self) -> Dict[str, object]:
        return {
            "namespace": self.namespace,
            "name": self.name,
            "found": self.found,
            "image": self.image,
            "children": {role.value: result.value for role, result in self.children.items()},
            "status": self.status.model_dump(mode="json", by_alias=True) if self.status else None,
        }


class DatabaseInstanceReconciler:
    """Converges the children of DatabaseInstance objects."""

    def __init__(
        self,
        store: ObjectStore,
        credentials: Optional[CredentialProvisioner] = None,
        status_reporter: Optional[StatusReporter] = None,
    ):
        self.store = store
        self.credentials = credentials or CredentialProvisioner(store)
        self.status_reporter = status_reporter or StatusReporter(store)

    async def load(self, namespace: str, name: str) -> Optional[DatabaseInstance]:
        """
        Fetch an instance, or None if it no longer exists.

        Raises:
            InvalidInstanceError: The stored object does not parse
        """
        try:
            obj = await self.store.get(instance_ref(namespace, name))
        except NotFoundError:
            return None
        try:
            return DatabaseInstance.from_object(obj)
        except ValidationError as e:
            raise InvalidInstanceError(namespace, name, e.errors(include_url=False)) from e

    async def reconcile(self, namespace: str, name: str) -> ReconcileResult:
        """
        Reconcile one DatabaseInstance.

        Args:
            namespace: Instance namespace
            name: Instance name

        Returns:
            What was done to each child

        Raises:
            InvalidInstanceError: The stored spec does not parse
            UnsupportedDatabaseKindError: Unknown databaseType
            ConflictError: A write raced with another writer
            StoreError: Any other Kubernetes API failure
        """
        with structlog.contextvars.bound_contextvars(namespace=namespace, instance=name):
            result = ReconcileResult(namespace=namespace, name=name)

            instance = await self.load(namespace, name)
            if instance is None:
                logger.info("instance_not_found_skipping")
                result.found = False
                return result

            spec = instance.spec
            result.image = resolve_image(spec)
            logger.debug(
                "reconcile_started",
                database_type=spec.database_type,
                image=result.image,
                backup_enabled=spec.backup_policy.enabled,
            )

            await self.credentials.ensure_credential(instance)

            children = build_child_resources(instance, result.image)
            result.children[ChildRole.WORKLOAD] = await ensure(self.store, children.deployment)
            result.children[ChildRole.ENDPOINT] = await ensure(self.store, children.service)
            result.children[ChildRole.SCHEDULED_JOB] = await reconcile_optional_child(
                self.store,
                spec.backup_policy.enabled,
                child_ref(namespace, name, ChildRole.SCHEDULED_JOB),
                children.cronjob,
            )

            result.status = await self.status_reporter.report_status(instance)

            logger.info(
                "reconcile_completed",
                changed=result.changed,
                children={role.value: outcome.value for role, outcome in result.children.items()},
            )
            return result
