"""
Reconciliation worker driving the DatabaseInstance reconciler.

Runs periodically to list every DatabaseInstance and reconcile it. Each
instance key is reconciled by at most one task at a time; failures caused by
conflicts or API errors are retried with exponential backoff before the
instance is marked Failed for this cycle.
"""
import asyncio
from typing import Dict, Optional, Tuple

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from database_operator.config.logging import get_logger
from database_operator.config.settings import settings
from database_operator.core.naming import instance_ref
from database_operator.exceptions import (
    ConflictError,
    NotFoundError,
    OperatorError,
    StoreError,
    UnsupportedDatabaseKindError,
)
from database_operator.services.object_store import ObjectStore
from database_operator.services.reconciler import DatabaseInstanceReconciler, ReconcileResult

logger = get_logger(__name__)

InstanceKey = Tuple[str, str]

RETRYABLE_ERRORS = (ConflictError, StoreError)


class ReconciliationWorker:
    """
    Periodically reconciles every DatabaseInstance.

    Features:
    - Periodic resync (configurable interval)
    - One in-flight reconciliation per instance
    - Bounded parallelism across instances
    - Exponential backoff on conflicts and API errors
    - Failed status once retries are exhausted
    - Graceful shutdown
    """

    def __init__(
        self,
        store: ObjectStore,
        reconciler: Optional[DatabaseInstanceReconciler] = None,
        reconcile_interval: Optional[int] = None,
        namespace: Optional[str] = None,
        max_concurrent: Optional[int] = None,
        max_attempts: Optional[int] = None,
        backoff_initial: Optional[float] = None,
        backoff_max: Optional[float] = None,
    ):
        """
        Initialize reconciliation worker.

        Args:
            store: Object store the instances live in
            reconciler: Reconciler to drive (built from the store if omitted)
            reconcile_interval: Seconds between resync cycles
            namespace: Namespace to reconcile, empty for all
            max_concurrent: Instances reconciled in parallel
            max_attempts: Attempts per instance per cycle
            backoff_initial: First retry delay in seconds
            backoff_max: Upper bound of the retry delay in seconds
        """
        self.store = store
        self.reconciler = reconciler or DatabaseInstanceReconciler(store)
        self.reconcile_interval = reconcile_interval or settings.reconcile_interval
        self.namespace = settings.watch_namespace if namespace is None else namespace
        self.max_attempts = max_attempts or settings.reconcile_max_attempts
        self.backoff_initial = backoff_initial or settings.reconcile_backoff_initial
        self.backoff_max = backoff_max or settings.reconcile_backoff_max
        self._semaphore = asyncio.Semaphore(max_concurrent or settings.max_concurrent_reconciles)
        self._key_locks: Dict[InstanceKey, asyncio.Lock] = {}
        self.running = False
        self._sleep_task: Optional[asyncio.Task] = None

    async def start(self):
        """Start reconciliation worker (runs until stopped)."""
        self.running = True

        logger.info(
            "reconciliation_worker_started",
            interval_seconds=self.reconcile_interval,
            namespace=self.namespace or "*",
        )

        try:
            while self.running:
                try:
                    await self.reconcile_all()
                except asyncio.CancelledError:
                    logger.info("reconciliation_worker_cancelled")
                    break
                except Exception as e:
                    logger.error("reconciliation_cycle_error", error=str(e), exc_info=True)

                if not self.running:
                    break
                try:
                    self._sleep_task = asyncio.create_task(asyncio.sleep(self.reconcile_interval))
                    await self._sleep_task
                except asyncio.CancelledError:
                    logger.info("reconciliation_sleep_cancelled")
                    break
                finally:
                    self._sleep_task = None
        finally:
            self.running = False
            logger.info("reconciliation_worker_stopped")

    async def stop(self):
        """Stop reconciliation worker gracefully."""
        logger.info("stopping_reconciliation_worker")
        self.running = False

        if self._sleep_task and not self._sleep_task.done():
            self._sleep_task.cancel()
            try:
                await self._sleep_task
            except asyncio.CancelledError:
                pass

    async def reconcile_all(self) -> Dict[str, int]:
        """
        Reconcile every DatabaseInstance once.

        Returns:
            Counts of succeeded, failed and skipped instances
        """
        items = await self.store.list_instances(self.namespace)
        keys = [
            (item["metadata"].get("namespace", "default"), item["metadata"]["name"])
            for item in items
        ]
        logger.info("reconciliation_cycle_started", instance_count=len(keys))

        results = await asyncio.gather(*(self.reconcile_key(ns, name) for ns, name in keys))

        summary = {"succeeded": 0, "failed": 0, "skipped": 0}
        for outcome in results:
            summary[outcome] += 1
        self._prune_locks(set(keys))

        logger.info("reconciliation_cycle_completed", next_run_in_seconds=self.reconcile_interval, **summary)
        return summary

    async def reconcile_key(self, namespace: str, name: str) -> str:
        """
        Reconcile one instance unless it is already being reconciled.

        Returns:
            "succeeded", "failed" or "skipped"
        """
        lock = self._key_locks.setdefault((namespace, name), asyncio.Lock())
        if lock.locked():
            logger.debug("reconcile_already_in_flight", namespace=namespace, instance=name)
            return "skipped"

        async with lock, self._semaphore:
            try:
                await self.reconcile_with_backoff(namespace, name)
                return "succeeded"
            except UnsupportedDatabaseKindError as e:
                logger.error(
                    "reconcile_rejected",
                    namespace=namespace,
                    instance=name,
                    error=e.message,
                )
                await self._record_failure(namespace, name, e)
            except RETRYABLE_ERRORS as e:
                logger.error(
                    "reconcile_failed_max_attempts",
                    namespace=namespace,
                    instance=name,
                    attempts=self.max_attempts,
                    error_type=type(e).__name__,
                    error=e.message,
                )
                await self._record_failure(namespace, name, e)
            except OperatorError as e:
                logger.error(
                    "reconcile_failed",
                    namespace=namespace,
                    instance=name,
                    error_type=type(e).__name__,
                    error=e.message,
                )
                await self._record_failure(namespace, name, e)
            except Exception as e:
                logger.error(
                    "reconcile_crashed",
                    namespace=namespace,
                    instance=name,
                    error_type=type(e).__name__,
                    error=str(e),
                    exc_info=True,
                )
            return "failed"

    async def reconcile_with_backoff(self, namespace: str, name: str) -> ReconcileResult:
        """Run the reconciler, retrying conflicts and API errors with exponential backoff."""
        result = None
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_initial, max=self.backoff_max),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            before_sleep=self._log_retry,
            reraise=True,
        ):
            with attempt:
                result = await self.reconciler.reconcile(namespace, name)
        return result

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "reconcile_failed_retrying",
            attempt=retry_state.attempt_number,
            max_attempts=self.max_attempts,
            delay_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
            error_type=type(error).__name__ if error else None,
            error=str(error) if error else None,
        )

    async def _record_failure(self, namespace: str, name: str, error: Exception) -> None:
        try:
            obj = await self.store.get(instance_ref(namespace, name))
            await self.reconciler.status_reporter.report_failure_object(obj, error)
        except NotFoundError:
            return
        except OperatorError as e:
            logger.warning(
                "failure_status_not_recorded",
                namespace=namespace,
                instance=name,
                error=e.message,
            )

    def _prune_locks(self, live_keys: set) -> None:
        for key in list(self._key_locks):
            if key not in live_keys and not self._key_locks[key].locked():
                del self._key_locks[key]
