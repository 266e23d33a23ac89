"""
Idempotent create-or-update of child objects.

``ensure`` fetches the current object, creates it when absent, and otherwise
copies only the kind's mutable fields from the desired manifest onto the
fetched object. Drift is detected by containment: a mutable field has drifted
when some value set in the desired manifest differs from the stored one.
Fields the API server filled in (defaults, clusterIP, annotations added by
other controllers) never count as drift and are never overwritten.

Two kinds of fields are owned outright and compared strictly, so that
removals converge: the label maps in ``EXACT_FIELDS``, and the optional
container keys in ``OWNED_OPTIONAL_KEYS`` (a request dropped from the
instance must disappear from the Deployment).

``reconcile_optional_child`` adds the on/off toggle used for backup jobs.
"""
import copy
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from database_operator.config.logging import get_logger
from database_operator.core.naming import ObjectRef, ResourceKind
from database_operator.exceptions import NotFoundError
from database_operator.services.object_store import ObjectStore

logger = get_logger(__name__)

FieldPath = Tuple[str, ...]

MUTABLE_FIELDS: Dict[ResourceKind, List[FieldPath]] = {
    ResourceKind.DEPLOYMENT: [
        ("spec", "replicas"),
        ("spec", "template", "spec", "containers"),
        ("spec", "template", "metadata", "labels"),
    ],
    # clusterIP, type and the rest of the Service spec are immutable or owned by the cluster
    ResourceKind.SERVICE: [
        ("spec", "ports"),
        ("spec", "selector"),
    ],
    ResourceKind.CRONJOB: [
        ("spec", "schedule"),
        ("spec", "jobTemplate"),
    ],
}

# Label maps the operator owns outright: keys missing from the desired map are removed
EXACT_FIELDS = {
    ("spec", "template", "metadata", "labels"),
    ("spec", "selector"),
}

# Container keys rendered only when set; a stored value the desired manifest
# omits is stale
OWNED_OPTIONAL_KEYS = frozenset({"resources", "env", "command", "args"})

_MISSING = object()


class ApplyResult(str, Enum):
    """Outcome of converging one child object."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    DELETED = "deleted"
    ABSENT = "absent"


def _get_path(obj: Dict[str, Any], path: FieldPath) -> Any:
    current: Any = obj
    for key in path:
        if not isinstance(current, dict) or key not in current:
            return _MISSING
        current = current[key]
    return current


def _set_path(obj: Dict[str, Any], path: FieldPath, value: Any) -> None:
    current = obj
    for key in path[:-1]:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]
    current[path[-1]] = copy.deepcopy(value)


def _is_empty(value: Any) -> bool:
    return value is None or value == {} or value == []


def contains(desired: Any, existing: Any, owned: frozenset = frozenset()) -> bool:
    """
    Whether every value set in ``desired`` is present and equal in ``existing``.

    Dicts are compared key by key, lists element-wise with equal length, and
    scalars by equality. Empty desired values match missing ones, since the
    API server prunes them. Keys in ``owned`` are the exception: when
    ``desired`` omits one that ``existing`` sets, the dicts differ.
    """
    if isinstance(desired, dict):
        if not isinstance(existing, dict):
            return not desired and existing in (None, _MISSING)
        for key, value in desired.items():
            if key not in existing:
                if _is_empty(value):
                    continue
                return False
            if not contains(value, existing[key], owned):
                return False
        for key in owned:
            if _is_empty(desired.get(key)) and not _is_empty(existing.get(key)):
                return False
        return True
    if isinstance(desired, list):
        if not isinstance(existing, list):
            return not desired and existing in (None, _MISSING)
        if len(desired) != len(existing):
            return False
        return all(contains(d, e, owned) for d, e in zip(desired, existing))
    return desired == existing


def drifted_fields(desired: Dict[str, Any], existing: Dict[str, Any]) -> List[FieldPath]:
    """Mutable field paths whose desired value is not reflected in ``existing``."""
    kind = ResourceKind(desired["kind"])
    drifted = []
    for path in MUTABLE_FIELDS.get(kind, []):
        wanted = _get_path(desired, path)
        if wanted is _MISSING:
            continue
        current = _get_path(existing, path)
        if path in EXACT_FIELDS:
            in_sync = wanted == current or (_is_empty(wanted) and current in (None, _MISSING))
        else:
            in_sync = contains(wanted, current, OWNED_OPTIONAL_KEYS)
        if not in_sync:
            drifted.append(path)
    return drifted


def overlay(
    existing: Dict[str, Any],
    desired: Dict[str, Any],
    paths: List[FieldPath],
) -> Dict[str, Any]:
    """Copy of ``existing`` with ``paths`` taken from ``desired``."""
    merged = copy.deepcopy(existing)
    for path in paths:
        _set_path(merged, path, _get_path(desired, path))
    return merged


async def ensure(store: ObjectStore, desired: Dict[str, Any]) -> ApplyResult:
    """
    Create ``desired`` if absent, otherwise converge its mutable fields.

    Args:
        store: Object store
        desired: Full manifest of the child object

    Returns:
        CREATED, UPDATED or UNCHANGED

    Raises:
        StoreError, ConflictError: Propagated unchanged from the store
    """
    ref = ObjectRef.of(desired)
    try:
        existing = await store.get(ref)
    except NotFoundError:
        logger.info("child_creating", kind=ref.kind.value, namespace=ref.namespace, name=ref.name)
        await store.create(desired)
        logger.info("child_created", kind=ref.kind.value, namespace=ref.namespace, name=ref.name)
        return ApplyResult.CREATED

    drifted = drifted_fields(desired, existing)
    if not drifted:
        logger.debug("child_in_sync", kind=ref.kind.value, namespace=ref.namespace, name=ref.name)
        return ApplyResult.UNCHANGED

    logger.info(
        "child_drift_detected",
        kind=ref.kind.value,
        namespace=ref.namespace,
        name=ref.name,
        fields=[".".join(path) for path in drifted],
    )
    await store.update(overlay(existing, desired, drifted))
    logger.info("child_updated", kind=ref.kind.value, namespace=ref.namespace, name=ref.name)
    return ApplyResult.UPDATED


async def reconcile_optional_child(
    store: ObjectStore,
    enabled: bool,
    ref: ObjectRef,
    desired: Optional[Dict[str, Any]],
) -> ApplyResult:
    """
    Make an optional child exist exactly when ``enabled`` is set.

    Enabled behaves like ``ensure``; disabled deletes the object, treating an
    already-absent object as success.
    """
    if enabled:
        if desired is None:
            raise ValueError(f"desired manifest required to enable {ref}")
        return await ensure(store, desired)

    try:
        await store.delete(ref)
    except NotFoundError:
        logger.debug("optional_child_absent", kind=ref.kind.value, namespace=ref.namespace, name=ref.name)
        return ApplyResult.ABSENT

    logger.info("optional_child_deleted", kind=ref.kind.value, namespace=ref.namespace, name=ref.name)
    return ApplyResult.DELETED
