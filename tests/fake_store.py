"""
In-memory object store for tests.

Behaves like the Kubernetes API where the reconciler can tell the
difference: assigns resourceVersions and uids, fills in server-side
defaults, rejects updates carrying a stale resourceVersion, and records
every write so tests can assert on exactly what was sent.
"""
import copy
import itertools
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from database_operator.core.naming import ObjectRef, ResourceKind
from database_operator.exceptions import ConflictError, NotFoundError
from database_operator.services.object_store import ObjectStore


@dataclass
class WriteRecord:
    """One write issued against the store."""

    verb: str
    ref: ObjectRef
    obj: Optional[Dict[str, Any]]


def make_instance(
    name: str = "orders",
    namespace: str = "default",
    database_type: str = "mysql",
    version: str = "8.0",
    replicas: int = 1,
    image: str = "",
    backup_enabled: bool = False,
    schedule: str = "0 2 * * *",
    retention: str = "",
    backup_image: str = "",
    memory: str = "",
    cpu: str = "",
) -> Dict[str, Any]:
    """Raw DatabaseInstance manifest as a user would apply it."""
    spec: Dict[str, Any] = {
        "databaseType": database_type,
        "version": version,
        "storage": "10Gi",
        "replicas": replicas,
        "backupPolicy": {
            "enabled": backup_enabled,
            "schedule": schedule,
            "retention": retention,
            "backupImage": backup_image,
        },
    }
    if image:
        spec["image"] = image
    if memory or cpu:
        spec["resources"] = {"requests": {"memory": memory, "cpu": cpu}}
    return {
        "apiVersion": "apps.zwjk.com/v1",
        "kind": "DatabaseInstance",
        "metadata": {"name": name, "namespace": namespace},
        "spec": spec,
    }


def _default_containers(containers: List[Dict[str, Any]]) -> None:
    for container in containers:
        container.setdefault("imagePullPolicy", "IfNotPresent")
        container.setdefault("terminationMessagePath", "/dev/termination-log")
        for port in container.get("ports", []):
            port.setdefault("protocol", "TCP")


class FakeObjectStore(ObjectStore):
    """Dict-backed ObjectStore with failure injection."""

    def __init__(self):
        self.objects: Dict[ObjectRef, Dict[str, Any]] = {}
        self.writes: List[WriteRecord] = []
        self.gets: List[ObjectRef] = []
        self.reachable = True
        self._failures: Dict[Tuple[str, ResourceKind], List[Exception]] = {}
        self._versions = itertools.count(1)
        self._uids = itertools.count(1)
        self._cluster_ips = itertools.count(10)

    # -- test helpers -------------------------------------------------------

    def seed(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        """Store an object without recording a write."""
        stored = self._stamp(copy.deepcopy(obj), new=True)
        self.objects[ObjectRef.of(stored)] = stored
        return copy.deepcopy(stored)

    def fail_next(self, verb: str, kind: ResourceKind, error: Exception, times: int = 1) -> None:
        """Make the next ``times`` calls of ``verb`` on ``kind`` raise ``error``."""
        self._failures.setdefault((verb, kind), []).extend([error] * times)

    def stored(self, kind: ResourceKind, namespace: str, name: str) -> Optional[Dict[str, Any]]:
        obj = self.objects.get(ObjectRef(kind, namespace, name))
        return copy.deepcopy(obj) if obj is not None else None

    def writes_for(self, kind: Optional[ResourceKind] = None, verb: Optional[str] = None) -> List[WriteRecord]:
        return [
            w for w in self.writes
            if (kind is None or w.ref.kind is kind) and (verb is None or w.verb == verb)
        ]

    @property
    def child_writes(self) -> List[WriteRecord]:
        """Writes to anything but the DatabaseInstance itself."""
        return [w for w in self.writes if w.ref.kind is not ResourceKind.DATABASE_INSTANCE]

    def reset_writes(self) -> None:
        self.writes.clear()

    # -- internals ----------------------------------------------------------

    def _maybe_fail(self, verb: str, kind: ResourceKind) -> None:
        pending = self._failures.get((verb, kind))
        if pending:
            raise pending.pop(0)

    def _stamp(self, obj: Dict[str, Any], new: bool) -> Dict[str, Any]:
        metadata = obj.setdefault("metadata", {})
        metadata.setdefault("namespace", "default")
        metadata["resourceVersion"] = str(next(self._versions))
        if new:
            metadata.setdefault("uid", f"uid-{next(self._uids)}")
        self._apply_defaults(obj)
        return obj

    def _apply_defaults(self, obj: Dict[str, Any]) -> None:
        kind = obj.get("kind")
        spec = obj.get("spec")
        if kind == "Deployment" and spec:
            spec.setdefault("strategy", {"type": "RollingUpdate"})
            spec.setdefault("revisionHistoryLimit", 10)
            _default_containers(spec.get("template", {}).get("spec", {}).get("containers", []))
        elif kind == "Service" and spec:
            spec.setdefault("type", "ClusterIP")
            spec.setdefault("clusterIP", f"10.96.0.{next(self._cluster_ips)}")
            for port in spec.get("ports", []):
                port.setdefault("protocol", "TCP")
        elif kind == "CronJob" and spec:
            spec.setdefault("concurrencyPolicy", "Allow")
            spec.setdefault("successfulJobsHistoryLimit", 3)
            pod_spec = spec.get("jobTemplate", {}).get("spec", {}).get("template", {}).get("spec", {})
            _default_containers(pod_spec.get("containers", []))

    def _require(self, ref: ObjectRef) -> Dict[str, Any]:
        if ref not in self.objects:
            raise NotFoundError(ref.kind.value, ref.namespace, ref.name)
        return self.objects[ref]

    def _check_version(self, ref: ObjectRef, current: Dict[str, Any], obj: Dict[str, Any]) -> None:
        sent = obj.get("metadata", {}).get("resourceVersion")
        if sent != current["metadata"]["resourceVersion"]:
            raise ConflictError(
                f"update {ref} conflicted: the object has been modified",
                details={"sent": sent, "current": current["metadata"]["resourceVersion"]},
            )

    # -- ObjectStore --------------------------------------------------------

    async def get(self, ref: ObjectRef) -> Dict[str, Any]:
        self.gets.append(ref)
        self._maybe_fail("get", ref.kind)
        return copy.deepcopy(self._require(ref))

    async def create(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        ref = ObjectRef.of(obj)
        self._maybe_fail("create", ref.kind)
        if ref in self.objects:
            raise ConflictError(f"create {ref} conflicted: already exists")
        stored = self._stamp(copy.deepcopy(obj), new=True)
        self.objects[ref] = stored
        self.writes.append(WriteRecord("create", ref, copy.deepcopy(obj)))
        return copy.deepcopy(stored)

    async def update(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        ref = ObjectRef.of(obj)
        self._maybe_fail("update", ref.kind)
        current = self._require(ref)
        self._check_version(ref, current, obj)
        stored = copy.deepcopy(obj)
        if "status" in current:
            stored["status"] = copy.deepcopy(current["status"])
        stored = self._stamp(stored, new=False)
        self.objects[ref] = stored
        self.writes.append(WriteRecord("update", ref, copy.deepcopy(obj)))
        return copy.deepcopy(stored)

    async def delete(self, ref: ObjectRef) -> None:
        self._maybe_fail("delete", ref.kind)
        self._require(ref)
        del self.objects[ref]
        self.writes.append(WriteRecord("delete", ref, None))

    async def update_status(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        ref = ObjectRef.of(obj)
        self._maybe_fail("update_status", ref.kind)
        current = self._require(ref)
        self._check_version(ref, current, obj)
        current["status"] = copy.deepcopy(obj.get("status", {}))
        current["metadata"]["resourceVersion"] = str(next(self._versions))
        self.writes.append(WriteRecord("update_status", ref, copy.deepcopy(obj)))
        return copy.deepcopy(current)

    async def list_instances(self, namespace: str = "") -> List[Dict[str, Any]]:
        self._maybe_fail("list", ResourceKind.DATABASE_INSTANCE)
        return [
            copy.deepcopy(obj)
            for ref, obj in sorted(self.objects.items(), key=lambda item: str(item[0]))
            if ref.kind is ResourceKind.DATABASE_INSTANCE and (not namespace or ref.namespace == namespace)
        ]

    async def ping(self) -> bool:
        return self.reachable
