"""
Object store interface used by the reconciliation services.

Objects are plain JSON-shaped dicts (manifests). Implementations must raise
NotFoundError for missing objects, ConflictError when an update carries a
stale metadata.resourceVersion (or a create hits an existing object), and
StoreError for every other failure.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from database_operator.core.naming import ObjectRef


class ObjectStore(ABC):
    """Get/create/update/delete access to cluster objects."""

    @abstractmethod
    async def get(self, ref: ObjectRef) -> Dict[str, Any]:
        """Fetch an object. Raises NotFoundError if absent."""

    @abstractmethod
    async def create(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        """Create an object and return the stored version."""

    @abstractmethod
    async def update(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        """Replace an object; fails with ConflictError on a stale resourceVersion."""

    @abstractmethod
    async def delete(self, ref: ObjectRef) -> None:
        """Delete an object. Raises NotFoundError if already absent."""

    @abstractmethod
    async def update_status(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        """Replace the status sub-resource of a DatabaseInstance."""

    @abstractmethod
    async def list_instances(self, namespace: str = "") -> List[Dict[str, Any]]:
        """List DatabaseInstance objects, in all namespaces when ``namespace`` is empty."""

    async def ping(self) -> bool:
        """Whether the backing API is reachable."""
        return True
