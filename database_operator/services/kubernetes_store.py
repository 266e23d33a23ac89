"""
Kubernetes-backed object store.

Reads and writes Secrets, Deployments, Services, CronJobs and DatabaseInstance
custom resources through kubernetes_asyncio, converting typed responses to
plain dicts and API errors to the operator's exception taxonomy.
"""
import asyncio
import json
from typing import Any, Dict, List, Optional, Tuple

import aiohttp
from kubernetes_asyncio import client, config
from kubernetes_asyncio.client import ApiException

from database_operator.config.logging import get_logger
from database_operator.config.settings import settings
from database_operator.core.naming import ObjectRef, ResourceKind
from database_operator.exceptions import ConflictError, NotFoundError, StoreError
from database_operator.services.object_store import ObjectStore

logger = get_logger(__name__)


class KubernetesClientSet:
    """Container for Kubernetes API clients."""

    def __init__(self, api_client: client.ApiClient):
        self.api_client = api_client
        self.core_api = client.CoreV1Api(api_client)
        self.apps_api = client.AppsV1Api(api_client)
        self.batch_api = client.BatchV1Api(api_client)
        self.custom_api = client.CustomObjectsApi(api_client)
        self.version_api = client.VersionApi(api_client)

    @classmethod
    async def create(
        cls,
        kubeconfig_path: Optional[str] = None,
        in_cluster: Optional[bool] = None,
    ) -> "KubernetesClientSet":
        """
        Load cluster configuration and build the client set.

        Args:
            kubeconfig_path: Path to a kubeconfig file (defaults to settings)
            in_cluster: Use the pod's service account (defaults to settings)
        """
        if in_cluster is None:
            in_cluster = settings.k8s_in_cluster
        if in_cluster:
            config.load_incluster_config()
            logger.info("kubernetes_config_loaded", source="in_cluster")
        else:
            path = kubeconfig_path or settings.kubeconfig_path
            await config.load_kube_config(config_file=path)
            logger.info("kubernetes_config_loaded", source="kubeconfig", path=path or "default")
        return cls(client.ApiClient())

    async def close(self):
        """Close all API clients."""
        if self.api_client:
            await self.api_client.close()


# kind -> (client attribute, method suffix)
_TYPED_APIS: Dict[ResourceKind, Tuple[str, str]] = {
    ResourceKind.SECRET: ("core_api", "secret"),
    ResourceKind.SERVICE: ("core_api", "service"),
    ResourceKind.DEPLOYMENT: ("apps_api", "deployment"),
    ResourceKind.CRONJOB: ("batch_api", "cron_job"),
}


def _error_body(e: ApiException) -> Any:
    try:
        return json.loads(e.body) if e.body else None
    except (json.JSONDecodeError, ValueError, TypeError):
        return e.body


class KubernetesObjectStore(ObjectStore):
    """ObjectStore implementation backed by the Kubernetes API."""

    def __init__(self, clients: KubernetesClientSet):
        self.clients = clients

    def _typed_call(self, kind: ResourceKind, verb: str):
        if kind not in _TYPED_APIS:
            raise StoreError(f"no typed API for kind {kind.value}")
        api_attr, suffix = _TYPED_APIS[kind]
        api = getattr(self.clients, api_attr)
        return getattr(api, f"{verb}_namespaced_{suffix}")

    def _to_dict(self, result: Any, kind: ResourceKind) -> Dict[str, Any]:
        obj = self.clients.api_client.sanitize_for_serialization(result)
        # Typed reads do not always populate apiVersion/kind
        obj.setdefault("kind", kind.value)
        return obj

    def _translate(self, e: Exception, ref: ObjectRef, verb: str) -> Exception:
        """Map a client error to NotFoundError, ConflictError or StoreError."""
        if isinstance(e, ApiException):
            if e.status == 404:
                return NotFoundError(ref.kind.value, ref.namespace, ref.name)
            if e.status == 409:
                return ConflictError(
                    f"{verb} {ref} conflicted: {e.reason}",
                    details={"kind": ref.kind.value, "name": ref.name, "body": _error_body(e)},
                )
            logger.error(
                "kubernetes_api_call_failed",
                verb=verb,
                object=str(ref),
                status=e.status,
                error=e.reason,
                error_body=_error_body(e),
            )
            return StoreError(f"{verb} {ref} failed: {e.reason}", api_status=e.status)
        logger.error("kubernetes_api_unreachable", verb=verb, object=str(ref), error=str(e))
        return StoreError(f"{verb} {ref} failed: {e}")

    async def get(self, ref: ObjectRef) -> Dict[str, Any]:
        try:
            if ref.kind is ResourceKind.DATABASE_INSTANCE:
                result = await self.clients.custom_api.get_namespaced_custom_object(
                    group=settings.crd_group,
                    version=settings.crd_version,
                    namespace=ref.namespace,
                    plural=settings.crd_plural,
                    name=ref.name,
                )
            else:
                read = self._typed_call(ref.kind, "read")
                result = await read(name=ref.name, namespace=ref.namespace)
        except (ApiException, aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise self._translate(e, ref, "get") from e
        return self._to_dict(result, ref.kind)

    async def create(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        ref = ObjectRef.of(obj)
        try:
            create = self._typed_call(ref.kind, "create")
            result = await create(namespace=ref.namespace, body=obj)
        except (ApiException, aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise self._translate(e, ref, "create") from e
        return self._to_dict(result, ref.kind)

    async def update(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        ref = ObjectRef.of(obj)
        try:
            replace = self._typed_call(ref.kind, "replace")
            result = await replace(name=ref.name, namespace=ref.namespace, body=obj)
        except (ApiException, aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise self._translate(e, ref, "update") from e
        return self._to_dict(result, ref.kind)

    async def delete(self, ref: ObjectRef) -> None:
        try:
            delete = self._typed_call(ref.kind, "delete")
            await delete(name=ref.name, namespace=ref.namespace, propagation_policy="Background")
        except (ApiException, aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise self._translate(e, ref, "delete") from e

    async def update_status(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        ref = ObjectRef.of(obj)
        try:
            result = await self.clients.custom_api.replace_namespaced_custom_object_status(
                group=settings.crd_group,
                version=settings.crd_version,
                namespace=ref.namespace,
                plural=settings.crd_plural,
                name=ref.name,
                body=obj,
            )
        except (ApiException, aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise self._translate(e, ref, "update_status") from e
        return result

    async def list_instances(self, namespace: str = "") -> List[Dict[str, Any]]:
        try:
            if namespace:
                result = await self.clients.custom_api.list_namespaced_custom_object(
                    group=settings.crd_group,
                    version=settings.crd_version,
                    namespace=namespace,
                    plural=settings.crd_plural,
                )
            else:
                result = await self.clients.custom_api.list_cluster_custom_object(
                    group=settings.crd_group,
                    version=settings.crd_version,
                    plural=settings.crd_plural,
                )
        except (ApiException, aiohttp.ClientError, asyncio.TimeoutError) as e:
            ref = ObjectRef(ResourceKind.DATABASE_INSTANCE, namespace or "*", "*")
            raise self._translate(e, ref, "list") from e
        return result.get("items", [])

    async def ping(self) -> bool:
        try:
            await self.clients.version_api.get_code()
            return True
        except (ApiException, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("kubernetes_ping_failed", error=str(e))
            return False
