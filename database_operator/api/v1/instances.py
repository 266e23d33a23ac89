"""
DatabaseInstance endpoints.

Preview the children the operator would converge for an instance, or
reconcile an instance immediately instead of waiting for the next resync.
"""
from fastapi import APIRouter, Request

from database_operator.config.logging import get_logger
from database_operator.core.naming import instance_ref
from database_operator.exceptions import NotFoundError
from database_operator.models.database_instance import API_KIND
from database_operator.services.reconciler import DatabaseInstanceReconciler
from database_operator.services.templates import build_child_resources

router = APIRouter()
logger = get_logger(__name__)


def _reconciler(request: Request) -> DatabaseInstanceReconciler:
    return request.app.state.reconciler


@router.get("/{namespace}/{name}/children")
async def preview_children(namespace: str, name: str, request: Request):
    """
    Render the child manifests of an instance without writing anything.

    The credential Secret is returned by name only; its values are never
    exposed.
    """
    instance = await _reconciler(request).load(namespace, name)
    if instance is None:
        raise NotFoundError(API_KIND, namespace, name)

    children = build_child_resources(instance)
    return {
        "instance": str(instance_ref(namespace, name)),
        "image": children.image,
        "credential": {"name": children.credential.name, "namespace": children.credential.namespace},
        "deployment": children.deployment,
        "service": children.service,
        "cronjob": children.cronjob,
    }


@router.post("/{namespace}/{name}/reconcile")
async def reconcile_instance(namespace: str, name: str, request: Request):
    """Reconcile one instance now and report what changed."""
    logger.info("manual_reconcile_requested", namespace=namespace, instance=name)
    result = await _reconciler(request).reconcile(namespace, name)
    if not result.found:
        raise NotFoundError(API_KIND, namespace, name)
    return result.to_dict()
