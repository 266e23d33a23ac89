"""
Health check endpoints for monitoring and orchestration.
Provides liveness, readiness, and startup probes.
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from database_operator.config.settings import settings

router = APIRouter()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/")
async def health_check():
    """
    Basic health check endpoint.
    Returns current status and version.
    """
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "timestamp": _now(),
    }


@router.get("/live")
async def liveness():
    """
    Kubernetes liveness probe.
    Indicates whether the operator should be restarted.
    """
    return {"status": "alive", "timestamp": _now()}


@router.get("/ready")
async def readiness(request: Request):
    """
    Kubernetes readiness probe.
    Checks that the Kubernetes API is reachable.
    """
    store = getattr(request.app.state, "store", None)
    api_healthy = store is not None and await store.ping()

    if not api_healthy:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "kubernetes": "unhealthy",
                "timestamp": _now(),
            },
        )

    return {
        "status": "ready",
        "kubernetes": "healthy",
        "timestamp": _now(),
    }


@router.get("/startup")
async def startup(request: Request):
    """
    Kubernetes startup probe.
    Indicates whether the reconciliation worker is running.
    """
    worker = getattr(request.app.state, "worker", None)
    if worker is None or not worker.running:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "starting", "worker": "stopped", "timestamp": _now()},
        )
    return {"status": "started", "worker": "running", "timestamp": _now()}
