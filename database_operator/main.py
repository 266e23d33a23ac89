"""
Operator entry point.

A FastAPI application whose lifespan connects to the Kubernetes API and
runs the reconciliation worker in the background, and which serves the
health probes and the instance control endpoints.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from database_operator.api.v1 import health, instances
from database_operator.config.logging import configure_logging, get_logger
from database_operator.config.settings import settings
from database_operator.exceptions import OperatorError
from database_operator.services.kubernetes_store import KubernetesClientSet, KubernetesObjectStore
from database_operator.services.object_store import ObjectStore
from database_operator.services.reconciler import DatabaseInstanceReconciler
from database_operator.workers.reconciliation_worker import ReconciliationWorker

logger = get_logger(__name__)


def _attach_store(app: FastAPI, store: ObjectStore) -> None:
    app.state.store = store
    app.state.reconciler = DatabaseInstanceReconciler(store)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Operator lifespan manager.

    Startup: connect to Kubernetes (unless a store was injected) and start
    the reconciliation worker. Shutdown: stop the worker and close clients.
    """
    logger.info(
        "operator_starting",
        version=settings.app_version,
        environment=settings.environment,
    )

    clients: Optional[KubernetesClientSet] = None
    worker_task: Optional[asyncio.Task] = None

    if getattr(app.state, "store", None) is None:
        clients = await KubernetesClientSet.create()
        _attach_store(app, KubernetesObjectStore(clients))
        logger.info("kubernetes_client_initialized")

    if app.state.run_worker:
        worker = ReconciliationWorker(app.state.store, app.state.reconciler)
        app.state.worker = worker
        worker_task = asyncio.create_task(worker.start())

    logger.info("operator_started", worker=app.state.run_worker)

    yield

    logger.info("operator_shutting_down")

    if worker_task is not None:
        await app.state.worker.stop()
        worker_task.cancel()
        try:
            await asyncio.wait_for(asyncio.gather(worker_task, return_exceptions=True), timeout=30.0)
            logger.info("reconciliation_worker_stopped")
        except asyncio.TimeoutError:
            logger.warning("reconciliation_worker_shutdown_timeout")

    if clients is not None:
        await clients.close()
        logger.info("kubernetes_client_closed")

    logger.info("operator_shutdown_complete")


def create_app(store: Optional[ObjectStore] = None, run_worker: bool = True) -> FastAPI:
    """
    Build the operator application.

    Args:
        store: Object store to use instead of connecting to Kubernetes
        run_worker: Start the reconciliation worker in the lifespan
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Convergence controller for DatabaseInstance resources",
        docs_url="/docs" if not settings.is_production else None,
        redoc_url=None,
        openapi_url="/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.run_worker = run_worker
    app.state.store = None
    app.state.worker = None
    if store is not None:
        _attach_store(app, store)

    @app.exception_handler(OperatorError)
    async def operator_exception_handler(request: Request, exc: OperatorError) -> JSONResponse:
        """Handle operator exceptions."""
        logger.error(
            "operator_exception",
            path=request.url.path,
            method=request.method,
            error=exc.message,
            status_code=exc.status_code,
            details=exc.details,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": {
                    "message": exc.message,
                    "details": exc.details,
                    "status_code": exc.status_code,
                }
            },
        )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all HTTP requests except probes."""
        response = await call_next(request)
        if not request.url.path.startswith("/health"):
            logger.info(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
            )
        return response

    app.include_router(health.router, prefix="/health", tags=["Health"])
    app.include_router(instances.router, prefix="/api/v1/instances", tags=["Instances"])

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
            "status": "running",
        }

    return app


def run() -> None:
    """Run the operator with uvicorn."""
    import uvicorn

    configure_logging()
    try:
        uvicorn.run(
            "database_operator.main:create_app",
            factory=True,
            host=settings.host,
            port=settings.port,
            log_level=settings.log_level.lower(),
        )
    except KeyboardInterrupt:
        logger.info("operator_stopped")
