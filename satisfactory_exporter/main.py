"""
Satisfactory Exporter - Main Application
FastAPI application serving the metrics endpoint while a background poller
keeps the registry current
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import structlog

from . import __version__
from .client import ServerApiClient
from .config import Settings
from .credentials import build_auth_config
from .exceptions import ExporterException
from .metrics import MetricsRegistry
from .middleware import RequestTracingMiddleware
from .poller import Poller
from .routers import create_metrics_router, health_router

logger = structlog.get_logger(__name__)


# ============================================================
# Application Lifecycle Management
# ============================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Start the upstream client and poller, and stop them on shutdown

    uvicorn lets in-flight scrapes finish before this exits.
    """
    settings: Settings = app.state.settings
    logger.info(
        "exporter_starting",
        endpoint=settings.endpoint,
        listen=settings.listen,
        metrics_path=settings.metrics_path,
        update_interval_seconds=settings.update_interval
    )

    await app.state.upstream_client.connect()
    await app.state.poller.start()
    logger.info("exporter_ready")

    yield

    logger.info("exporter_shutting_down")
    await app.state.poller.stop()
    await app.state.upstream_client.disconnect()
    logger.info("exporter_shutdown_complete")


# ============================================================
# FastAPI Application
# ============================================================

def create_app(settings: Settings, client: Optional[ServerApiClient] = None) -> FastAPI:
    """
    Build the exporter application

    Args:
        settings: Validated settings
        client: Upstream client override (tests); built from settings otherwise

    Raises:
        ConfigurationError: If the bearer token cannot be loaded
    """
    if client is None:
        client = ServerApiClient(
            auth=build_auth_config(settings),
            timeout=settings.get_effective_request_timeout()
        )

    registry = MetricsRegistry()
    poller = Poller(client, registry, interval=settings.update_interval)

    app = FastAPI(
        title="Satisfactory Exporter",
        version=__version__,
        description="Prometheus exporter for Satisfactory dedicated servers",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None
    )

    app.state.settings = settings
    app.state.upstream_client = client
    app.state.metrics_registry = registry
    app.state.poller = poller

    app.add_middleware(RequestTracingMiddleware)

    app.include_router(create_metrics_router(settings.metrics_path))
    app.include_router(health_router)

    # ============================================================
    # Exception Handlers
    # ============================================================

    @app.exception_handler(ExporterException)
    async def exporter_exception_handler(request: Request, exc: ExporterException):
        """Handle custom exporter exceptions"""
        logger.error("request_error", error_code=exc.error_code, error=exc.message)
        return JSONResponse(
            status_code=500,
            content=exc.to_dict()
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions"""
        logger.error("unhandled_exception", error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "INTERNAL_SERVER_ERROR",
                "message": "An unexpected error occurred"
            }
        )

    return app
