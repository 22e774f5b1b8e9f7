"""FastAPI application entry point for the meter sync service.

Configures the app with routers, middleware, error handlers and lifecycle
management of the store pools, delivery client and connectivity monitor.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from meter_sync import __version__
from meter_sync.api import connectivity_router, health_router, local_router, upload_router
from meter_sync.config import Settings, get_settings
from meter_sync.db.gateway import StoreGateway
from meter_sync.errors import (
    MissingTenantIdError,
    PersistenceError,
    RemoteServiceUnavailableError,
    StoreUnavailableError,
    SyncError,
    TenantNotFoundError,
    UploadInProgressError,
)
from meter_sync.logging import (
    LoggingMiddleware,
    get_logger,
    log_api_error,
    mask_url,
    setup_logging,
)
from meter_sync.monitor import ConnectivityMonitor
from meter_sync.sync.delivery import ReadingDeliveryClient
from meter_sync.sync.upload import ReadingUploader

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialize pools and start the monitor; tear both down on shutdown."""
    settings: Settings = app.state.settings

    logger.info(
        "server_starting",
        version=__version__,
        local_database_url=mask_url(settings.local_database_url),
        remote_database_url=mask_url(settings.remote_database_url),
        remote_api_url=settings.remote_api_url,
        log_level=settings.log_level,
    )

    await app.state.gateway.initialize()
    if settings.monitor_enabled:
        app.state.monitor.start()

    yield

    await app.state.monitor.close()
    await app.state.delivery.close()
    await app.state.gateway.shutdown()
    logger.info("server_stopping")


def _status_for(exc: SyncError) -> tuple[int, str]:
    """Map a sync error to an HTTP status and the message shown to the caller."""
    if isinstance(exc, MissingTenantIdError):
        return 400, str(exc)
    if isinstance(exc, TenantNotFoundError):
        return 404, str(exc)
    if isinstance(exc, UploadInProgressError):
        return 409, str(exc)
    if isinstance(exc, (StoreUnavailableError, RemoteServiceUnavailableError)):
        return 503, str(exc)
    return 500, "Internal server error"


async def sync_error_handler(request: Request, exc: SyncError) -> JSONResponse:
    status_code, message = _status_for(exc)
    if status_code >= 500:
        error_type = "persistence" if isinstance(exc, PersistenceError) else "unavailable"
        log_api_error(logger, request.url.path, error_type, str(exc))
    return JSONResponse(status_code=status_code, content={"error": message})


# Routes whose error bodies carry the success flag alongside the message
SUCCESS_ENVELOPE_PATHS = {"/api/local/tenant-sync"}


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed input is a 400 with the same body shape as other client errors."""
    first = exc.errors()[0] if exc.errors() else {}
    field = next((str(part) for part in reversed(first.get("loc", ())) if part != "body"), None)
    message = first.get("msg", "Invalid request")
    if field:
        message = f"{field}: {message}"
    content: dict = {"error": message}
    if request.url.path in SUCCESS_ENVELOPE_PATHS:
        content = {"success": False, **content}
    return JSONResponse(status_code=400, content=content)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = "Not found" if exc.status_code == 404 and exc.detail == "Not Found" else exc.detail
    return JSONResponse(status_code=exc.status_code, content={"error": message})


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(
    settings: Settings | None = None,
    gateway: StoreGateway | None = None,
    delivery: ReadingDeliveryClient | None = None,
    monitor: ConnectivityMonitor | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Collaborators default to instances built from settings; tests inject
    their own.
    """
    settings = settings or get_settings()
    gateway = gateway or StoreGateway.from_settings(settings)
    delivery = delivery or ReadingDeliveryClient.from_settings(settings)
    monitor = monitor or ConnectivityMonitor.from_settings(settings)

    app = FastAPI(
        title="Meter Sync",
        description="Local/remote synchronization for the edge meter collector",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.gateway = gateway
    app.state.delivery = delivery
    app.state.monitor = monitor
    app.state.uploader = ReadingUploader(
        gateway,
        delivery,
        batch_size=settings.upload_batch_size,
        max_retries=settings.upload_max_retries,
        claim_timeout=settings.upload_claim_timeout,
    )

    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.add_exception_handler(SyncError, sync_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    app.include_router(health_router)
    app.include_router(local_router)
    app.include_router(upload_router)
    app.include_router(connectivity_router)

    return app


def run() -> None:
    """Run the server on the loopback listener using uvicorn."""
    settings = get_settings()
    setup_logging(settings.log_level)

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
