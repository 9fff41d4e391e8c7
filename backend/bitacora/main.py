"""Bitácora de Iniciativas backend: FastAPI application entry point."""

import signal
import threading
import uuid
from contextlib import asynccontextmanager

# configure_structlog must run before the other bitacora imports
# (structlog caches the processor chain on first use).
from bitacora.core.logging import configure_structlog
from bitacora.core.config import get_settings as _get_settings_early

_early_settings = _get_settings_early()
configure_structlog(
    log_level=_early_settings.log_level or ("DEBUG" if _early_settings.debug else "INFO"),
    json_logs=not _early_settings.debug,
    service=_early_settings.app_name,
    gateway_backend=_early_settings.gateway_backend,
)

import structlog

from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bitacora.api.routes import api_router
from bitacora.core.config import get_settings
from bitacora.core.exceptions import BitacoraError, ConfirmationRequiredError
from bitacora.db import close_db, init_db
from bitacora.gateway.memory import InMemoryStore
from bitacora.gateway.storage import InMemoryObjectStorage
from bitacora.middleware.correlation import (
    setup_correlation_middleware,
    get_correlation_id,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # SIGTERM flips this so /api/health answers 503 while connections drain
    app.state.shutting_down = False

    def handle_sigterm(signum, frame):
        app.state.shutting_down = True
        logger.info("sigterm_received", action="health_check_503_draining_connections")

    # signal handlers can only be installed from the main thread
    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGTERM, handle_sigterm)

    settings = get_settings()
    logger.info(
        "startup_begin",
        app_name=settings.app_name,
        debug=settings.debug,
        gateway_backend=settings.gateway_backend,
    )

    if settings.gateway_backend == "sql":
        await init_db()
        logger.info("db_initialized")
    else:
        logger.info("memory_gateway_enabled", bucket=settings.storage_bucket)

    yield

    logger.info("shutdown_begin")
    if settings.gateway_backend == "sql":
        await close_db()
    logger.info("shutdown_complete")


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Global exception handler for HTTPException with debug_id tracking."""
    debug_id = str(uuid.uuid4())

    logger.error(
        "http_exception",
        status_code=exc.status_code,
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
        user_id=getattr(request.state, "user_id", None),
        detail=exc.detail,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "debug_id": debug_id},
        headers=getattr(exc, "headers", None),
    )


async def bitacora_exception_handler(request: Request, exc: BitacoraError) -> JSONResponse:
    """Map domain and gateway errors to their HTTP status.

    Client errors are logged as warnings, gateway failures as errors. A
    missing confirmation also returns the prompt to show.
    """
    debug_id = str(uuid.uuid4())
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "request_failed",
        status_code=exc.status_code,
        error_type=type(exc).__name__,
        error_code=getattr(exc, "code", None),
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
        user_id=getattr(request.state, "user_id", None),
        detail=str(exc),
    )

    content = {"detail": str(exc), "debug_id": debug_id}
    if isinstance(exc, ConfirmationRequiredError):
        content["prompt"] = exc.prompt
    return JSONResponse(status_code=exc.status_code, content=content)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for unhandled errors. Returns a generic 500."""
    debug_id = str(uuid.uuid4())

    logger.error(
        "unhandled_exception",
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
        user_id=getattr(request.state, "user_id", None),
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "debug_id": debug_id},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Initiative tracking with stage lifecycle, log entries and team membership",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # One store per app instance when running on the in-memory gateway
    app.state.memory_store = InMemoryStore()
    app.state.memory_storage = InMemoryObjectStorage(bucket=settings.storage_bucket)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(dict.fromkeys([settings.frontend_url, *settings.cors_origins])),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Correlation ID middleware (runs first on incoming requests)
    setup_correlation_middleware(app)

    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(BitacoraError)(bitacora_exception_handler)
    app.exception_handler(Exception)(generic_exception_handler)

    app.include_router(api_router, prefix="/api")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "bitacora.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
