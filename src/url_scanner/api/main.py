"""FastAPI application factory and entry point.

Creates the application instance, registers middleware, exception handlers
and the rate limiter, and mounts the scan and health routers.

Usage::

    # Development server (from project root)
    uvicorn url_scanner.api.main:app --reload

    # Production (via Docker / Gunicorn + Uvicorn workers)
    gunicorn url_scanner.api.main:app -k uvicorn.workers.UvicornWorker
"""

from __future__ import annotations

import time
import uuid
from typing import Callable

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from url_scanner.api.limiter import limiter
from url_scanner.api.metrics import (
    get_metrics_response,
    http_request_duration_seconds,
    http_requests_total,
)
from url_scanner.config.settings import get_settings
from url_scanner.core.exceptions import ScanAccessDeniedError, ScanNotFoundError
from url_scanner.core.logging_config import configure_logging, request_id_var

# ---------------------------------------------------------------------------
# Logging configuration: applied once at module import time so that log
# records emitted during app construction are captured correctly.
# The log level is re-applied inside create_app() after settings are loaded.
# ---------------------------------------------------------------------------

configure_logging("INFO")

logger = structlog.get_logger(__name__)


def _route_template(request: Request) -> str:
    """Return the matched route path (e.g. ``/scans/{request_id}/status``)."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application.

    Separated from the module-level ``app`` singleton so that tests can
    call ``create_app()`` with a patched settings environment before the
    singleton is created.

    Returns:
        A fully configured ``FastAPI`` instance.
    """
    settings = get_settings()

    # Re-apply logging configuration with the correct level from settings.
    configure_logging(settings.log_level)

    application = FastAPI(
        title=settings.app_name,
        description=(
            "Submit batches of URLs for asynchronous fetching and read back "
            "per-URL results with stored page content."
        ),
        version="0.1.0",
        debug=settings.debug,
        redirect_slashes=False,
    )

    # ---- Rate limiting -----------------------------------------------------

    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    application.add_middleware(SlowAPIMiddleware)

    # ---- Middleware --------------------------------------------------------

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---- Request logging middleware ----------------------------------------

    @application.middleware("http")
    async def request_logging_middleware(
        request: Request, call_next: Callable
    ) -> Response:
        """Log every incoming request and its response status + duration.

        Attaches a unique ``request_id`` to the structlog context so that all
        log lines emitted during a request can be correlated, and records
        the HTTP metrics.

        Args:
            request: The incoming HTTP request.
            call_next: The next middleware or route handler in the chain.

        Returns:
            The HTTP response from the handler.
        """
        request_id = str(uuid.uuid4())
        # Populate the ContextVar so stdlib logging records also carry the ID.
        request_id_var.set(request_id)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        start = time.perf_counter()
        response: Response | None = None
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error("unhandled_exception", exc_info=exc)
            raise
        finally:
            elapsed = time.perf_counter() - start
            status_code = getattr(response, "status_code", 500)
            log_fn = logger.warning if status_code >= 400 else logger.info
            log_fn(
                "request_complete",
                status_code=status_code,
                elapsed_ms=round(elapsed * 1000, 2),
            )
            path = _route_template(request)
            http_requests_total.labels(
                method=request.method, path=path, status=str(status_code)
            ).inc()
            http_request_duration_seconds.labels(method=request.method, path=path).observe(
                elapsed
            )

        response.headers["X-Request-ID"] = request_id
        return response

    # ---- Domain exception handlers -----------------------------------------

    @application.exception_handler(ScanNotFoundError)
    async def scan_not_found_handler(
        request: Request, exc: ScanNotFoundError  # noqa: ARG001
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": str(exc)},
        )

    @application.exception_handler(ScanAccessDeniedError)
    async def scan_access_denied_handler(
        request: Request, exc: ScanAccessDeniedError  # noqa: ARG001
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"detail": str(exc)},
        )

    # ---- Routers -----------------------------------------------------------

    from url_scanner.api.routes import health as health_routes  # noqa: PLC0415
    from url_scanner.scanner.router import router as scans_router  # noqa: PLC0415

    application.include_router(health_routes.router)
    application.include_router(scans_router, prefix="/scans", tags=["scans"])

    # ---- Lifecycle events -------------------------------------------------

    @application.on_event("startup")
    async def on_startup() -> None:
        """Log startup and make sure the content bucket exists.

        The bucket check is best-effort: an unreachable blob store is logged
        and surfaces later through ``/api/health``.
        """
        from url_scanner.api.dependencies import get_blob_store  # noqa: PLC0415

        try:
            await get_blob_store().ensure_bucket()
        except Exception:
            logger.warning("blob_store_bucket_check_failed", exc_info=True)
        logger.info(
            "application_startup",
            app_name=settings.app_name,
            debug=settings.debug,
            log_level=settings.log_level,
        )

    @application.on_event("shutdown")
    async def on_shutdown() -> None:
        """Log clean shutdown."""
        logger.info("application_shutdown")

    # ---- Health endpoint --------------------------------------------------

    @application.get("/health", tags=["system"], include_in_schema=True)
    async def health() -> JSONResponse:
        """Return a minimal process-level liveness status.

        Used by Docker health checks and load balancers that need a fast
        ``200 OK`` without performing any I/O.  Dependency checks are at
        ``/api/health``.

        Returns:
            JSON response with ``{"status": "ok"}``.
        """
        return JSONResponse({"status": "ok"})

    # ---- Metrics endpoint -------------------------------------------------

    if settings.metrics_enabled:

        @application.get("/metrics", tags=["system"], include_in_schema=False)
        async def metrics() -> Response:
            """Expose Prometheus metrics in text format."""
            body, content_type = get_metrics_response()
            return Response(content=body, media_type=content_type)

    return application


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

app = create_app()
"""The FastAPI application instance.

This is the ASGI callable passed to Uvicorn / Gunicorn.
"""
