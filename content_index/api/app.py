"""FastAPI application entry point.

Configures the application with logging, exception handling, metrics and
health checks.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from content_index import __version__
from content_index.api.routes import router
from content_index.config import get_settings
from content_index.container import ContentIndexServices, build_services
from content_index.exceptions import ContentIndexError, ErrorCode
from content_index.logging_config import get_logger, setup_logging
from content_index.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    get_metrics_content_type,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Builds the services on startup unless they were injected, and closes
    what it built on shutdown.
    """
    settings = get_settings()
    setup_logging(level=settings.log_level)
    logger.info(
        "Starting content index",
        extra={
            "version": __version__,
            "environment": settings.environment.value,
        },
    )

    built: ContentIndexServices | None = None
    if getattr(app.state, "services", None) is None:
        built = build_services(settings)
        app.state.services = built

    yield

    if built is not None:
        await built.close()
        app.state.services = None
    logger.info("Shutting down content index")


def create_app(services: ContentIndexServices | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        services: Pre-built services; built from settings at startup if omitted.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Semantic Content Index",
        description="Embedding index and scoped similarity search for lessons and resources",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.services = services

    app.add_middleware(MetricsMiddleware)
    app.add_exception_handler(ContentIndexError, content_index_exception_handler)

    app.add_api_route("/health", health_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/ready", readiness_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/live", liveness_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/metrics", metrics_endpoint, methods=["GET"], tags=["Metrics"])
    app.include_router(router)

    return app


async def content_index_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Convert ContentIndexError into a structured JSON response."""
    if not isinstance(exc, ContentIndexError):
        return JSONResponse(
            status_code=500,
            content={"error": {"code": "IDX-1000", "message": str(exc), "details": {}}},
        )

    logger.error(
        f"Request failed: {exc.message}",
        extra={
            "error_code": exc.code.value,
            "path": request.url.path,
            "details": exc.details,
        },
    )

    return JSONResponse(
        status_code=_get_status_code(exc.code),
        content=exc.to_dict(),
    )


_STATUS_CODES = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.EMBEDDING_SERVICE_ERROR: 502,
    ErrorCode.EMBEDDING_DIMENSION_MISMATCH: 502,
    ErrorCode.EMBEDDING_TIMEOUT: 504,
    ErrorCode.VECTOR_DIMENSION_MISMATCH: 409,
    ErrorCode.VECTOR_STORE_UNAVAILABLE: 503,
}


def _get_status_code(code: ErrorCode) -> int:
    """Map error code to HTTP status code."""
    return _STATUS_CODES.get(code, 500)


async def health_check() -> dict[str, Any]:
    """Basic health check endpoint.

    Returns:
        Health status with version and timestamp.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def readiness_check(request: Request) -> dict[str, Any]:
    """Readiness check.

    Reports whether services are wired and the vector store answers.
    """
    services: ContentIndexServices | None = getattr(request.app.state, "services", None)
    checks: dict[str, str] = {"config": "ok"}

    if services is None:
        checks["services"] = "not_configured"
    else:
        checks["services"] = "ok"
        checks["vector_store"] = "ok" if await services.vector_store.ping() else "unreachable"

    all_ok = all(v == "ok" for v in checks.values())

    return {
        "status": "ready" if all_ok else "not_ready",
        "checks": checks,
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def liveness_check() -> dict[str, str]:
    """Liveness check."""
    return {"status": "alive"}


async def metrics_endpoint() -> Response:
    """Expose Prometheus metrics."""
    return Response(content=get_metrics(), media_type=get_metrics_content_type())


# Create the application instance
app = create_app()
