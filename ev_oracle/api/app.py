"""FastAPI application: spec routes, probes, metrics and error mapping."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from ev_oracle import __version__
from ev_oracle.api.routes import get_pipeline, router
from ev_oracle.config import get_settings, validate_settings
from ev_oracle.exceptions import ConfigurationError, ErrorCode, EVOracleError
from ev_oracle.logging_config import get_logger, setup_logging
from ev_oracle.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    get_metrics_content_type,
)

logger = get_logger(__name__)

# Codes not listed here are server errors (500).
STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.LLM_RATE_LIMIT: 429,
    ErrorCode.LLM_TIMEOUT: 504,
    ErrorCode.EMBEDDING_SERVICE_ERROR: 502,
    ErrorCode.KNOWLEDGE_STORE_ERROR: 502,
    ErrorCode.LLM_SERVICE_ERROR: 502,
    ErrorCode.LLM_EMPTY_RESPONSE: 502,
    ErrorCode.SPEC_PARSE_ERROR: 502,
}


def _now() -> str:
    return datetime.now(UTC).isoformat()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Configure logging on startup; close the shared pipeline on shutdown."""
    settings = get_settings()
    setup_logging(level=settings.log_level)
    logger.info(
        "EV Oracle API starting",
        extra={"version": __version__, "environment": settings.environment.value},
    )

    yield

    # Only close a pipeline that a request actually built
    if get_pipeline.cache_info().currsize:
        await get_pipeline().close()
        get_pipeline.cache_clear()
    logger.info("EV Oracle API stopped")


def create_app() -> FastAPI:
    """Build the application.

    Returns:
        FastAPI instance with middleware, handlers and routes installed.
    """
    app = FastAPI(
        title="EV Oracle",
        description="EV battery specifications from a vector knowledge base with LLM fallback",
        version=__version__,
        lifespan=lifespan,
        debug=get_settings().debug,
    )

    app.add_middleware(MetricsMiddleware)
    app.add_exception_handler(EVOracleError, ev_oracle_exception_handler)

    for path, endpoint in (
        ("/health", health_check),
        ("/health/ready", readiness_check),
        ("/health/live", liveness_check),
    ):
        app.add_api_route(path, endpoint, methods=["GET"], tags=["Health"])
    app.add_api_route("/metrics", metrics_endpoint, methods=["GET"], tags=["Observability"])
    app.include_router(router)

    return app


async def ev_oracle_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render an EVOracleError as ``{"error": {...}}`` with a mapped status."""
    if not isinstance(exc, EVOracleError):
        exc = EVOracleError(str(exc))

    status_code = _get_status_code(exc.code)
    log = logger.error if status_code >= 500 else logger.warning
    log(
        f"{request.method} {request.url.path} failed: {exc.message}",
        extra={"error_code": exc.code.value, "step": exc.step, "status_code": status_code},
    )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


def _get_status_code(error_code: ErrorCode) -> int:
    return STATUS_BY_CODE.get(error_code, 500)


async def health_check() -> dict[str, Any]:
    """Process is up; reports version."""
    return {"status": "healthy", "version": __version__, "timestamp": _now()}


async def readiness_check() -> dict[str, Any]:
    """Readiness probe.

    The service is ready when the configuration names every field its
    selected providers need; collaborators are not contacted.
    """
    try:
        validate_settings(get_settings())
    except ConfigurationError as e:
        config_status = e.message
    else:
        config_status = "ok"

    checks = {"config": config_status}
    ready = all(value == "ok" for value in checks.values())
    return {
        "status": "ready" if ready else "not_ready",
        "checks": checks,
        "timestamp": _now(),
    }


async def liveness_check() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "alive"}


async def metrics_endpoint() -> Response:
    """Prometheus scrape target."""
    return Response(content=get_metrics(), media_type=get_metrics_content_type())


app = create_app()
