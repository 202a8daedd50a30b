"""FastAPI application entrypoint for the cstash snippet service."""

from __future__ import annotations

import time

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import JSONResponse, Response

from cstash.config import Settings, get_settings
from cstash.lib.logger import configure_logging, get_logger
from cstash.lib.metrics import METRICS
from cstash.lib.rate_limiter import RateLimiter
from cstash.snippets import SnippetStore, router as snippets_router
from cstash.tags.routes import router as tags_router

API_PREFIX = "/api/v1"
INTERNAL_ERROR_DETAIL = "an internal server error occurred"

logger = get_logger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application with its own store, limiter and middleware."""

    settings = settings or get_settings()
    configure_logging(settings.log_level)

    application = FastAPI(title="cstash", version="0.1.0")
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    application.state.settings = settings
    application.state.snippet_store = SnippetStore()
    application.state.metrics = METRICS
    application.state.rate_limiter = RateLimiter()
    application.state.rate_limit_per_minute = settings.request_rate_limit_per_minute

    application.include_router(snippets_router, prefix=API_PREFIX, tags=["snippets"])
    application.include_router(tags_router, prefix=API_PREFIX, tags=["tags"])

    application.middleware("http")(log_requests)
    application.add_exception_handler(RequestValidationError, request_validation_handler)
    application.add_exception_handler(Exception, internal_error_handler)

    application.get("/health", tags=["system"], summary="Health check")(health_check)
    application.get("/metrics", tags=["system"], summary="Metrics endpoint")(metrics_endpoint)

    logger.info(
        "app_configured",
        extra={"env": settings.app_env, "rate_limit_per_minute": settings.request_rate_limit_per_minute},
    )
    return application


async def log_requests(request: Request, call_next) -> Response:
    """Emit one structured event per handled request."""

    started = time.perf_counter()
    status = 500
    try:
        response = await call_next(request)
        status = response.status_code
        return response
    finally:
        logger.info(
            "http.request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": status,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report undecodable or invalid request bodies as 400 rather than 422."""

    errors = exc.errors()
    logger.debug(
        "http.bad_request",
        extra={"path": request.url.path, "errors": [error.get("msg") for error in errors]},
    )
    detail = [{"loc": list(error.get("loc", ())), "msg": error.get("msg")} for error in errors]
    return JSONResponse({"detail": detail}, status_code=400)


async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    METRICS.increment("http.error")
    logger.exception(
        "http.internal_error",
        extra={"method": request.method, "path": request.url.path},
        exc_info=exc,
    )
    return JSONResponse({"detail": INTERNAL_ERROR_DETAIL}, status_code=500)


async def health_check() -> JSONResponse:
    """Return liveness response for uptime monitoring."""
    payload = {"ok": True, "data": {"status": "healthy"}}
    return JSONResponse(content=payload)


async def metrics_endpoint() -> JSONResponse:
    snapshot = METRICS.snapshot()
    return JSONResponse({"ok": True, "data": snapshot})


app = create_app()
