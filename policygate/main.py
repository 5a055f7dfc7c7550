"""
PolicyGate API - Main application entry point.
"""
import time
from contextlib import asynccontextmanager
from typing import Any, Dict

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from structlog.contextvars import bind_contextvars, clear_contextvars

from policygate.api.v1.router import api_router
from policygate.core.config import settings
from policygate.core.exceptions import CorruptStateError, PolicyGateException
from policygate.core.logging import get_logger, log_error_details, log_request_details, setup_logging
from policygate.infrastructure.cache.redis import close_redis
from policygate.infrastructure.database.base import get_engine

# Setup logging
setup_logging()
logger = get_logger(__name__)


# Initialize Sentry if configured
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT or settings.ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        integrations=[
            SqlalchemyIntegration(),
        ],
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    """
    logger.info(
        "Starting PolicyGate API",
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        cache_backend=settings.AUTHZ_CACHE_BACKEND,
    )

    yield

    logger.info("Shutting down PolicyGate API")
    await close_redis()
    await get_engine().dispose()


# Create FastAPI application
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.APP_VERSION,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json" if not settings.is_production else None,
    docs_url=f"{settings.API_V1_PREFIX}/docs" if not settings.is_production else None,
    redoc_url=None,
    lifespan=lifespan,
)


# Add request ID middleware
@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Add unique request ID to each request."""
    request_id = request.headers.get("X-Request-ID", str(time.time_ns()))

    # Bind request ID to logging context
    clear_contextvars()
    bind_contextvars(request_id=request_id)

    start_time = time.time()
    logger.info(
        "Request started",
        **log_request_details(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            organization_id=request.headers.get(settings.ORGANIZATION_HEADER),
        ),
    )

    response = await call_next(request)

    logger.info(
        "Request completed",
        status_code=response.status_code,
        duration_ms=round((time.time() - start_time) * 1000, 2),
    )
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(PolicyGateException)
async def policygate_exception_handler(request: Request, exc: PolicyGateException):
    """Render engine errors. An error is never an allow."""
    log = logger.error if isinstance(exc, CorruptStateError) else logger.warning
    log(
        "Authorization error",
        **log_error_details(exc, path=request.url.path, details=exc.details),
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "access": False,
            "detail": exc.message,
            "error_code": exc.error_code,
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions."""
    logger.error(
        "Unhandled exception",
        exc_info=exc,
        path=request.url.path,
        method=request.method,
    )

    # Don't expose internal errors in production
    if settings.is_production:
        return JSONResponse(
            status_code=500,
            content={"access": False, "detail": "An internal error occurred"},
        )

    return JSONResponse(
        status_code=500,
        content={"access": False, "detail": str(exc)},
    )


# Include API router
app.include_router(api_router, prefix=settings.API_V1_PREFIX)


# Root endpoint
@app.get("/")
async def root() -> Dict[str, Any]:
    """
    Root endpoint.

    Returns:
        API information
    """
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": f"{settings.API_V1_PREFIX}/docs" if not settings.is_production else "Disabled in production",
    }
