"""
Health check endpoints.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from policygate.core.config import settings
from policygate.infrastructure.database.base import get_db

router = APIRouter()


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint.

    Returns:
        Health status
    """
    return {
        "status": "healthy",
        "service": "policygate-api",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache_backend": settings.AUTHZ_CACHE_BACKEND,
    }


@router.get("/health/ready")
async def readiness_check(
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """
    Readiness check including the database.

    Returns:
        Readiness status with component health
    """
    components = {
        "api": "healthy",
        "database": "unknown",
    }

    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        components["database"] = "healthy"
    except (SQLAlchemyError, OSError):
        components["database"] = "unhealthy"

    all_healthy = all(status == "healthy" for status in components.values())

    return {
        "status": "ready" if all_healthy else "not ready",
        "components": components,
    }
