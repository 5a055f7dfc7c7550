"""
Dependency injection for FastAPI.
"""
from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from policygate.core.config import settings
from policygate.infrastructure.cache.redis import get_redis
from policygate.infrastructure.database.base import get_db
from policygate.repositories.store import SQLAlchemyPolicyStore
from policygate.services.authorization import (
    AuthorizationService,
    EffectiveSetCache,
    build_cache,
)


async def get_organization_id(
    x_organization_id: str | None = Header(default=None, alias=settings.ORGANIZATION_HEADER),
) -> str:
    """
    Get the organization the request is scoped to.

    Authentication happens upstream and sets this header.

    Raises:
        HTTPException: If the header is missing
    """
    if not x_organization_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Missing {settings.ORGANIZATION_HEADER} header",
        )
    return x_organization_id


async def get_effective_set_cache(request: Request) -> EffectiveSetCache:
    """
    Get the process-wide effective set cache, creating it on first use.
    """
    cache = getattr(request.app.state, "authz_cache", None)
    if cache is None:
        client = await get_redis() if settings.AUTHZ_CACHE_BACKEND == "redis" else None
        cache = build_cache(settings, client)
        request.app.state.authz_cache = cache
    return cache


async def get_authorization_service(
    db: AsyncSession = Depends(get_db),
    cache: EffectiveSetCache = Depends(get_effective_set_cache),
) -> AuthorizationService:
    """
    Get an authorization service bound to the request's session.
    """
    return AuthorizationService(SQLAlchemyPolicyStore(db), cache)
