"""
API v1 router configuration.
"""
from fastapi import APIRouter

from policygate.api.v1.endpoints import authorization, health

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(health.router, tags=["health"])
api_router.include_router(authorization.router, prefix="/authorization", tags=["authorization"])
