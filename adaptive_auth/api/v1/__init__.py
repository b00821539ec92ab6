# =============================================================================
# API V1 MODULE INITIALIZATION
# =============================================================================
# File: api/v1/__init__.py
# Description: API v1 module exports and router aggregation
# =============================================================================

from fastapi import APIRouter

from adaptive_auth.api.v1.auth_routes import router as auth_router
from adaptive_auth.api.v1.health_routes import router as health_router


# Create main API v1 router
api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth_router)


__all__ = [
    "api_router",
    "auth_router",
    "health_router",
]
