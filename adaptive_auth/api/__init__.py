# =============================================================================
# API MODULE INITIALIZATION
# =============================================================================
# File: api/__init__.py
# Description: API module exports
# =============================================================================

from adaptive_auth.api.v1 import api_router, health_router
from adaptive_auth.api.middleware import ClientIdentityMiddleware, get_client_ip

__all__ = [
    "api_router",
    "health_router",
    "ClientIdentityMiddleware",
    "get_client_ip",
]
