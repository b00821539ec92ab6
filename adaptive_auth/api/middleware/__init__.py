# =============================================================================
# MIDDLEWARE MODULE INITIALIZATION
# =============================================================================
# File: api/middleware/__init__.py
# Description: Middleware module exports
# =============================================================================

from adaptive_auth.api.middleware.client_identity import (
    ClientIdentityMiddleware,
    get_client_ip,
)

__all__ = [
    "ClientIdentityMiddleware",
    "get_client_ip",
]
