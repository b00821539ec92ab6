# =============================================================================
# ADAPTIVE AUTH - API DEPENDENCIES
# =============================================================================
# File: api/dependencies.py
# Description: FastAPI dependencies resolving the engine for a request
# =============================================================================

from typing import Annotated

from fastapi import Depends, Request

from adaptive_auth.api.middleware.client_identity import get_client_ip
from adaptive_auth.auth.service import AuthenticationEngine
from adaptive_auth.core.exceptions import ConfigurationError


# =============================================================================
# ENGINE DEPENDENCIES
# =============================================================================

def get_engine(request: Request) -> AuthenticationEngine:
    """
    Application-wide engine created during startup.

    Raises:
        ConfigurationError: If the application started without an engine
    """
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise ConfigurationError(message="Authentication engine is not available")
    return engine


Engine = Annotated[AuthenticationEngine, Depends(get_engine)]


def get_client_engine(request: Request, engine: Engine) -> AuthenticationEngine:
    """Engine view bound to the calling client's cookie and IP."""
    client_id = getattr(request.state, "client_id", None)
    if client_id is None:
        raise ConfigurationError(message="ClientIdentityMiddleware is not installed")
    client_ip = getattr(request.state, "client_ip", None) or get_client_ip(request)
    return engine.for_client(client_id, client_ip)


ClientEngine = Annotated[AuthenticationEngine, Depends(get_client_engine)]
