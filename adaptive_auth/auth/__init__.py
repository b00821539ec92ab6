# =============================================================================
# ADAPTIVE AUTH - AUTH PACKAGE
# =============================================================================
# File: auth/__init__.py
# Description: Authentication engine and its building blocks
# =============================================================================

from adaptive_auth.auth.schemas import (
    TableFieldMapping,
    RegisterRequest,
    LoginRequest,
    TokenLoginRequest,
    UpdateUserRequest,
    MessageResponse,
    AuthResponse,
    SchemaResponse,
)
from adaptive_auth.auth.attempt_log import AttemptLogWriter, format_attempt_line
from adaptive_auth.auth.rate_limiter import RateLimiter
from adaptive_auth.auth.repository import UserRepository
from adaptive_auth.auth.service import AuthenticationEngine, PreAuthHook, PostAuthHook

__all__ = [
    # Schemas
    "TableFieldMapping",
    "RegisterRequest",
    "LoginRequest",
    "TokenLoginRequest",
    "UpdateUserRequest",
    "MessageResponse",
    "AuthResponse",
    "SchemaResponse",

    # Building blocks
    "AttemptLogWriter",
    "format_attempt_line",
    "RateLimiter",
    "UserRepository",

    # Engine
    "AuthenticationEngine",
    "PreAuthHook",
    "PostAuthHook",
]
