# =============================================================================
# CORE MODULE INITIALIZATION
# =============================================================================
# File: core/__init__.py
# Description: Core module exports for centralized access
# =============================================================================

from adaptive_auth.core.config import settings, get_settings, Settings
from adaptive_auth.core.exceptions import (
    # Base
    AuthSystemException,
    ConfigurationError,

    # Authentication
    AuthenticationError,
    InvalidCredentialsError,
    RateLimitExceededError,
    HookRejectedError,
    LoginTokenError,

    # User
    ConflictError,
    UserExistsError,
    UserNotFoundError,

    # Validation
    ValidationError,
    PasswordValidationError,
    MandatoryFieldError,

    # Database
    DatabaseError,
    ConnectivityError,
    SchemaError,
    DatabaseQueryError,
    DatabaseIntegrityError,

    # Session store
    SessionStoreError,
    RedisConnectionError,
)
from adaptive_auth.core.security import (
    PasswordManager,
    PasswordValidator,
    password_manager,
    generate_secure_token,
    generate_session_id,
)

__all__ = [
    # Config
    "settings",
    "get_settings",
    "Settings",

    # Exceptions
    "AuthSystemException",
    "ConfigurationError",
    "AuthenticationError",
    "InvalidCredentialsError",
    "RateLimitExceededError",
    "HookRejectedError",
    "LoginTokenError",
    "ConflictError",
    "UserExistsError",
    "UserNotFoundError",
    "ValidationError",
    "PasswordValidationError",
    "MandatoryFieldError",
    "DatabaseError",
    "ConnectivityError",
    "SchemaError",
    "DatabaseQueryError",
    "DatabaseIntegrityError",
    "SessionStoreError",
    "RedisConnectionError",

    # Security
    "PasswordManager",
    "PasswordValidator",
    "password_manager",
    "generate_secure_token",
    "generate_session_id",
]
