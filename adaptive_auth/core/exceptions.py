# =============================================================================
# ADAPTIVE AUTH - CORE EXCEPTIONS MODULE
# =============================================================================
# File: core/exceptions.py
# Description: Error hierarchy of the engine, each class carrying its
#              machine code and the HTTP status the API answers with
# =============================================================================

from typing import Optional, Dict, Any, List
from fastapi import status


class AuthSystemException(Exception):
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    ENGINE ERROR ROOT                                     │
    │  Subclasses only override the class-level defaults below; the API       │
    │  layer turns any instance into {error, error_code, message, details}    │
    └─────────────────────────────────────────────────────────────────────────┘
    """

    default_message: str = "An error occurred"
    error_code: str = "AUTH_ERROR"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.details = dict(details or {})
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(AuthSystemException):
    """Bad connection parameters, unknown engine or unsafe identifier."""

    default_message = "Invalid configuration"
    error_code = "CONFIGURATION_ERROR"


# -----------------------------------------------------------------------------
# Login failures
# -----------------------------------------------------------------------------
# All of them answer 401 AUTHENTICATION_FAILED so a caller never learns
# whether the login exists, the password was wrong or the client is locked.

class AuthenticationError(AuthSystemException):
    default_message = "Authentication failed"
    error_code = "AUTHENTICATION_FAILED"
    status_code = status.HTTP_401_UNAUTHORIZED


class InvalidCredentialsError(AuthenticationError):
    default_message = "Login or password incorrect"

    def __init__(self, details: Optional[Dict[str, Any]] = None):
        super().__init__(details=details)


class RateLimitExceededError(AuthenticationError):
    default_message = "Too many failed attempts. Please try again later"

    def __init__(self, retry_after: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(details=details)
        if retry_after:
            self.details["retry_after"] = retry_after


class HookRejectedError(AuthenticationError):
    """The pre-authentication hook returned False."""

    default_message = "Authentication refused"

    def __init__(self, details: Optional[Dict[str, Any]] = None):
        super().__init__(details=details)


class LoginTokenError(AuthenticationError):
    default_message = "Invalid or expired login token"

    def __init__(self, details: Optional[Dict[str, Any]] = None):
        super().__init__(details=details)


# -----------------------------------------------------------------------------
# Account records
# -----------------------------------------------------------------------------

class ConflictError(AuthSystemException):
    default_message = "Resource already exists"
    error_code = "CONFLICT"
    status_code = status.HTTP_409_CONFLICT


class UserExistsError(ConflictError):
    error_code = "USER_EXISTS"

    def __init__(self, field: str = "login", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=f"User with this {field} already exists", details=details)


class UserNotFoundError(AuthSystemException):
    default_message = "User not found"
    error_code = "USER_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, login: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=f"User '{login}' not found" if login else None, details=details)


# -----------------------------------------------------------------------------
# Input validation
# -----------------------------------------------------------------------------

class ValidationError(AuthSystemException):
    default_message = "Validation failed"
    error_code = "VALIDATION_ERROR"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(
        self,
        message: Optional[str] = None,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        if message is None and field:
            message = f"{self.default_message} for field: {field}"
        super().__init__(message=message, details=details)
        self.field = field


class PasswordValidationError(ValidationError):
    default_message = "Password does not meet requirements"
    error_code = "PASSWORD_VALIDATION_ERROR"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, field="password", details=details)


class MandatoryFieldError(ValidationError):
    """An account payload lacks NOT NULL columns without a default."""

    error_code = "MANDATORY_FIELD_MISSING"

    def __init__(self, fields: List[str], details: Optional[Dict[str, Any]] = None):
        self.fields = list(fields)
        super().__init__(
            message=f"Missing mandatory fields: {', '.join(self.fields)}",
            details={**(details or {}), "missing_fields": self.fields},
        )


# -----------------------------------------------------------------------------
# Storage back ends
# -----------------------------------------------------------------------------

class DatabaseError(AuthSystemException):
    default_message = "Database error"
    error_code = "DATABASE_ERROR"


class ConnectivityError(DatabaseError):
    """The database server is unreachable or refused the credentials."""

    default_message = "Failed to connect to database"
    error_code = "DATABASE_CONNECTION_ERROR"


class SchemaError(DatabaseError):
    """The user table cannot be found, created or described."""

    default_message = "Schema error"
    error_code = "SCHEMA_ERROR"


class DatabaseQueryError(DatabaseError):
    default_message = "Database query failed"
    error_code = "DATABASE_QUERY_ERROR"


class DatabaseIntegrityError(DatabaseQueryError):
    """Unique or NOT NULL constraint violated by a write."""

    default_message = "Database constraint violated"
    error_code = "DATABASE_INTEGRITY_ERROR"


class SessionStoreError(AuthSystemException):
    default_message = "Session store error"
    error_code = "SESSION_STORE_ERROR"


class RedisConnectionError(SessionStoreError):
    default_message = "Failed to connect to Redis"
    error_code = "REDIS_CONNECTION_ERROR"

    def __init__(self, details: Optional[Dict[str, Any]] = None):
        super().__init__(details=details)
