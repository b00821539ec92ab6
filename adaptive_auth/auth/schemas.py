# =============================================================================
# ADAPTIVE AUTH - AUTH SCHEMAS
# =============================================================================
# File: auth/schemas.py
# Description: Pydantic models for the table mapping and the HTTP API
# =============================================================================

from typing import Any, Dict, List, Mapping, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    field_validator,
)

from adaptive_auth.core.exceptions import ConfigurationError
from adaptive_auth.utils.helpers import is_valid_identifier


# =============================================================================
# BASE SCHEMAS
# =============================================================================

class BaseSchema(BaseModel):
    """Base schema with common configuration."""
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
    )


# =============================================================================
# TABLE MAPPING
# =============================================================================

class TableFieldMapping(BaseModel):
    """
    Which table and columns hold the accounts.

    Defaults match the historical French schema (``utilisateur`` with
    ``login`` / ``mot_de_passe``). Every name must be a plain identifier
    because it is interpolated into SQL.
    """
    model_config = ConfigDict(frozen=True)

    table_name: str = "utilisateur"
    login_column: str = "login"
    password_column: str = "mot_de_passe"
    log_file_path: str = "auth_erreurs.log"
    auto_create_table: bool = True
    token_column: str = "token_auth"
    token_expiry_column: str = "token_expiry"

    @field_validator(
        "table_name", "login_column", "password_column",
        "token_column", "token_expiry_column",
    )
    @classmethod
    def validate_identifier(cls, v: str) -> str:
        if not is_valid_identifier(v):
            raise ValueError(f"'{v}' is not a valid SQL identifier")
        return v

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]] = None) -> "TableFieldMapping":
        """
        Build a mapping from loose configuration.

        Raises:
            ConfigurationError: If a name is not a valid identifier
        """
        try:
            return cls(**dict(data or {}))
        except PydanticValidationError as e:
            raise ConfigurationError(
                message="Invalid table mapping",
                details={"errors": [err["msg"] for err in e.errors()]},
            )


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class RegisterRequest(BaseSchema):
    """Account creation request; ``fields`` carries the extra columns."""
    login: str = Field(..., description="Login of the new account", examples=["alice"])
    password: str = Field(..., description="Plain text password", examples=["s3cret!"])
    fields: Dict[str, Any] = Field(
        default_factory=dict,
        description="Values for the other columns of the user table",
        examples=[{"email": "alice@example.com"}],
    )


class LoginRequest(BaseSchema):
    login: str = Field(..., examples=["alice"])
    password: str = Field(..., examples=["s3cret!"])


class TokenLoginRequest(BaseSchema):
    token: str = Field(..., min_length=1, description="One-time login token")


class UpdateUserRequest(BaseSchema):
    fields: Dict[str, Any] = Field(..., description="Columns to change")


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class MessageResponse(BaseModel):
    success: bool = True
    message: str


class AuthResponse(BaseModel):
    """Outcome of login/registration plus the session's user snapshot."""
    success: bool
    message: str
    user: Optional[Dict[str, Any]] = None


class SchemaResponse(BaseModel):
    table_name: str
    login_column: str
    password_column: str
    columns: Dict[str, Dict[str, Any]]
    mandatory_fields: List[str]
