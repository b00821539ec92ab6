# =============================================================================
# ADAPTIVE AUTH - SESSION MODELS
# =============================================================================
# File: session/models.py
# Description: Pydantic models for per-client session data
# =============================================================================

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class SessionData(BaseModel):
    """
    Authenticated state of one client.

    Rebuilt from the individual session slots, so a half-written session
    (e.g. ``login`` without the flag) reads as unauthenticated.
    """
    is_authenticated: bool = Field(False, description="Whether the client is logged in")
    login: Optional[str] = Field(None, description="Login of the authenticated user")
    user_record: Dict[str, Any] = Field(
        default_factory=dict,
        description="Snapshot of the user row, password hash excluded",
    )


class SessionSlots:
    """Names of the values kept for each client."""
    AUTHENTICATED = "authenticated"
    LOGIN = "login"
    USER = "user"
    LOGIN_ATTEMPTS = "login_attempts"
