# =============================================================================
# SESSION MODULE INITIALIZATION
# =============================================================================
# File: session/__init__.py
# Description: Session module exports
# =============================================================================

from adaptive_auth.session.models import SessionData, SessionSlots
from adaptive_auth.session.storage import (
    ISessionStore,
    MemorySessionStore,
    RedisSessionStore,
)
from adaptive_auth.session.manager import SessionManager

__all__ = [
    "SessionData",
    "SessionSlots",
    "ISessionStore",
    "MemorySessionStore",
    "RedisSessionStore",
    "SessionManager",
]
