# =============================================================================
# ADAPTIVE AUTH - SESSION MANAGER
# =============================================================================
# File: session/manager.py
# Description: Authenticated-session lifecycle for one client
# =============================================================================

from typing import Any, Dict, Mapping

from adaptive_auth.session.models import SessionData, SessionSlots
from adaptive_auth.session.storage import ISessionStore


class SessionManager:
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    SESSION MANAGER                                       │
    │  Reads and writes the authentication slots of a single client           │
    └─────────────────────────────────────────────────────────────────────────┘

    Session Flow:
        1. start():   flag + login + user snapshot written after a login
        2. current(): slots read back into a SessionData
        3. refresh(): user snapshot replaced after a profile update
        4. end():     authentication slots removed (attempt history kept)
    """

    def __init__(self, store: ISessionStore, client_id: str):
        self._store = store
        self._client_id = client_id

    @property
    def client_id(self) -> str:
        return self._client_id

    async def start(self, login: str, user_record: Mapping[str, Any]) -> SessionData:
        await self._store.set(self._client_id, SessionSlots.AUTHENTICATED, True)
        await self._store.set(self._client_id, SessionSlots.LOGIN, login)
        await self._store.set(self._client_id, SessionSlots.USER, dict(user_record))
        return SessionData(is_authenticated=True, login=login, user_record=dict(user_record))

    async def current(self) -> SessionData:
        authenticated = await self._store.get(self._client_id, SessionSlots.AUTHENTICATED, False)
        login = await self._store.get(self._client_id, SessionSlots.LOGIN)
        if not authenticated or login is None:
            return SessionData()
        user: Dict[str, Any] = await self._store.get(self._client_id, SessionSlots.USER, {}) or {}
        return SessionData(is_authenticated=True, login=login, user_record=user)

    async def is_authenticated(self) -> bool:
        return (await self.current()).is_authenticated

    async def refresh(self, user_record: Mapping[str, Any], login: str) -> None:
        await self._store.set(self._client_id, SessionSlots.USER, dict(user_record))
        await self._store.set(self._client_id, SessionSlots.LOGIN, login)

    async def end(self) -> None:
        for slot in (SessionSlots.AUTHENTICATED, SessionSlots.LOGIN, SessionSlots.USER):
            await self._store.delete(self._client_id, slot)
