# =============================================================================
# ADAPTIVE AUTH - SESSION STORAGE
# =============================================================================
# File: session/storage.py
# Description: Per-client key/value stores holding session slots
#              In-process dictionary or Redis hashes
# =============================================================================

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional
import copy
import json
import time

from adaptive_auth.core.config import settings
from adaptive_auth.db.adapters.redis_adapter import RedisAdapter
from adaptive_auth.utils.helpers import safe_json_loads, to_jsonable


class ISessionStore(ABC):
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    SESSION STORE INTERFACE                               │
    │  Named slots of JSON-compatible values, partitioned by client id        │
    └─────────────────────────────────────────────────────────────────────────┘

    Read-modify-write sequences on a slot are not locked; two concurrent
    requests of the same client can overwrite each other's update.
    """

    @abstractmethod
    async def get(self, client_id: str, slot: str, default: Any = None) -> Any:
        """Read one slot."""
        pass

    @abstractmethod
    async def set(self, client_id: str, slot: str, value: Any) -> None:
        """Write one slot."""
        pass

    @abstractmethod
    async def delete(self, client_id: str, slot: str) -> None:
        """Remove one slot."""
        pass

    @abstractmethod
    async def clear(self, client_id: str) -> None:
        """Remove every slot of a client."""
        pass

    async def ping(self) -> bool:
        """Whether the backing store answers."""
        return True


class MemorySessionStore(ISessionStore):
    """
    Process-local store. Values are copied in and out so callers can never
    mutate stored state by accident.

    Like the Redis hash expiry, a client's slots live ``ttl`` seconds after
    its last write. Expired clients are dropped lazily on ``get`` and swept
    on every ``set``.
    """

    def __init__(self, ttl: Optional[int] = None, clock: Callable[[], float] = time.time):
        self._data: Dict[str, Dict[str, Any]] = {}
        self._written_at: Dict[str, float] = {}
        self._ttl = settings.session_ttl if ttl is None else ttl
        self._clock = clock

    def _expired(self, client_id: str, now: float) -> bool:
        return now - self._written_at.get(client_id, now) >= self._ttl

    def _sweep(self, now: float) -> None:
        for client_id in [c for c in self._data if self._expired(c, now)]:
            self._forget(client_id)

    def _forget(self, client_id: str) -> None:
        self._data.pop(client_id, None)
        self._written_at.pop(client_id, None)

    async def get(self, client_id: str, slot: str, default: Any = None) -> Any:
        if client_id in self._data and self._expired(client_id, self._clock()):
            self._forget(client_id)
        slots = self._data.get(client_id)
        if slots is None or slot not in slots:
            return default
        return copy.deepcopy(slots[slot])

    async def set(self, client_id: str, slot: str, value: Any) -> None:
        now = self._clock()
        self._sweep(now)
        self._data.setdefault(client_id, {})[slot] = to_jsonable(copy.deepcopy(value))
        self._written_at[client_id] = now

    async def delete(self, client_id: str, slot: str) -> None:
        slots = self._data.get(client_id)
        if slots is not None:
            slots.pop(slot, None)
            if not slots:
                self._forget(client_id)

    async def clear(self, client_id: str) -> None:
        self._forget(client_id)

    def __len__(self) -> int:
        return len(self._data)


class RedisSessionStore(ISessionStore):
    """
    Redis-backed store shared between application processes.

    Key Patterns:
        - auth_client:{client_id} → HASH of slot → JSON value
    """

    KEY_PREFIX = "auth_client:"

    def __init__(self, redis: RedisAdapter, ttl: Optional[int] = None):
        """
        Args:
            redis: Connected Redis adapter
            ttl: Idle lifetime of a client's hash (default: settings.session_ttl)
        """
        self._redis = redis
        self._ttl = settings.session_ttl if ttl is None else ttl

    def _key(self, client_id: str) -> str:
        return f"{self.KEY_PREFIX}{client_id}"

    async def get(self, client_id: str, slot: str, default: Any = None) -> Any:
        raw = await self._redis.hget(self._key(client_id), slot)
        if raw is None:
            return default
        return safe_json_loads(raw, default)

    async def set(self, client_id: str, slot: str, value: Any) -> None:
        key = self._key(client_id)
        await self._redis.hset(key, {slot: json.dumps(to_jsonable(value))})
        await self._redis.expire(key, self._ttl)

    async def delete(self, client_id: str, slot: str) -> None:
        await self._redis.hdel(self._key(client_id), slot)

    async def clear(self, client_id: str) -> None:
        await self._redis.delete(self._key(client_id))

    async def ping(self) -> bool:
        return await self._redis.check_health()
