# =============================================================================
# ADAPTIVE AUTH - REDIS ADAPTER
# =============================================================================
# File: db/adapters/redis_adapter.py
# Description: Redis adapter backing the shared per-client session store
#              Uses redis-py async client
# =============================================================================

from typing import Any, Dict, Optional

from redis.asyncio import Redis, ConnectionPool
from redis.exceptions import RedisError

from adaptive_auth.core.config import settings
from adaptive_auth.core.exceptions import RedisConnectionError

POOL_DEFAULTS: Dict[str, Any] = {
    "max_connections": 10,
    "socket_timeout": 5.0,
    "socket_connect_timeout": 5.0,
    "retry_on_timeout": True,
    "decode_responses": True,
}


class RedisAdapter:
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    REDIS ADAPTER                                         │
    │  Only the hash commands the session store needs: one hash per client    │
    │  (auth_client:{client_id}) with one field per session slot              │
    └─────────────────────────────────────────────────────────────────────────┘

    Pass ``client`` to reuse an existing connection (fakeredis in tests);
    the adapter then leaves closing it to the owner.
    """

    def __init__(self, redis_url: Optional[str] = None, client: Optional[Redis] = None, **kwargs: Any):
        self._redis_url = redis_url or settings.redis_url
        self._pool_options = {**POOL_DEFAULTS, **kwargs}
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = client
        self._owns_client = client is None
        self._is_connected = False

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    async def connect(self) -> None:
        """Open the pool if needed and PING; raises RedisConnectionError."""
        if self._is_connected:
            return
        try:
            if self._client is None:
                self._pool = ConnectionPool.from_url(self._redis_url, **self._pool_options)
                self._client = Redis(connection_pool=self._pool)
            await self._client.ping()
        except (RedisError, OSError) as e:
            raise RedisConnectionError(details={"error": str(e), "url": self._redis_url})
        self._is_connected = True

    async def disconnect(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
        if self._pool is not None:
            await self._pool.disconnect()
            self._pool = None
        self._is_connected = False

    def _require_client(self) -> Redis:
        if self._client is None or not self._is_connected:
            raise RuntimeError("Redis not connected. Call connect() first.")
        return self._client

    async def check_health(self) -> bool:
        try:
            return bool(await self._require_client().ping())
        except (RedisError, RuntimeError, OSError):
            return False

    # -------------------------------------------------------------------------
    # Commands used by RedisSessionStore
    # -------------------------------------------------------------------------

    async def hget(self, name: str, key: str) -> Optional[str]:
        value = await self._require_client().hget(name, key)
        return value.decode("utf-8") if isinstance(value, bytes) else value

    async def hset(self, name: str, mapping: Dict[str, str]) -> int:
        return await self._require_client().hset(name, mapping=mapping)

    async def hdel(self, name: str, *keys: str) -> int:
        return await self._require_client().hdel(name, *keys)

    async def expire(self, name: str, ttl: int) -> bool:
        return await self._require_client().expire(name, ttl)

    async def delete(self, key: str) -> bool:
        return await self._require_client().delete(key) > 0
