# =============================================================================
# ADAPTIVE AUTH - LOGIN RATE LIMITER
# =============================================================================
# File: auth/rate_limiter.py
# Description: Sliding-window limit on failed logins per client
#              Failure timestamps live in the client's session slot
# =============================================================================

from typing import Callable, List, Optional
import logging
import time

from adaptive_auth.core.config import settings
from adaptive_auth.session.models import SessionSlots
from adaptive_auth.session.storage import ISessionStore

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    LOGIN ATTEMPT LIMITER                                 │
    │  Blocks a client after N failures inside a sliding time window          │
    └─────────────────────────────────────────────────────────────────────────┘

    Algorithm:
        - Each failure appends ``now`` to the client's attempt list
        - Before every decision, timestamps with ``now - ts >= window`` are
          dropped and the pruned list is written back
        - The client is blocked while ``len(attempts) >= max_attempts``
        - A successful login resets the list

    Args:
        store: Per-client session store
        max_attempts: Failures tolerated inside the window (default 5)
        window_seconds: Window length in seconds (default 900)
        clock: Time source returning epoch seconds (injectable in tests)

    Example:
        limiter = RateLimiter(MemorySessionStore())
        if not await limiter.is_blocked(client_id):
            ...
            await limiter.record_failure(client_id)
    """

    def __init__(
        self,
        store: ISessionStore,
        max_attempts: Optional[int] = None,
        window_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store
        self.max_attempts = settings.max_login_attempts if max_attempts is None else max_attempts
        self.window_seconds = settings.lockout_window_seconds if window_seconds is None else window_seconds
        self._clock = clock

    async def _pruned(self, client_id: str) -> List[float]:
        now = self._clock()
        stored = await self._store.get(client_id, SessionSlots.LOGIN_ATTEMPTS, []) or []
        recent = [ts for ts in stored if now - ts < self.window_seconds]
        if len(recent) != len(stored):
            await self._store.set(client_id, SessionSlots.LOGIN_ATTEMPTS, recent)
        return recent

    async def attempts(self, client_id: str) -> int:
        """Failures still inside the window."""
        return len(await self._pruned(client_id))

    async def is_blocked(self, client_id: str) -> bool:
        blocked = len(await self._pruned(client_id)) >= self.max_attempts
        if blocked:
            logger.info(f"Client {client_id} is rate limited")
        return blocked

    async def record_failure(self, client_id: str) -> int:
        """
        Record one failed attempt.

        Returns:
            int: Failures inside the window, this one included
        """
        recent = await self._pruned(client_id)
        recent.append(self._clock())
        await self._store.set(client_id, SessionSlots.LOGIN_ATTEMPTS, recent)
        return len(recent)

    async def reset(self, client_id: str) -> None:
        await self._store.delete(client_id, SessionSlots.LOGIN_ATTEMPTS)

    async def retry_after(self, client_id: str) -> int:
        """Seconds until the oldest counted failure leaves the window."""
        recent = await self._pruned(client_id)
        if len(recent) < self.max_attempts:
            return 0
        return max(int(min(recent) + self.window_seconds - self._clock()), 0)
