# =============================================================================
# ADAPTIVE AUTH - RATE LIMITER TESTS
# =============================================================================
# File: tests/test_rate_limiter.py
# Description: Sliding-window login throttling with an injected clock
# =============================================================================

import pytest

from adaptive_auth.auth.rate_limiter import RateLimiter
from adaptive_auth.session.models import SessionSlots
from adaptive_auth.session.storage import MemorySessionStore


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return RateLimiter(MemorySessionStore(), max_attempts=5, window_seconds=900, clock=clock)


class TestRateLimiter:
    """Test suite for RateLimiter."""

    @pytest.mark.asyncio
    async def test_blocks_at_threshold(self, limiter):
        for _ in range(4):
            await limiter.record_failure("c1")
        assert await limiter.is_blocked("c1") is False

        assert await limiter.record_failure("c1") == 5
        assert await limiter.is_blocked("c1") is True

    @pytest.mark.asyncio
    async def test_clients_are_independent(self, limiter):
        for _ in range(5):
            await limiter.record_failure("c1")

        assert await limiter.is_blocked("c2") is False

    @pytest.mark.asyncio
    async def test_window_expiry_is_strict(self, limiter, clock):
        for _ in range(5):
            await limiter.record_failure("c1")

        clock.now += 899
        assert await limiter.is_blocked("c1") is True

        clock.now += 1
        assert await limiter.is_blocked("c1") is False
        assert await limiter.attempts("c1") == 0

    @pytest.mark.asyncio
    async def test_pruned_list_written_back(self, clock):
        store = MemorySessionStore()
        limiter = RateLimiter(store, max_attempts=5, window_seconds=900, clock=clock)
        await limiter.record_failure("c1")
        clock.now += 600
        await limiter.record_failure("c1")
        clock.now += 400

        assert await limiter.attempts("c1") == 1
        assert await store.get("c1", SessionSlots.LOGIN_ATTEMPTS) == [clock.now - 400]

    @pytest.mark.asyncio
    async def test_reset(self, limiter):
        for _ in range(5):
            await limiter.record_failure("c1")

        await limiter.reset("c1")

        assert await limiter.is_blocked("c1") is False

    @pytest.mark.asyncio
    async def test_retry_after(self, limiter, clock):
        for _ in range(5):
            await limiter.record_failure("c1")
        clock.now += 100

        assert await limiter.retry_after("c1") == 800
        assert await limiter.retry_after("c2") == 0

    def test_defaults_from_settings(self):
        limiter = RateLimiter(MemorySessionStore())

        assert limiter.max_attempts == 5
        assert limiter.window_seconds == 900

    @pytest.mark.asyncio
    async def test_explicit_zero_is_not_replaced_by_default(self, clock):
        limiter = RateLimiter(MemorySessionStore(), max_attempts=0, window_seconds=0, clock=clock)

        assert limiter.max_attempts == 0
        assert limiter.window_seconds == 0
        assert await limiter.is_blocked("c1") is True
