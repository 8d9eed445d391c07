#!/usr/bin/env python3
"""Unit tests for the token-bucket RateLimiter.

Tests cover:
    - Bucket starts full and empties one token per acquire
    - Linear refill, capped at capacity
    - Retry-after computation on an empty bucket
    - wait_for_token suspension and re-checking

A fake monotonic clock drives all time-dependent behaviour.
"""
import sys
from unittest.mock import AsyncMock, patch

import pytest

sys.path.insert(0, str(__file__).rsplit("/tests", 1)[0])
from src.jira_mcp.api.exceptions import ErrorKind, RateLimitError
from src.jira_mcp.api.rate_limiter import RateLimiter, create_jira_rate_limiter


class FakeClock:
    """Monotonic clock in seconds that only moves when told to."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000


@pytest.fixture
def clock():
    return FakeClock()


# ============================================
# Acquisition Tests
# ============================================

class TestAcquire:
    """Test immediate acquisition."""

    def test_starts_full(self, clock):
        """A new limiter has capacity tokens."""
        limiter = RateLimiter(max_requests=5, window_ms=1000, clock=clock)
        assert limiter.remaining_tokens() == 5
        assert limiter.can_acquire()

    def test_two_then_throttled(self, clock):
        """Capacity 2: two acquisitions pass, the third is rate limited."""
        limiter = RateLimiter(max_requests=2, window_ms=1000, clock=clock)

        limiter.acquire()
        limiter.acquire()

        with pytest.raises(RateLimitError) as exc_info:
            limiter.acquire()

        assert exc_info.value.kind == ErrorKind.RATE_LIMIT
        assert exc_info.value.upstream is False
        assert "Retry after" in exc_info.value.message

    def test_each_acquire_removes_one_token(self, clock):
        limiter = RateLimiter(max_requests=10, window_ms=60_000, clock=clock)
        for expected in range(9, -1, -1):
            limiter.acquire()
            assert limiter.remaining_tokens() == expected

    def test_can_acquire_does_not_consume(self, clock):
        limiter = RateLimiter(max_requests=1, window_ms=1000, clock=clock)
        assert limiter.can_acquire()
        assert limiter.can_acquire()
        assert limiter.remaining_tokens() == 1

    def test_rejects_non_positive_settings(self):
        with pytest.raises(ValueError):
            RateLimiter(max_requests=0)
        with pytest.raises(ValueError):
            RateLimiter(max_requests=1, window_ms=0)


# ============================================
# Refill Tests
# ============================================

class TestRefill:
    """Test linear refill."""

    def test_full_window_restores_capacity(self, clock):
        """After draining, one full window refills the bucket."""
        limiter = RateLimiter(max_requests=3, window_ms=1000, clock=clock)
        for _ in range(3):
            limiter.acquire()
        assert not limiter.can_acquire()

        clock.advance_ms(1000)

        assert limiter.remaining_tokens() == 3

    def test_half_window_refills_half(self, clock):
        """Capacity 2, window 1000ms: 500ms later exactly one more acquire succeeds."""
        limiter = RateLimiter(max_requests=2, window_ms=1000, clock=clock)
        limiter.acquire()
        limiter.acquire()

        clock.advance_ms(500)

        limiter.acquire()
        with pytest.raises(RateLimitError):
            limiter.acquire()

    def test_refill_is_capped(self, clock):
        """Long idle periods never overfill the bucket."""
        limiter = RateLimiter(max_requests=4, window_ms=1000, clock=clock)
        limiter.acquire()

        clock.advance_ms(10_000)

        assert limiter.remaining_tokens() == 4

    def test_fractional_tokens_are_kept(self, clock):
        """Two 250ms waits add up to a whole token at capacity 2."""
        limiter = RateLimiter(max_requests=2, window_ms=1000, clock=clock)
        limiter.acquire()
        limiter.acquire()

        clock.advance_ms(250)
        assert limiter.remaining_tokens() == 0
        clock.advance_ms(250)
        assert limiter.remaining_tokens() == 1

    def test_reset_refills(self, clock):
        limiter = RateLimiter(max_requests=2, window_ms=1000, clock=clock)
        limiter.acquire()
        limiter.acquire()
        limiter.reset()
        assert limiter.remaining_tokens() == 2


# ============================================
# Retry-After Tests
# ============================================

class TestRetryAfter:
    """Test wait-time computation."""

    def test_retry_after_within_window(self, clock):
        """Capacity 1, window 1000ms: retry-after is in (0, 1000]."""
        limiter = RateLimiter(max_requests=1, window_ms=1000, clock=clock)
        limiter.acquire()

        with pytest.raises(RateLimitError) as exc_info:
            limiter.acquire()

        assert 0 < exc_info.value.retry_after_ms <= 1000

    def test_time_until_next_token(self, clock):
        limiter = RateLimiter(max_requests=1, window_ms=1000, clock=clock)
        assert limiter.time_until_next_token_ms() == 0

        limiter.acquire()
        clock.advance_ms(400)

        assert limiter.time_until_next_token_ms() == 600

    def test_status(self, clock):
        limiter = RateLimiter(max_requests=2, window_ms=1000, clock=clock, name="test")
        limiter.acquire()

        status = limiter.get_status()

        assert status["name"] == "test"
        assert status["remaining_tokens"] == 1
        assert status["time_until_next_token_ms"] == 0


# ============================================
# Async Wait Tests
# ============================================

class TestWaitForToken:
    """Test suspension until a token is available."""

    @pytest.mark.asyncio
    async def test_no_wait_when_available(self, clock):
        limiter = RateLimiter(max_requests=1, window_ms=1000, clock=clock)

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await limiter.wait_for_token()

        mock_sleep.assert_not_called()
        assert limiter.remaining_tokens() == 0

    @pytest.mark.asyncio
    async def test_sleeps_until_refill(self, clock):
        """An empty bucket sleeps for the computed wait, then takes the token."""
        limiter = RateLimiter(max_requests=1, window_ms=1000, clock=clock)
        limiter.acquire()

        async def fake_sleep(seconds):
            clock.advance_ms(seconds * 1000)

        with patch("asyncio.sleep", side_effect=fake_sleep) as mock_sleep:
            await limiter.wait_for_token()

        mock_sleep.assert_called_once_with(1.0)
        assert limiter.remaining_tokens() == 0

    @pytest.mark.asyncio
    async def test_waits_again_if_token_taken(self, clock):
        """If another caller grabs the token during the sleep, wait again."""
        limiter = RateLimiter(max_requests=1, window_ms=1000, clock=clock)
        limiter.acquire()
        calls = []

        async def fake_sleep(seconds):
            calls.append(seconds)
            clock.advance_ms(seconds * 1000)
            if len(calls) == 1:
                limiter.acquire()  # competing caller

        with patch("asyncio.sleep", side_effect=fake_sleep):
            await limiter.wait_for_token()

        assert calls == [1.0, 1.0]


class TestJiraLimiter:
    def test_jira_limiter_uses_one_minute_window(self):
        limiter = create_jira_rate_limiter(100)
        assert limiter.max_requests == 100
        assert limiter.window_ms == 60_000
