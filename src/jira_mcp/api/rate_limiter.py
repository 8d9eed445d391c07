#!/usr/bin/env python3
"""Token-Bucket Rate Limiter for the Jira REST API.

Jira Cloud throttles aggressive clients with HTTP 429. To stay well below the
upstream limit, every JiraClient owns a token bucket that admits at most
``max_requests`` calls per ``window_ms`` on average, while allowing short
bursts up to the bucket capacity.

Accounting:
    - The bucket starts full (tokens == max_requests)
    - Tokens refill linearly: elapsed_ms / window_ms * max_requests
    - Tokens never exceed capacity and never go below zero
    - Each successful acquisition removes exactly one token

Example:
    limiter = create_jira_rate_limiter(requests_per_minute=100)

    # Fail fast
    limiter.acquire()          # raises RateLimitError when empty

    # Or suspend until a token is available
    await limiter.wait_for_token()
"""
import asyncio
import logging
import math
import threading
import time
from typing import Any, Callable, Optional

from .exceptions import RateLimitError

logger = logging.getLogger(__name__)

# Jira Cloud's documented budget is expressed per minute
DEFAULT_WINDOW_MS = 60_000
DEFAULT_REQUESTS_PER_MINUTE = 100


class RateLimiter:
    """Token bucket shared by every request a client makes.

    Attributes:
        max_requests: Bucket capacity (burst size)
        window_ms: Window over which ``max_requests`` tokens are refilled
        name: Label used in log messages and status output
    """

    def __init__(
        self,
        max_requests: int,
        window_ms: int = DEFAULT_WINDOW_MS,
        clock: Optional[Callable[[], float]] = None,
        name: str = "jira_api",
    ):
        """Initialize a full bucket.

        Args:
            max_requests: Tokens available per window (must be positive)
            window_ms: Window length in milliseconds (must be positive)
            clock: Monotonic clock returning seconds; defaults to time.monotonic
            name: Label for logging
        """
        if max_requests <= 0:
            raise ValueError(f"max_requests must be positive, got {max_requests}")
        if window_ms <= 0:
            raise ValueError(f"window_ms must be positive, got {window_ms}")

        self.max_requests = max_requests
        self.window_ms = window_ms
        self.name = name

        self._clock = clock or time.monotonic
        self._tokens = float(max_requests)
        self._last_refill = self._clock()
        self._lock = threading.Lock()

    # ----------------------------------------
    # Internal Accounting
    # ----------------------------------------

    def _refill(self) -> None:
        """Credit tokens for the time elapsed since the last refill.

        Caller must hold ``self._lock``.
        """
        now = self._clock()
        elapsed_ms = max(0.0, (now - self._last_refill) * 1000)
        if elapsed_ms > 0:
            earned = elapsed_ms / self.window_ms * self.max_requests
            self._tokens = min(float(self.max_requests), self._tokens + earned)
        self._last_refill = now

    def _wait_ms(self) -> int:
        """Milliseconds until one whole token exists. Caller holds the lock."""
        if self._tokens >= 1:
            return 0
        deficit = 1 - self._tokens
        return math.ceil(deficit / self.max_requests * self.window_ms)

    # ----------------------------------------
    # Public API
    # ----------------------------------------

    def acquire(self) -> None:
        """Take one token or fail immediately.

        Raises:
            RateLimitError: If fewer than one token is available. The error's
                ``retry_after_ms`` tells the caller how long to wait.
        """
        with self._lock:
            self._refill()
            if self._tokens < 1:
                retry_after_ms = self._wait_ms()
                raise RateLimitError(
                    f"Rate limit exceeded. Retry after {retry_after_ms}ms",
                    retry_after_ms=retry_after_ms,
                )
            self._tokens -= 1

    def can_acquire(self) -> bool:
        """Return True if a token is available, without consuming it."""
        with self._lock:
            self._refill()
            return self._tokens >= 1

    def remaining_tokens(self) -> int:
        """Whole tokens currently available."""
        with self._lock:
            self._refill()
            return math.floor(self._tokens)

    def time_until_next_token_ms(self) -> int:
        """Milliseconds until ``acquire`` would succeed (0 if it would now)."""
        with self._lock:
            self._refill()
            return self._wait_ms()

    async def wait_for_token(self) -> None:
        """Suspend until a token can be taken, then take it.

        Another coroutine may grab the token that was being waited for; in
        that case the wait is recomputed and repeated.
        """
        while True:
            wait_ms = self.time_until_next_token_ms()
            if wait_ms > 0:
                logger.debug(f"Rate limiter '{self.name}' waiting {wait_ms}ms for a token")
                await asyncio.sleep(wait_ms / 1000)
            try:
                self.acquire()
                return
            except RateLimitError:
                continue

    def reset(self) -> None:
        """Refill the bucket to capacity."""
        with self._lock:
            self._tokens = float(self.max_requests)
            self._last_refill = self._clock()

    def get_status(self) -> dict[str, Any]:
        """Get limiter status for monitoring."""
        with self._lock:
            self._refill()
            return {
                "name": self.name,
                "max_requests": self.max_requests,
                "window_ms": self.window_ms,
                "remaining_tokens": math.floor(self._tokens),
                "time_until_next_token_ms": self._wait_ms(),
            }


def create_jira_rate_limiter(
    requests_per_minute: int = DEFAULT_REQUESTS_PER_MINUTE,
    clock: Optional[Callable[[], float]] = None,
) -> RateLimiter:
    """Build the limiter used by JiraClient: ``requests_per_minute`` per 60s."""
    return RateLimiter(
        max_requests=requests_per_minute,
        window_ms=DEFAULT_WINDOW_MS,
        clock=clock,
    )


__all__ = [
    "DEFAULT_REQUESTS_PER_MINUTE",
    "DEFAULT_WINDOW_MS",
    "RateLimiter",
    "create_jira_rate_limiter",
]
