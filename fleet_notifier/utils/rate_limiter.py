"""Fleet Notifier — Async Rate Limiter.

Sliding-window limiter used to keep broadcast sends under Telegram's
global bot limit (about 30 messages per second).
"""

from __future__ import annotations

import asyncio
import time
from collections import deque

from fleet_notifier.utils.logger import get_logger

logger = get_logger(__name__)


class AsyncRateLimiter:
    """Allow at most max_calls acquisitions per sliding window.

    Safe for concurrent coroutines: waiters queue on an asyncio.Lock,
    and the lock holder sleeps until the oldest call leaves the window.

    Attributes:
        max_calls: Calls allowed per window.
        period: Window length in seconds.
    """

    def __init__(self, max_calls: int, period_seconds: float = 1.0) -> None:
        """Initialize the limiter.

        Args:
            max_calls: Maximum calls per window (at least 1).
            period_seconds: Window length in seconds.
        """
        self.max_calls = max(1, max_calls)
        self.period = period_seconds
        self._calls: deque[float] = deque()
        self._lock = asyncio.Lock()

    def _expire(self, now: float) -> None:
        cutoff = now - self.period
        while self._calls and self._calls[0] <= cutoff:
            self._calls.popleft()

    async def acquire(self) -> None:
        """Wait for a free slot and take it."""
        async with self._lock:
            while True:
                now = time.monotonic()
                self._expire(now)
                if len(self._calls) < self.max_calls:
                    self._calls.append(now)
                    return

                wait_time = self._calls[0] + self.period - now
                logger.debug(
                    "Rate limit reached (%d/%d), waiting %.2fs",
                    len(self._calls), self.max_calls, wait_time,
                )
                await asyncio.sleep(max(wait_time, 0.0))

    async def __aenter__(self) -> "AsyncRateLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, *args: object) -> None:
        pass

    def __repr__(self) -> str:
        return f"AsyncRateLimiter(max_calls={self.max_calls}, period={self.period}s)"
