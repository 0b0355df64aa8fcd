"""
agent/rate_limit.py — Optional throttle in front of each search.

Search engines answer scripted traffic with captchas. When enabled, the
orchestrator awaits limiter.acquire(token) right before every search.
Anything with that method works; SlidingWindowRateLimiter is the one
shipped.

THREE RULES, checked together:
  - at least min_interval seconds between two searches
  - at most max_per_window searches in any window-second span
  - after hitting the window cap, a cooldown before the next search

acquire() waits (cancellably) until all three allow a search, then
records it. It never refuses — it only delays.

Disabled by default (settings.rate_limit_enabled). build_rate_limiter()
returns None when off, and the orchestrator skips the call.
"""

import logging
import time
from collections import deque
from typing import Callable, Protocol

from agent.cancellation import CancellationToken
from config import settings

logger = logging.getLogger(__name__)


class RateLimiter(Protocol):
    async def acquire(self, token: CancellationToken) -> None: ...


class SlidingWindowRateLimiter:
    def __init__(
        self,
        min_interval: float,
        max_per_window: int,
        window: float,
        cooldown: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._min_interval = min_interval
        self._max_per_window = max(1, max_per_window)
        self._window = window
        self._cooldown = cooldown
        self._clock = clock
        self._stamps: deque[float] = deque()
        self._cooldown_until = 0.0

    def delay(self) -> float:
        """Seconds to wait before the next search is allowed. 0 means now."""
        now = self._clock()
        while self._stamps and now - self._stamps[0] >= self._window:
            self._stamps.popleft()

        wait = max(0.0, self._cooldown_until - now)
        if self._stamps:
            wait = max(wait, self._stamps[-1] + self._min_interval - now)
        if len(self._stamps) >= self._max_per_window:
            wait = max(wait, self._stamps[0] + self._window - now)
        return wait

    async def acquire(self, token: CancellationToken) -> None:
        wait = self.delay()
        while wait > 0:
            logger.info("Rate limit: waiting %.1fs before next search", wait)
            await token.sleep(wait)
            wait = self.delay()

        token.raise_if_revoked()
        now = self._clock()
        self._stamps.append(now)
        if len(self._stamps) >= self._max_per_window and self._cooldown > 0:
            self._cooldown_until = now + self._cooldown


def build_rate_limiter() -> SlidingWindowRateLimiter | None:
    if not settings.rate_limit_enabled:
        return None
    return SlidingWindowRateLimiter(
        min_interval=settings.min_search_interval_seconds,
        max_per_window=settings.max_searches_per_window,
        window=settings.rate_limit_window_seconds,
        cooldown=settings.rate_limit_cooldown_seconds,
    )
