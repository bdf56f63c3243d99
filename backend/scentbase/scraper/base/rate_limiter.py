"""Rate limiters for respectful scraping."""
import asyncio
import random
import time
from collections import deque
from typing import Awaitable, Callable, Deque, Optional


class RateLimiter:
    """Enforces a delay between the starts of consecutive requests.

    With ``max_delay`` set, each gap is drawn uniformly from
    ``[min_delay, max_delay]``; otherwise it is exactly ``min_delay``.
    Concurrent callers are served one at a time.
    """

    def __init__(
        self,
        min_delay: float = 3.0,
        max_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.min_delay = min_delay
        self.max_delay = max(max_delay, min_delay) if max_delay is not None else min_delay
        self._sleep = sleep
        self._clock = clock
        self._last_request: Optional[float] = None
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        """Wait appropriate time before next request."""
        async with self._lock:
            if self._last_request is not None:  # Not first request
                delay = random.uniform(self.min_delay, self.max_delay)
                elapsed = self._clock() - self._last_request
                if elapsed < delay:
                    await self._sleep(delay - elapsed)

            self._last_request = self._clock()


class WindowRateLimiter:
    """Allows at most ``max_requests`` within any rolling ``window`` seconds."""

    def __init__(self, max_requests: int, window: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._hits: Deque[float] = deque()

    def try_acquire(self) -> bool:
        """Record a request and return True, or return False if the window is full."""
        now = self._clock()
        while self._hits and now - self._hits[0] >= self.window:
            self._hits.popleft()
        if len(self._hits) >= self.max_requests:
            return False
        self._hits.append(now)
        return True

    def retry_after(self) -> float:
        """Seconds until the oldest request leaves the window."""
        if not self._hits:
            return 0.0
        return max(0.0, self.window - (self._clock() - self._hits[0]))
