import asyncio
import logging
import time
from collections import deque

from ..config import MUTATIONS_PER_SECOND

logger = logging.getLogger(__name__)


class RateLimiter:
    """Sliding-window limiter shared by every worker that writes to a catalog."""

    def __init__(self, max_calls: int = MUTATIONS_PER_SECOND, period: float = 1.0,
                 clock=time.monotonic, sleep=asyncio.sleep):
        if max_calls <= 0:
            raise ValueError("max_calls must be positive")
        self.max_calls = max_calls
        self.period = period
        self._clock = clock
        self._sleep = sleep
        self._calls = deque()
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        # waiters are served in arrival order while the lock is held
        async with self._lock:
            while True:
                now = self._clock()
                while self._calls and now - self._calls[0] >= self.period:
                    self._calls.popleft()
                if len(self._calls) < self.max_calls:
                    self._calls.append(now)
                    return
                wait = self.period - (now - self._calls[0])
                logger.debug("Mutation rate limit reached, waiting %.3fs", wait,
                             extra={"component": "ratelimit"})
                await self._sleep(wait)

    def in_window(self) -> int:
        now = self._clock()
        return sum(1 for t in self._calls if now - t < self.period)
