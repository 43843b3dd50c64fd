"""
Outbound AI call pacing.

Callers that arrive too soon after the previous call are delayed, never
dropped.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class MinIntervalRateLimiter:
    """
    Enforces a minimum interval between consecutive calls.

    Example:
        >>> limiter = MinIntervalRateLimiter(min_interval_sec=2.0)
        >>> await limiter.acquire()  # returns immediately
        >>> await limiter.acquire()  # waits ~2 seconds
    """

    def __init__(
        self,
        min_interval_sec: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.min_interval_sec = min_interval_sec
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self.last_call_time: Optional[float] = None

    async def acquire(self) -> float:
        """
        Wait until a call is allowed and mark it as made.

        Returns:
            float: Seconds waited
        """
        async with self._lock:
            waited = 0.0
            if self.last_call_time is not None:
                remaining = self.min_interval_sec - (self._clock() - self.last_call_time)
                if remaining > 0:
                    logger.info(f"Rate limiting: waiting {remaining:.2f}s before AI call")
                    await self._sleep(remaining)
                    waited = remaining
            self.last_call_time = self._clock()
            return waited
