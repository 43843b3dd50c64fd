"""
Time sources.

Components that measure intervals accept a ``clock`` callable returning
monotonic seconds and, where they wait, a ``sleep`` coroutine function.
``ManualClock`` provides both for deterministic tests.
"""

import asyncio
import time
from typing import List

monotonic = time.monotonic


class ManualClock:
    """
    Manually advanced clock.

    Calling the instance returns the current time. ``sleep`` records the
    requested delay, advances time by it and yields to the event loop once.
    """

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        """Move time forward."""
        self.now += seconds

    async def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        if seconds > 0:
            self.now += seconds
        await asyncio.sleep(0)
