"""
Launch pacing
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional


class LaunchPacer:
    """Spaces out probe launches on a fixed schedule

    After every ``every``-th launch (the first included) the next slot moves
    ``interval`` seconds past the previous launch's scheduled start. A caller
    that arrives after its slot has passed launches immediately.
    """

    def __init__(self, interval: float, every: int = 1,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        if every < 1:
            raise ValueError("every must be at least 1")
        self.interval = interval
        self.every = every
        self._clock = clock
        self._sleep = sleep
        self._next_slot: Optional[float] = None
        self.launched = 0

    async def wait(self) -> float:
        """Wait for the next launch slot; returns the scheduled start"""
        now = self._clock()
        if self._next_slot is not None and self._next_slot > now:
            await self._sleep(self._next_slot - now)
            start = self._next_slot
        else:
            start = now

        if self.interval > 0 and self.launched % self.every == 0:
            self._next_slot = start + self.interval
        else:
            self._next_slot = start
        self.launched += 1
        return start
