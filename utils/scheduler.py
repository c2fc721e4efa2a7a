import asyncio
import heapq
import itertools
import time
from typing import Callable, List, Optional, Tuple

from core.contracts.scheduler import Scheduler


class AsyncioScheduler(Scheduler):
    """
    Schedules callbacks on an asyncio event loop.

    Must be used from code running inside the loop unless a loop is given.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def schedule(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self._get_loop().call_later(delay, callback)

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            raise RuntimeError(
                "AsyncioScheduler has no event loop: call it from a coroutine or pass `loop=`"
            ) from None

    def cancel(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()

    def time(self) -> float:
        return time.time()


class ManualHandle:
    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False
        self.fired = False


class ManualScheduler(Scheduler):
    """
    A virtual clock. Nothing fires until `advance` moves time forward.
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self._seq = itertools.count()
        self._queue: List[Tuple[float, int, ManualHandle]] = []

    def schedule(self, delay: float, callback: Callable[[], None]) -> ManualHandle:
        handle = ManualHandle(self._now + max(delay, 0.0), callback)
        heapq.heappush(self._queue, (handle.due, next(self._seq), handle))
        return handle

    def cancel(self, handle: ManualHandle) -> None:
        handle.cancelled = True

    def time(self) -> float:
        return self._now

    def pending(self) -> int:
        """Number of callbacks still waiting to fire."""
        return sum(1 for _, _, h in self._queue if not h.cancelled)

    def advance(self, seconds: float) -> int:
        """
        Moves the clock forward, firing due callbacks in order.

        Callbacks scheduled while advancing fire too if they fall inside the window.

        Returns:
            The number of callbacks fired.
        """
        target = self._now + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = due
            handle.fired = True
            handle.callback()
            fired += 1
        self._now = target
        return fired
