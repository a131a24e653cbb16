"""Request spacing and advisory single-flight guard for provider calls."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

logger = logging.getLogger(__name__)


class RequestGuard:
    """Smooths bursts of provider requests.

    Two best-effort mechanisms, both scoped to this instance (share one instance
    between orchestrators to share the state):

    * Advisory single-flight: a request that finds another one in flight waits
      ``busy_wait`` seconds once and then proceeds regardless. This is NOT
      mutual exclusion. Requests are never queued or rejected.
    * Minimum spacing: dispatches are spaced at least ``min_request_gap``
      seconds apart.

    The counters are guarded by an ``asyncio.Lock``; the lock is never held
    while sleeping.
    """

    def __init__(
        self,
        min_request_gap: float = 0.1,
        busy_wait: float = 0.3,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize guard.

        Args:
            min_request_gap: Minimum seconds between two dispatches
            busy_wait: Seconds to wait when another request is in flight
            clock: Monotonic clock (injectable for tests)
            sleep: Async sleep function (injectable for tests)
        """
        self.min_request_gap = min_request_gap
        self.busy_wait = busy_wait
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._in_flight = 0
        self._next_slot: float | None = None
        self.total_dispatched = 0

    @property
    def in_flight(self) -> int:
        return self._in_flight

    async def acquire(self) -> None:
        """Wait for a dispatch slot and mark a request as in flight."""
        async with self._lock:
            busy = self._in_flight > 0

        if busy:
            logger.debug(f"Request in flight, waiting {self.busy_wait}s before proceeding")
            await self._sleep(self.busy_wait)

        async with self._lock:
            now = self._clock()
            slot = now if self._next_slot is None else max(now, self._next_slot)
            self._next_slot = slot + self.min_request_gap
            self._in_flight += 1
            self.total_dispatched += 1
            delay = slot - now

        if delay > 0:
            await self._sleep(delay)

    async def release(self) -> None:
        """Mark a request as finished."""
        async with self._lock:
            self._in_flight = max(self._in_flight - 1, 0)

    @asynccontextmanager
    async def slot(self):
        """Hold a dispatch slot for the duration of the block."""
        await self.acquire()
        try:
            yield self
        finally:
            await self.release()

    def get_stats(self) -> dict[str, Any]:
        """Get guard statistics.

        Returns:
            Dict with in-flight count, dispatch total and configured timings
        """
        return {
            "in_flight": self._in_flight,
            "total_dispatched": self.total_dispatched,
            "min_request_gap": self.min_request_gap,
            "busy_wait": self.busy_wait,
        }
