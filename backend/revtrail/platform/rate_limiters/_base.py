"""Pacing rate limiter shared by every call to the internal endpoint."""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional

from revtrail.core.config import settings
from revtrail.core.logging import logger


class PacingRateLimiter:
    """Spaces request starts and bounds how many run at once.

    Two consecutive ``acquire`` calls return at least ``min_interval_seconds``
    apart, and at most ``max_concurrency`` slots are held at any time. Waiters
    are served in arrival order: ``asyncio.Semaphore`` and ``asyncio.Lock``
    both wake waiters FIFO.
    """

    def __init__(
        self,
        min_interval_seconds: Optional[float] = None,
        max_concurrency: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the limiter; defaults come from settings."""
        self.min_interval_seconds = (
            settings.DISPATCHER_MIN_INTERVAL_SECONDS
            if min_interval_seconds is None
            else min_interval_seconds
        )
        self.max_concurrency = (
            settings.DISPATCHER_MAX_CONCURRENCY if max_concurrency is None else max_concurrency
        )
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")

        self._clock = clock
        self._sleep = sleep
        self._semaphore = asyncio.Semaphore(self.max_concurrency)
        self._lock = asyncio.Lock()
        self._last_start: Optional[float] = None

        self._log_initialization()

    def _log_initialization(self):
        logger.debug(
            f"{self.__class__.__name__} initialized: min interval "
            f"{self.min_interval_seconds:.3f}s, max concurrency {self.max_concurrency}"
        )

    async def acquire(self) -> None:
        """Block until a slot is free and the minimum interval has elapsed."""
        await self._semaphore.acquire()
        try:
            async with self._lock:
                if self._last_start is not None:
                    wait = self._last_start + self.min_interval_seconds - self._clock()
                    if wait > 0:
                        await self._sleep(wait)
                self._last_start = self._clock()
        except BaseException:
            self._semaphore.release()
            raise

    def release(self) -> None:
        """Free a slot taken by ``acquire``."""
        self._semaphore.release()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold a slot for the duration of the block."""
        await self.acquire()
        try:
            yield
        finally:
            self.release()
