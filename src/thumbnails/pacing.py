import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class CallPacer:
    """Keeps a minimum gap between consecutive remote calls.

    The gap is measured from the end of one call to the start of the next,
    which matches the moderation service's per-key rate limit. A pacer is
    owned by one run and is not shared between concurrent runs.
    """

    def __init__(
        self,
        min_interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if min_interval < 0:
            raise ValueError("min_interval must be >= 0")
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last_finished: Optional[float] = None

    async def wait(self) -> float:
        """Sleep until the next call is allowed. Returns the time slept."""
        if self._last_finished is None:
            return 0.0
        remaining = self._last_finished + self.min_interval - self._clock()
        if remaining <= 0:
            return 0.0
        logger.debug(f"Pacing next call by {remaining:.2f}s")
        await self._sleep(remaining)
        return remaining

    def mark_finished(self) -> None:
        self._last_finished = self._clock()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Wrap one remote call: wait for the slot, then record when it ended."""
        await self.wait()
        try:
            yield
        finally:
            self.mark_finished()
