"""Fixed-interval scheduling of poll cycles."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)

PollCallback = Callable[[], Awaitable[object]]


class PollScheduler:
    """
    Runs a coroutine every ``interval`` seconds on the current event loop.

    The first run happens immediately on ``start``. Each tick launches the
    callback as its own task and does not wait for the previous one, so a
    slow cycle can overlap the next tick or a manual refresh.

    ``stop`` cancels the ticking only. Callbacks already running are left to
    finish; they are expected to check whether their results still apply.
    """

    def __init__(self, interval: float, callback: PollCallback):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self._callback = callback
        self._ticker: Optional[asyncio.Task] = None
        self._in_flight: Set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._ticker is not None and not self._ticker.done()

    def start(self) -> None:
        """Start ticking. Must be called from inside a running event loop."""
        if self.running:
            return
        self._ticker = asyncio.get_running_loop().create_task(self._run())
        logger.info(f"Polling every {self.interval:g}s")

    def stop(self) -> None:
        if self._ticker is None:
            return
        self._ticker.cancel()
        self._ticker = None
        logger.info("Polling stopped")

    async def _run(self) -> None:
        while True:
            self._launch()
            await asyncio.sleep(self.interval)

    def _launch(self) -> None:
        task = asyncio.get_running_loop().create_task(self._callback())
        self._in_flight.add(task)
        task.add_done_callback(self._finished)

    def _finished(self, task: asyncio.Task) -> None:
        self._in_flight.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Poll cycle failed: {error}", exc_info=error)

    async def drain(self) -> None:
        """Wait for every cycle already launched to finish."""
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)
