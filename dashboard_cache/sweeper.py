import asyncio
from typing import Optional

from .cache import TaggedTTLCache
from .log import get_logger

log = get_logger("sweeper")


class CacheSweeper:
    """Background task calling `TaggedTTLCache.cleanup` on a fixed interval.

    Parameters
    ----------
    cache : TaggedTTLCache
        Cache to sweep.
    interval_seconds : float
        Delay between two sweeps.

    Notes
    -----
    - `start` must be called from a running event loop.
    - A failing sweep is logged and the loop keeps going.
    """

    def __init__(self, cache: TaggedTTLCache, interval_seconds: float):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.cache = cache
        self.interval = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        """True while the background task is alive."""

        return self._task is not None and not self._task.done()

    def run_once(self) -> int:
        """Run a single sweep.

        Returns
        -------
        int
            Number of expired entries removed.
        """

        removed = self.cache.cleanup()
        log.debug("Swept %d expired entries, %d remaining", removed, self.cache.size())
        return removed

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop. No-op if already running."""

        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop(), name="cache-sweeper")
        log.info("Cache sweeper started (every %ss)", self.interval)

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish. No-op if not started.

        Notes
        -----
        - A cancellation aimed at the caller of `stop` is propagated, only the
          sweep task's own cancellation is absorbed.
        """

        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
        log.info("Cache sweeper stopped")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.run_once()
            except Exception:
                log.exception("Cache sweep failed")
