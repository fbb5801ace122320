from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Any, Awaitable, Callable, Optional

from skuvault_saas.core.settings import AppSettings

logger = logging.getLogger(__name__)


class SyncScheduler:
    """
    Background loop that triggers a fleet sync on a fixed interval.

    The first run happens after `startup_delay_seconds`; later runs wait
    `interval_seconds` after the previous run finished. A failing run is logged
    and does not stop the loop.
    """

    def __init__(
        self,
        run_once: Callable[[], Awaitable[Any]],
        *,
        interval_seconds: float,
        startup_delay_seconds: float = 0.0,
    ) -> None:
        self._run_once = run_once
        self._interval = interval_seconds
        self._startup_delay = startup_delay_seconds
        self._task: Optional[asyncio.Task] = None
        self.runs = 0

    # PUBLIC_INTERFACE
    @classmethod
    def from_settings(cls, run_once: Callable[[], Awaitable[Any]], settings: AppSettings) -> "SyncScheduler":
        """Build a scheduler from SYNC_INTERVAL_MINUTES and SYNC_STARTUP_DELAY_MINUTES."""
        return cls(
            run_once,
            interval_seconds=settings.SYNC_INTERVAL_MINUTES * 60,
            startup_delay_seconds=settings.SYNC_STARTUP_DELAY_MINUTES * 60,
        )

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # PUBLIC_INTERFACE
    def start(self) -> None:
        """Start the loop on the running event loop; a second call is a no-op."""
        if self.is_running:
            return
        logger.info(
            "Sync scheduler starting; first run in %ss, then every %ss", self._startup_delay, self._interval
        )
        self._task = asyncio.create_task(self._loop(), name="skuvault-sync-scheduler")

    # PUBLIC_INTERFACE
    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Sync scheduler stopped")

    async def _loop(self) -> None:
        if self._startup_delay > 0:
            await asyncio.sleep(self._startup_delay)
        while True:
            try:
                await self._run_once()
            except Exception:
                logger.exception("Scheduled sync run failed; next attempt in %ss", self._interval)
            self.runs += 1
            await asyncio.sleep(self._interval)
