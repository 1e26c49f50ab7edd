from __future__ import annotations

"""Periodic refresh trigger driven by the auto-refresh setting.

One :class:`asyncio.Task` per scheduler runs ``sleep(interval)`` followed by the
callback, forever. Changing the interval cancels that task before a new one is
created, so two timers never coexist. An interval of 0 means manual refresh
only and leaves no task behind.
"""

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

from .const import AppSettings
from .logging_utils import log_event
from .settings import SettingsService


_LOGGER = logging.getLogger(__name__)

RefreshCallback = Callable[[], Union[Awaitable[object], object]]
Sleep = Callable[[float], Awaitable[object]]


class RefreshScheduler:
    """Run ``callback`` every ``interval`` seconds while started.

    Args:
        callback: Sync or async refresh function. Exceptions are logged and the
            loop keeps ticking.
        interval: Seconds between ticks; 0 disables the timer.
        sleep: Awaitable sleep, injectable for tests.
    """

    def __init__(self, callback: RefreshCallback, *, interval: float = 0, sleep: Sleep = asyncio.sleep) -> None:
        if interval < 0:
            raise ValueError(f"Refresh interval must be >= 0, got {interval}")
        self._callback = callback
        self._interval = interval
        self._sleep = sleep
        self._task: Optional[asyncio.Task[None]] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self.ticks = 0

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start ticking unless disabled or already running."""
        if self._interval <= 0 or self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(self._interval))
        log_event(_LOGGER, logging.DEBUG, "scheduler", "started", interval_s=self._interval)

    def stop(self) -> None:
        """Cancel the timer task, if any."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            log_event(_LOGGER, logging.DEBUG, "scheduler", "stopped")

    def set_interval(self, interval: float) -> None:
        """Restart with ``interval``; 0 leaves the scheduler stopped."""
        if interval < 0:
            raise ValueError(f"Refresh interval must be >= 0, got {interval}")
        was_running = self.is_running
        if interval == self._interval and (was_running or interval == 0):
            return
        self.stop()
        self._interval = interval
        log_event(_LOGGER, logging.INFO, "scheduler", "interval_changed", interval_s=interval)
        self.start()

    def attach(self, settings: SettingsService) -> None:
        """Follow ``settings.auto_refresh_interval`` and start accordingly."""
        self.detach()

        def _on_change(new_settings: AppSettings) -> None:
            self.set_interval(new_settings.auto_refresh_interval)

        self._unsubscribe = settings.subscribe(_on_change)
        self.set_interval(settings.auto_refresh_interval)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def close(self) -> None:
        """Unsubscribe and wait for the timer task to finish cancelling."""
        self.detach()
        task = self._task
        self.stop()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run(self, interval: float) -> None:
        while True:
            await self._sleep(interval)
            self.ticks += 1
            try:
                result = self._callback()
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001 - a failed refresh must not kill the timer
                log_event(_LOGGER, logging.ERROR, "scheduler", "callback_failed", error=str(exc), exc_info=True)


__all__ = ["RefreshScheduler", "RefreshCallback"]
