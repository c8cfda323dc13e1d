"""
Repeating timer facility for the status monitor.

Fires a callback on a fixed-period grid on the running asyncio loop.
Firings are independent of whatever work the callback starts.
"""

import asyncio
from typing import Callable, Optional, Protocol

import structlog

logger = structlog.get_logger()


class TimerHandle(Protocol):
    """Handle to a scheduled repeating callback."""

    def cancel(self) -> None:
        ...


class RepeatingTimer(Protocol):
    """Schedules a callback to run every ``interval_seconds``."""

    def schedule_repeating(
        self, interval_seconds: float, callback: Callable[[], None]
    ) -> TimerHandle:
        ...


class AsyncioTimerHandle:
    """Fixed-rate repeating callback on an asyncio event loop."""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        interval_seconds: float,
        callback: Callable[[], None],
    ):
        self._loop = loop
        self._interval = interval_seconds
        self._callback = callback
        self._cancelled = False
        self._deadline = loop.time() + interval_seconds
        self._handle: Optional[asyncio.TimerHandle] = loop.call_at(
            self._deadline, self._fire
        )

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _fire(self) -> None:
        if self._cancelled:
            return

        # Next deadline is on the grid, not relative to now.
        self._deadline += self._interval
        self._handle = self._loop.call_at(self._deadline, self._fire)

        try:
            self._callback()
        except Exception as e:
            logger.error(
                "timer.callback_failed",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class AsyncioRepeatingTimer:
    """Timer facility backed by the running asyncio loop."""

    def schedule_repeating(
        self, interval_seconds: float, callback: Callable[[], None]
    ) -> AsyncioTimerHandle:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        loop = asyncio.get_running_loop()
        return AsyncioTimerHandle(loop, interval_seconds, callback)
