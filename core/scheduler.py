"""
Periodic scheduler for repeated probe sends.

Built on the event loop's own timers (``loop.call_at``); no threads.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable


class PeriodicScheduler:
    """Fire a callback every ``interval`` seconds until cancelled.

    The first firing happens one interval after ``arm()``; callers that want
    an immediate first run invoke the callback themselves. Deadlines advance
    by a fixed step from the arm time, so slow callbacks do not accumulate
    drift.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self._callback: Callable[[], None] | None = None
        self._interval = 0.0
        self._deadline = 0.0

    @property
    def armed(self) -> bool:
        return self._handle is not None

    @property
    def interval(self) -> float:
        return self._interval

    def arm(self, interval: float, callback: Callable[[], None]) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.cancel()

        loop = self._loop or asyncio.get_running_loop()
        self._loop = loop
        self._interval = interval
        self._callback = callback
        self._deadline = loop.time() + interval
        self._handle = loop.call_at(self._deadline, self._fire)

    def _fire(self) -> None:
        callback = self._callback
        if callback is None or self._loop is None:
            return

        now = self._loop.time()
        self._deadline += self._interval
        if self._deadline <= now:
            # Fell behind (suspended loop); skip missed ticks instead of bursting
            missed = int((now - self._deadline) // self._interval) + 1
            self._deadline += missed * self._interval
            logging.debug(f"Scheduler skipped {missed} missed tick(s)")
        self._handle = self._loop.call_at(self._deadline, self._fire)

        callback()

    def cancel(self) -> None:
        """Stop firing. Idempotent; a pending firing is dropped too."""
        handle, self._handle = self._handle, None
        self._callback = None
        if handle is not None:
            handle.cancel()
