"""Cancellable delayed callbacks for the autosave debounce."""

from __future__ import annotations

import asyncio
import threading
from typing import Callable, Optional, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds."""
        ...


class AsyncioScheduler:
    """
    Schedules on an asyncio event loop.

    Without an explicit loop the running loop is looked up at arm time.
    Synchronous callers (no running loop) get a daemon ``threading.Timer``
    instead; its callback then runs on the timer thread.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                return self._thread_timer(delay, callback)
        return loop.call_later(delay, callback)

    @staticmethod
    def _thread_timer(delay: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer
