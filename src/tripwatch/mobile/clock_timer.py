"""
Kivy Clock foreground timer.

The Clock fires on the UI thread; each tick hands the poll to a short-lived
worker thread so a slow network call never blocks rendering.
"""

import logging
import threading
from typing import Callable

from kivy.clock import Clock

logger = logging.getLogger(__name__)


class ClockForegroundTimer:
    """ForegroundTimer backed by Clock.schedule_interval."""

    def __init__(self):
        self._event = None

    def start(self, interval: float, callback: Callable[[], None]) -> None:
        if self._event is not None:
            logger.warning("ClockForegroundTimer already running")
            return
        self._event = Clock.schedule_interval(lambda dt: self._dispatch(callback), interval)
        logger.debug(f"ClockForegroundTimer started (interval={interval}s)")

    def stop(self) -> None:
        if self._event is None:
            return
        self._event.cancel()
        self._event = None
        logger.debug("ClockForegroundTimer stopped")

    @property
    def is_running(self) -> bool:
        return self._event is not None

    def _dispatch(self, callback: Callable[[], None]) -> None:
        threading.Thread(target=callback, name="ForegroundPoll", daemon=True).start()
