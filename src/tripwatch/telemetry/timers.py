"""
Timer collaborators for the Mode Scheduler.

Two seams:
- ForegroundTimer: a repeating timer owned by the application while it is visible
- BackgroundTaskScheduler: the host OS facility that invokes a named callback
  periodically while the application is in the background

The threaded implementations here serve desktop and headless runs; on a
device the background scheduler is provided by the platform.
"""

import logging
import threading
from typing import Callable, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class ForegroundTimer(Protocol):
    """Repeating timer driven by the application."""

    def start(self, interval: float, callback: Callable[[], None]) -> None:
        ...

    def stop(self) -> None:
        ...

    @property
    def is_running(self) -> bool:
        ...


@runtime_checkable
class BackgroundTaskScheduler(Protocol):
    """Host facility for periodic background callbacks. Timing is not guaranteed."""

    def register(self, name: str, callback: Callable[[], None], min_interval: float) -> None:
        ...

    def unregister(self, name: str) -> None:
        ...

    def is_registered(self, name: str) -> bool:
        ...


class IntervalThread:
    """
    Calls a function every `interval` seconds on a daemon thread.

    The first call happens one interval after start(). Exceptions raised by
    the callback are logged and the loop keeps running.
    """

    def __init__(self, name: str = "IntervalThread"):
        self.name = name
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()

    def start(self, interval: float, callback: Callable[[], None]) -> None:
        """Start the timer thread; a no-op if already running."""
        with self._lock:
            if self._thread is not None:
                logger.warning(f"{self.name} already running")
                return

            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._loop,
                args=(interval, callback, self._stop_event),
                name=self.name,
                daemon=True,
            )
            self._thread.start()
        logger.debug(f"{self.name} started (interval={interval}s)")

    def stop(self, timeout: float = 2.0) -> None:
        """Stop the timer thread. Safe to call from inside the callback."""
        with self._lock:
            thread = self._thread
            if thread is None:
                return
            self._thread = None
            self._stop_event.set()

        if thread is not threading.current_thread():
            thread.join(timeout=timeout)
        logger.debug(f"{self.name} stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None

    def _loop(
        self, interval: float, callback: Callable[[], None], stop_event: threading.Event
    ) -> None:
        while not stop_event.wait(interval):
            try:
                callback()
            except Exception as e:
                logger.error(f"{self.name} callback error: {e}", exc_info=True)


class ThreadedForegroundTimer(IntervalThread):
    """Foreground timer for headless and desktop runs."""

    def __init__(self):
        super().__init__(name="ForegroundTimer")


class ThreadedBackgroundScheduler:
    """
    Desktop stand-in for the OS background task facility.

    Each registered task runs on its own IntervalThread at its minimum interval.
    """

    def __init__(self):
        self._tasks: dict[str, IntervalThread] = {}
        self._lock = threading.Lock()

    def register(self, name: str, callback: Callable[[], None], min_interval: float) -> None:
        with self._lock:
            if name in self._tasks:
                logger.debug(f"Background task already registered: {name}")
                return
            task = IntervalThread(name=f"Background:{name}")
            self._tasks[name] = task
        task.start(min_interval, callback)
        logger.info(f"Registered background task {name} (every {min_interval}s)")

    def unregister(self, name: str) -> None:
        with self._lock:
            task = self._tasks.pop(name, None)
        if task is not None:
            task.stop()
            logger.info(f"Unregistered background task {name}")

    def is_registered(self, name: str) -> bool:
        with self._lock:
            return name in self._tasks

    def unregister_all(self) -> None:
        for name in list(self._tasks):
            self.unregister(name)
