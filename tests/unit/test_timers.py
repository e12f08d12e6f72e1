"""
Unit tests for the threaded timer implementations.
"""

import threading

from tripwatch.telemetry.timers import (
    BackgroundTaskScheduler,
    ForegroundTimer,
    IntervalThread,
    ThreadedBackgroundScheduler,
    ThreadedForegroundTimer,
)


class TestIntervalThread:
    """Tests for the repeating daemon thread."""

    def test_fires_repeatedly(self):
        fired = threading.Semaphore(0)
        timer = IntervalThread("Test")
        timer.start(0.01, fired.release)
        try:
            assert fired.acquire(timeout=2)
            assert fired.acquire(timeout=2)
        finally:
            timer.stop()
        assert not timer.is_running

    def test_callback_errors_do_not_stop_loop(self):
        calls = []
        done = threading.Event()

        def callback():
            calls.append(1)
            if len(calls) >= 2:
                done.set()
            raise RuntimeError("boom")

        timer = IntervalThread("Test")
        timer.start(0.01, callback)
        try:
            assert done.wait(timeout=2)
        finally:
            timer.stop()

    def test_stop_from_callback(self):
        """Stopping from inside the callback does not deadlock."""
        timer = IntervalThread("Test")
        stopped = threading.Event()

        def callback():
            timer.stop()
            stopped.set()

        timer.start(0.01, callback)
        assert stopped.wait(timeout=2)
        assert not timer.is_running


class TestThreadedImplementations:
    """Tests for protocol conformance and registration bookkeeping."""

    def test_protocols(self):
        assert isinstance(ThreadedForegroundTimer(), ForegroundTimer)
        assert isinstance(ThreadedBackgroundScheduler(), BackgroundTaskScheduler)

    def test_register_unregister(self):
        scheduler = ThreadedBackgroundScheduler()
        scheduler.register("task", lambda: None, 60)
        scheduler.register("task", lambda: None, 60)
        assert scheduler.is_registered("task")
        scheduler.unregister("task")
        assert not scheduler.is_registered("task")
        scheduler.unregister("task")

    def test_unregister_all(self):
        scheduler = ThreadedBackgroundScheduler()
        scheduler.register("a", lambda: None, 60)
        scheduler.register("b", lambda: None, 60)
        scheduler.unregister_all()
        assert not scheduler.is_registered("a")
        assert not scheduler.is_registered("b")
