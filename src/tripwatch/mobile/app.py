"""
TripWatch Kivy Application - live vehicle location on desktop and mobile.

Hosts the telemetry engine and translates the Kivy application lifecycle
(start, pause, resume, stop) into Mode Scheduler events.
"""

import logging
import os
import platform as sys_platform
from pathlib import Path

# Prevent Kivy from consuming command-line arguments
os.environ["KIVY_NO_ARGS"] = "1"

from kivy.app import App
from kivy.clock import Clock
from kivy.logger import Logger

from ..core.config import Config
from ..core.engine import TelemetryEngine
from ..core.models import FetchResult
from ..telemetry.session import StoredSession
from ..telemetry.storage import open_store
from ..telemetry.timers import ThreadedBackgroundScheduler
from .clock_timer import ClockForegroundTimer
from .widgets.status_panel import TelemetryStatusPanel

logger = logging.getLogger(__name__)


class TripWatchApp(App):
    """
    Main TripWatch Kivy application.

    Coordinates:
    - Telemetry engine (fetch cycle, cache, segmentation)
    - Lifecycle events (via on_start / on_pause / on_resume / on_stop)
    - Status display (via TelemetryStatusPanel)
    """

    def __init__(self, app_config: Config | None = None, **kwargs):
        """
        Initialize the TripWatch app.

        Args:
            app_config: Optional Config object. If not provided, loads from default location.
        """
        super().__init__(**kwargs)

        if app_config is None:
            app_config = Config()
        self.app_config = app_config

        self.platform_type = self._detect_platform()

        self.engine: TelemetryEngine | None = None
        self.status_panel: TelemetryStatusPanel | None = None

        Logger.info(f"TripWatch: Initialized on {sys_platform.system()} ({self.platform_type})")

    def _detect_platform(self) -> str:
        """Detect current platform type."""
        if sys_platform.system() == "Linux":
            try:
                import android  # noqa: F401
                return "android"
            except ImportError:
                return "desktop"
        return "desktop"

    def _data_path(self, configured: str, filename: str) -> str:
        """Platform-appropriate location for a store file."""
        if self.platform_type == "android":
            return str(Path(self.user_data_dir) / filename)
        return configured

    def build(self):
        """Build the engine and the status UI."""
        self.title = "TripWatch"

        session_path = self.app_config.get("session.path", "~/.tripwatch/session.json")
        cache_path = self.app_config.get("cache.path", "~/.tripwatch/telemetry.json")
        session = StoredSession(open_store(self._data_path(session_path, "session.json")))
        store = open_store(self._data_path(cache_path, "telemetry.json"))

        # The process keeps running while paused, so the threaded scheduler
        # stands in for the platform's background task facility.
        self.engine = TelemetryEngine(
            self.app_config,
            foreground_timer=ClockForegroundTimer(),
            background_scheduler=ThreadedBackgroundScheduler(),
            session=session,
            store=store,
        )
        self.engine.add_listener(self._on_result)
        self.engine.add_loading_listener(self._on_loading)

        self.status_panel = TelemetryStatusPanel()
        return self.status_panel

    def on_start(self):
        """Called when the application starts."""
        Logger.info("TripWatch: Application starting")
        self.engine.start(foregrounded=True)

    def on_pause(self):
        """App moved to the background; keep the process alive."""
        Logger.info("TripWatch: Entering background")
        self.engine.scheduler.entered_background()
        return True

    def on_resume(self):
        Logger.info("TripWatch: Returning to foreground")
        self.engine.scheduler.entered_foreground()

    def on_stop(self):
        """Called when the application stops."""
        Logger.info("TripWatch: Application stopping")
        if self.engine:
            self.engine.stop()
        Logger.info("TripWatch: Application stopped")

    def _on_result(self, result: FetchResult):
        """Handle a fetch result from a worker thread."""
        trip_count = len(self.engine.trips())
        Clock.schedule_once(lambda dt: self._update_ui(result, trip_count), 0)

    def _on_loading(self, loading: bool):
        Clock.schedule_once(lambda dt: self.status_panel.set_loading(loading), 0)

    def _update_ui(self, result: FetchResult, trip_count: int):
        """Update UI with the latest result (called on main thread)."""
        if self.status_panel:
            self.status_panel.update(result, trip_count)


def run_mobile_app(config: Config | None = None):
    """
    Run the TripWatch mobile/desktop Kivy application.

    Args:
        config: Optional Config object.
    """
    app = TripWatchApp(app_config=config)
    app.run()
