"""
Telemetry engine: wires the acquisition pipeline together.

Components:
1. Session (credential + device id)
2. Telemetry client (provider HTTP API)
3. Telemetry cache (durable points and trips)
4. Trip segmenter
5. Fetch cycle
6. Mode scheduler (foreground timer / background callback)
"""

import logging
from datetime import datetime
from typing import Any, Callable

from ..geo.vehicle_status import stationary_reason
from ..telemetry.api_client import (
    DeviceLookup,
    RegistrationResult,
    TelemetryClient,
    WakeUpResult,
)
from ..telemetry.cache import TelemetryCache
from ..telemetry.fetch_cycle import FetchCycle
from ..telemetry.scheduler import ModeScheduler
from ..telemetry.segmenter import TripSegmenter
from ..telemetry.session import StoredSession
from ..telemetry.storage import KeyValueStore, open_store
from ..telemetry.timers import (
    BackgroundTaskScheduler,
    ForegroundTimer,
    ThreadedBackgroundScheduler,
    ThreadedForegroundTimer,
)
from .config import Config
from .models import FetchResult, Trip, utc_now

logger = logging.getLogger(__name__)


class TelemetryEngine:
    """
    Composition root for telemetry acquisition and trip segmentation.

    Usage:
        engine = TelemetryEngine(Config())
        engine.add_listener(on_result)
        engine.start(foregrounded=True)
        ...
        engine.stop()
    """

    def __init__(
        self,
        config: Config,
        foreground_timer: ForegroundTimer | None = None,
        background_scheduler: BackgroundTaskScheduler | None = None,
        session: StoredSession | None = None,
        client: TelemetryClient | None = None,
        store: KeyValueStore | None = None,
        clock: Callable[[], datetime] = utc_now,
        dispatch: Callable[[Callable[[], Any]], None] | None = None,
    ):
        """
        Initialize the engine.

        Args:
            config: TripWatch configuration
            foreground_timer: Defaults to a threaded timer
            background_scheduler: Defaults to the threaded desktop stand-in
            session: Defaults to a StoredSession at `session.path`
            client: Defaults to a TelemetryClient built from `api`
            store: Cache store; defaults to a JsonStore at `cache.path`
            clock: Source of the current UTC instant
            dispatch: Runs the immediate fetch; see ModeScheduler
        """
        self.config = config
        self.clock = clock

        if session is None:
            session = StoredSession(open_store(config.get("session.path", "~/.tripwatch/session.json")))
        if store is None:
            store = open_store(config.get("cache.path", "~/.tripwatch/telemetry.json"))

        self.session = session
        self.client = client or TelemetryClient(config["api"])
        self.cache = TelemetryCache(store, config["cache"], clock=clock)
        self.segmenter = TripSegmenter(config["segmentation"])

        self.loading = False
        self._loading_listeners: list[Callable[[bool], None]] = []

        self.fetch_cycle = FetchCycle(
            self.client,
            self.cache,
            self.segmenter,
            config["api"],
            clock=clock,
            on_sign_out=self.session.sign_out,
            on_loading=self._set_loading,
        )

        scheduler_kwargs = {"dispatch": dispatch} if dispatch is not None else {}
        self.scheduler = ModeScheduler(
            self.fetch_cycle,
            foreground_timer or ThreadedForegroundTimer(),
            background_scheduler or ThreadedBackgroundScheduler(),
            config["polling"],
            **scheduler_kwargs,
        )

        self.session.add_sign_in_listener(self.scheduler.credential_valid)
        self.session.add_sign_out_listener(self.scheduler.credential_invalid)

    def add_listener(self, listener: Callable[[FetchResult], None]) -> None:
        """Receive every FetchResult (live, cached or unavailable)."""
        self.scheduler.add_listener(listener)

    def add_loading_listener(self, listener: Callable[[bool], None]) -> None:
        self._loading_listeners.append(listener)

    def _set_loading(self, loading: bool) -> None:
        self.loading = loading
        for listener in list(self._loading_listeners):
            listener(loading)

    def start(self, foregrounded: bool = True) -> None:
        """
        Begin polling with whatever session is available.

        Args:
            foregrounded: Whether the application starts visible
        """
        if foregrounded:
            self.scheduler.entered_foreground()

        if self.session.is_authenticated or self.session.restore():
            self.scheduler.credential_valid(self.session.credential, self.session.device_id)
        else:
            logger.info("Not signed in, telemetry polling idle")

    def stop(self) -> None:
        self.scheduler.shutdown()
        self.client.close()

    def refresh(self) -> FetchResult | None:
        return self.scheduler.refresh()

    @property
    def latest(self) -> FetchResult | None:
        return self.scheduler.last_result

    def trips(self) -> list[Trip]:
        with self.scheduler.exclusive():
            return self.cache.list_trips()

    def wake_up_device(self) -> WakeUpResult:
        if not self.session.is_authenticated:
            return WakeUpResult(False, "Sign in to wake the camera.")
        return self.client.wake_up_device(self.session.device_id, self.session.credential)

    def check_device(self) -> DeviceLookup:
        """Whether the signed-in account has a telemetry device."""
        if not self.session.is_authenticated:
            return DeviceLookup(False, "Not signed in")
        return self.client.check_device(self.session.device_id, self.session.credential, self.clock())

    def register_device(self, imei: str, name: str, **details: Any) -> RegistrationResult:
        """Register a device to the signed-in account; see TelemetryClient.register_device."""
        if not self.session.credential:
            return RegistrationResult(False, "Not signed in")
        return self.client.register_device(self.session.credential, imei, name, **details)

    def status(self) -> dict[str, Any]:
        """Snapshot of engine state for status displays."""
        latest = self.latest
        mode = self.scheduler.polling_mode
        return {
            "state": str(self.scheduler.state),
            "polling_mode": str(mode) if mode else None,
            "foregrounded": self.scheduler.is_foregrounded,
            "fetching": self.scheduler.is_fetching,
            "signed_in": self.session.is_authenticated,
            "device_id": self.session.device_id,
            "data_status": latest.status_label if latest else None,
            "stationary_reason": stationary_reason(latest.points, self.clock()) if latest else None,
        }
