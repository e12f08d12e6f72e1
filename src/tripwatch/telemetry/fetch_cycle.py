"""
One complete telemetry refresh attempt.

Pipeline:
1. Credential check (expired or malformed -> sign-out, no network, no cache)
2. Fetch the trailing window of samples from the provider
3. Segment into current trip + closed trips
4. Persist closed trips and the current-trip snapshot
5. On empty data or transport failure, fall back to the cached snapshot
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from ..core.errors import CredentialError, ErrorKind, TransportFailure, Unauthorized
from ..core.models import DataSource, FetchResult, utc_now
from . import token_inspector
from .api_client import TelemetryClient
from .cache import TelemetryCache
from .segmenter import TripSegmenter

logger = logging.getLogger(__name__)


class FetchCycle:
    """
    Orchestrates a single refresh: credential, network, segmentation, cache.

    The result never mixes live and cached points, and always carries its
    source so callers can label cached data as such.

    Usage:
        cycle = FetchCycle(client, cache, segmenter, on_sign_out=session.sign_out)
        result = cycle.run(token, imei)
    """

    def __init__(
        self,
        client: TelemetryClient,
        cache: TelemetryCache,
        segmenter: TripSegmenter,
        config: dict[str, Any] | None = None,
        clock: Callable[[], datetime] = utc_now,
        on_sign_out: Callable[[ErrorKind], None] | None = None,
        on_loading: Callable[[bool], None] | None = None,
    ):
        """
        Initialize the fetch cycle.

        Args:
            client: Provider HTTP client
            cache: Telemetry cache for persistence and fallback
            segmenter: Trip segmenter
            config: API settings; `window_hours` sets the trailing window (default 24)
            clock: Source of the current UTC instant
            on_sign_out: Called with the error kind when the credential is unusable
            on_loading: Called with True/False around foreground network calls
        """
        config = config or {}
        self.client = client
        self.cache = cache
        self.segmenter = segmenter
        self.clock = clock
        self.window = timedelta(hours=config.get("window_hours", 24))
        self.on_sign_out = on_sign_out
        self.on_loading = on_loading

    def run(
        self, credential: str, device_id: str, is_background_refresh: bool = False
    ) -> FetchResult:
        """
        Run one refresh attempt.

        Args:
            credential: Bearer credential
            device_id: Device identifier (IMEI)
            is_background_refresh: Suppresses the loading indicator

        Returns:
            FetchResult tagged LIVE, CACHED or UNAVAILABLE.
        """
        now = self.clock()

        try:
            token_inspector.check(credential, now)
        except CredentialError as e:
            return self._sign_out(e)

        show_loading = self.on_loading is not None and not is_background_refresh
        if show_loading:
            self.on_loading(True)

        try:
            logger.info(f"Fetching GPS data for device {device_id}")
            try:
                samples = self.client.fetch_gps(device_id, credential, now - self.window, now)
            except Unauthorized as e:
                return self._sign_out(e)
            except TransportFailure as e:
                logger.warning(f"GPS fetch failed, falling back to cache: {e}")
                return self._fallback(ErrorKind.TRANSPORT_FAILURE, str(e))

            segmentation = self.segmenter.segment(samples, device_id)
            if not segmentation.current_trip:
                logger.info("No GPS data available for this time range")
                return self._fallback(ErrorKind.EMPTY_UPSTREAM_RESULT, None)

            for trip in segmentation.closed_trips:
                self.cache.append_trip(trip)
            self.cache.save_points(segmentation.current_trip)

            logger.info(
                f"Live GPS data: {len(segmentation.current_trip)} current points, "
                f"{len(segmentation.closed_trips)} closed trips"
            )
            return FetchResult(
                points=segmentation.current_trip,
                source=DataSource.LIVE,
                as_of=now,
                closed_trips=segmentation.closed_trips,
            )
        finally:
            if show_loading:
                self.on_loading(False)

    def _fallback(self, kind: ErrorKind, error: str | None) -> FetchResult:
        """Serve the cached snapshot, or an empty result if there is none."""
        entry = self.cache.load_points()
        if entry is not None:
            logger.info(
                f"Using cached GPS data: {len(entry.data)} points saved at {entry.saved_at.isoformat()}"
            )
            return FetchResult(
                points=entry.data,
                source=DataSource.CACHED,
                as_of=entry.saved_at,
                error_kind=kind,
                error=error,
            )

        logger.info("No cached GPS data available")
        if kind == ErrorKind.EMPTY_UPSTREAM_RESULT:
            kind = ErrorKind.CACHE_MISS
        return FetchResult(source=DataSource.UNAVAILABLE, error_kind=kind, error=error)

    def _sign_out(self, error: CredentialError) -> FetchResult:
        logger.warning(f"Credential unusable ({error.kind}), sign-out required: {error}")
        if self.on_sign_out is not None:
            self.on_sign_out(error.kind)
        return FetchResult(
            source=DataSource.UNAVAILABLE,
            error_kind=error.kind,
            error=str(error),
            sign_out_required=True,
        )
