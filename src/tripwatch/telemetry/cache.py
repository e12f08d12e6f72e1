"""
Telemetry cache.

Holds the most recent point-set snapshot (with its save time) and the list
of completed trips. Both are subject to a staleness window: a point-set
older than `max_age_days` is evicted rather than served, and trips whose end
is older than `trip_retention_days` are pruned on every read and write.
"""

import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta
from typing import Any

from ..core.models import (
    STORAGE_TIMESPEC,
    CacheEntry,
    GpsSample,
    Trip,
    format_instant,
    parse_instant,
    utc_now,
)
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

POINTS_KEY = "gps_points"
TRIPS_KEY = "trips"


class TelemetryCache:
    """
    Durable cache of the latest points and recently completed trips.

    Not internally locked: every caller is funneled through the Fetch Cycle,
    which the Mode Scheduler serializes. Each store operation is atomic at the
    granularity of one key.

    Usage:
        cache = TelemetryCache(open_store(path), config['cache'])
        cache.save_points(points)
        entry = cache.load_points()
    """

    def __init__(
        self,
        store: KeyValueStore,
        config: dict[str, Any] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the cache.

        Args:
            store: Durable key/value store
            config: Cache settings with keys:
                - max_age_days: Point-set staleness window (default 7)
                - trip_retention_days: Trip retention window (default 7)
                - max_trips: Upper bound on stored trips (default 500)
            clock: Source of the current UTC instant
        """
        config = config or {}
        self.store = store
        self.clock = clock
        self.max_age = timedelta(days=config.get("max_age_days", 7))
        self.trip_retention = timedelta(days=config.get("trip_retention_days", 7))
        self.max_trips = config.get("max_trips", 500)

    # Point-set snapshot

    def save_points(self, points: Sequence[GpsSample]) -> None:
        """Overwrite the point-set slot, stamped with the current time."""
        saved_at = self.clock()
        self.store.put(
            POINTS_KEY,
            data=[p.to_dict() for p in points],
            saved_at=format_instant(saved_at, STORAGE_TIMESPEC),
        )
        logger.debug(f"Cached {len(points)} points at {format_instant(saved_at)}")

    def load_points(self) -> CacheEntry[list[GpsSample]] | None:
        """
        Load the cached point-set.

        Returns:
            The entry with its save time, or None if nothing is stored or the
            entry has reached the staleness window (in which case it is deleted).
        """
        if not self.store.exists(POINTS_KEY):
            return None

        raw = self.store.get(POINTS_KEY)
        try:
            saved_at = parse_instant(raw["saved_at"])
            points = [GpsSample.from_dict(p) for p in raw["data"]]
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding unreadable point cache: {e}")
            self.store.delete(POINTS_KEY)
            return None

        age = self.clock() - saved_at
        if age >= self.max_age:
            logger.info(f"Cached points are {age} old, evicting")
            self.store.delete(POINTS_KEY)
            return None

        return CacheEntry(data=points, saved_at=saved_at)

    def clear_points(self) -> None:
        if self.store.exists(POINTS_KEY):
            self.store.delete(POINTS_KEY)

    # Completed trips

    def append_trip(self, trip: Trip) -> None:
        """
        Add a completed trip and prune expired ones.

        A stored trip ending at the same instant is the same drive seen in an
        earlier polling window. As the window slides past the drive's start,
        later sightings carry fewer points, so the copy that starts earliest
        is kept and the other is discarded.
        """
        trips = self._read_trips()
        for i, stored in enumerate(trips):
            if stored.end_time != trip.end_time:
                continue
            if _covers(stored, trip):
                logger.debug(f"Trip ending {format_instant(trip.end_time)} already stored")
                return
            trips[i] = trip
            break
        else:
            trips.append(trip)

        trips = self._retain(trips)
        self._write_trips(trips)
        logger.debug(f"Stored trip {trip.id} ({trip.point_count} points), {len(trips)} total")

    def list_trips(self) -> list[Trip]:
        """Stored trips within the retention window, in insertion order."""
        stored = self._read_trips()
        trips = self._retain(stored)
        if len(trips) != len(stored):
            logger.info(f"Pruned {len(stored) - len(trips)} expired trips")
            self._write_trips(trips)
        return trips

    def clear(self) -> None:
        """Remove everything this cache owns."""
        self.clear_points()
        if self.store.exists(TRIPS_KEY):
            self.store.delete(TRIPS_KEY)

    def _retain(self, trips: list[Trip]) -> list[Trip]:
        cutoff = self.clock() - self.trip_retention
        kept = [t for t in trips if t.end_time >= cutoff]
        if self.max_trips and len(kept) > self.max_trips:
            kept = sorted(kept, key=lambda t: t.end_time)[-self.max_trips :]
        return kept

    def _read_trips(self) -> list[Trip]:
        if not self.store.exists(TRIPS_KEY):
            return []
        trips = []
        for item in self.store.get(TRIPS_KEY).get("items", []):
            try:
                trips.append(Trip.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable cached trip: {e}")
        return trips

    def _write_trips(self, trips: list[Trip]) -> None:
        self.store.put(TRIPS_KEY, items=[t.to_dict() for t in trips])


def _covers(stored: Trip, candidate: Trip) -> bool:
    """True if `stored` holds at least as much of the drive as `candidate`."""
    if stored.start_time != candidate.start_time:
        return stored.start_time < candidate.start_time
    return stored.point_count >= candidate.point_count
