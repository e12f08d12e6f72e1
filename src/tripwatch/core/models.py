"""
Telemetry data structures.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, TypeVar

from .errors import ErrorKind

T = TypeVar("T")

MPS_TO_MPH = 2.23694
# Stored instants keep full precision so cached records compare equal
STORAGE_TIMESPEC = "microseconds"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_instant(value: datetime, timespec: str = "milliseconds") -> str:
    """ISO-8601 UTC with a trailing 'Z'."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.astimezone(timezone.utc).isoformat(timespec=timespec)
    return text.replace("+00:00", "Z")


def parse_instant(text: str) -> datetime:
    """Parse an ISO-8601 string; naive values are taken as UTC."""
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    value = datetime.fromisoformat(text)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


class PollingMode(Enum):
    """Which execution mode currently drives the Fetch Cycle."""

    FOREGROUND = "foreground"
    BACKGROUND = "background"

    def __str__(self) -> str:
        return self.value


class DataSource(Enum):
    """Provenance of the points in a FetchResult."""

    LIVE = "live"
    CACHED = "cached"
    UNAVAILABLE = "unavailable"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class GpsSample:
    """
    A single GPS fix. Immutable once created.

    Attributes:
        latitude: Degrees, [-90, 90]
        longitude: Degrees, [-180, 180]
        timestamp: Timezone-aware UTC instant
        speed_mph: Ground speed in mph, if reported
        heading_deg: Heading in degrees, if reported
        accuracy_m: Horizontal accuracy in meters, if reported
    """

    latitude: float
    longitude: float
    timestamp: datetime
    speed_mph: float | None = None
    heading_deg: float | None = None
    accuracy_m: float | None = None

    @property
    def is_valid(self) -> bool:
        """False for null-island (0/0), out-of-range or non-finite coordinates."""
        lat, lon = self.latitude, self.longitude
        if not (math.isfinite(lat) and math.isfinite(lon)):
            return False
        if lat == 0 and lon == 0:
            return False
        return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0

    @classmethod
    def from_provider(cls, record: dict[str, Any]) -> "GpsSample":
        """
        Build a sample from a provider record.

        The provider reports `lat`, `lon`, `time` (epoch seconds) and an
        optional `speed` in m/s, which is converted to mph.

        Raises:
            KeyError, TypeError, ValueError: if a required field is missing or unreadable
        """
        speed = record.get("speed")
        return cls(
            latitude=float(record["lat"]),
            longitude=float(record["lon"]),
            timestamp=datetime.fromtimestamp(float(record["time"]), tz=timezone.utc),
            speed_mph=float(speed) * MPS_TO_MPH if speed is not None else None,
            heading_deg=_optional_float(record.get("heading")),
            accuracy_m=_optional_float(record.get("accuracy")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timestamp": format_instant(self.timestamp, STORAGE_TIMESPEC),
            "speed_mph": self.speed_mph,
            "heading_deg": self.heading_deg,
            "accuracy_m": self.accuracy_m,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GpsSample":
        return cls(
            latitude=data["latitude"],
            longitude=data["longitude"],
            timestamp=parse_instant(data["timestamp"]),
            speed_mph=data.get("speed_mph"),
            heading_deg=data.get("heading_deg"),
            accuracy_m=data.get("accuracy_m"),
        )


def _optional_float(value: Any) -> float | None:
    return float(value) if value is not None else None


@dataclass
class Trip:
    """
    A completed trip: a contiguous run of samples closed off by a long gap.

    `points` are chronological and `start_time <= point.timestamp <= end_time`
    for every point. A trip always holds at least two points.
    """

    id: str
    start_time: datetime
    end_time: datetime
    points: list[GpsSample]
    distance_miles: float
    max_speed_mph: float
    avg_speed_mph: float
    point_count: int

    @property
    def duration_seconds(self) -> float:
        return (self.end_time - self.start_time).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "id": self.id,
            "start_time": format_instant(self.start_time, STORAGE_TIMESPEC),
            "end_time": format_instant(self.end_time, STORAGE_TIMESPEC),
            "duration_seconds": self.duration_seconds,
            "points": [p.to_dict() for p in self.points],
            "distance_miles": self.distance_miles,
            "max_speed_mph": self.max_speed_mph,
            "avg_speed_mph": self.avg_speed_mph,
            "point_count": self.point_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Trip":
        return cls(
            id=data["id"],
            start_time=parse_instant(data["start_time"]),
            end_time=parse_instant(data["end_time"]),
            points=[GpsSample.from_dict(p) for p in data.get("points", [])],
            distance_miles=data["distance_miles"],
            max_speed_mph=data["max_speed_mph"],
            avg_speed_mph=data["avg_speed_mph"],
            point_count=data["point_count"],
        )


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """Cached data together with the instant it was saved."""

    data: T
    saved_at: datetime

    def age_seconds(self, now: datetime) -> float:
        return (now - self.saved_at).total_seconds()


@dataclass
class FetchResult:
    """
    Outcome of one Fetch Cycle.

    Points are either all live or all cached, never a mix; `source` says which.

    Attributes:
        points: Current-trip points, chronological
        source: LIVE, CACHED or UNAVAILABLE
        as_of: Save time of the cached entry (CACHED) or fetch time (LIVE)
        closed_trips: Trips closed and persisted during this cycle
        error_kind: Failure that led to this result, if any
        error: Human-readable error message, if any
        sign_out_required: The credential is unusable; the user must sign in again
    """

    points: list[GpsSample] = field(default_factory=list)
    source: DataSource = DataSource.UNAVAILABLE
    as_of: datetime | None = None
    closed_trips: list[Trip] = field(default_factory=list)
    error_kind: ErrorKind | None = None
    error: str | None = None
    sign_out_required: bool = False

    @property
    def is_live(self) -> bool:
        return self.source == DataSource.LIVE

    @property
    def is_cached(self) -> bool:
        return self.source == DataSource.CACHED

    @property
    def latest_point(self) -> GpsSample | None:
        return self.points[-1] if self.points else None

    @property
    def status_label(self) -> str:
        """Short label for presentation collaborators."""
        if self.sign_out_required:
            return "Sign in required"
        if self.source == DataSource.LIVE:
            return "Live"
        if self.source == DataSource.CACHED:
            return "Using last known location"
        return "No location available"

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "source": self.source.value,
            "status": self.status_label,
            "as_of": format_instant(self.as_of) if self.as_of else None,
            "points": [p.to_dict() for p in self.points],
            "closed_trips": len(self.closed_trips),
            "error_kind": self.error_kind.value if self.error_kind else None,
            "error": self.error,
            "sign_out_required": self.sign_out_required,
        }
