"""
Stationary-vehicle detection.

A vehicle is stationary when either
1. the newest point is 20+ minutes old (the device stopped reporting), or
2. the points span 20+ minutes and the most recent ones all show low speed.
"""

from collections.abc import Sequence
from datetime import datetime, timedelta

from ..core.models import GpsSample, utc_now

STATIONARY_THRESHOLD = timedelta(minutes=20)
LOW_SPEED_THRESHOLD_MPH = 3.0
RECENT_POINT_COUNT = 10


def _is_low_speed(point: GpsSample) -> bool:
    return not point.speed_mph or point.speed_mph < LOW_SPEED_THRESHOLD_MPH


def is_vehicle_stationary(
    points: Sequence[GpsSample], now: datetime | None = None
) -> bool:
    """
    Check whether the vehicle is stationary.

    Args:
        points: Chronological samples (oldest first)
        now: Reference instant, defaults to the current UTC time

    Returns:
        True if stationary; False when there are no points or the vehicle is moving.
    """
    if not points:
        return False
    now = now or utc_now()

    latest = points[-1]
    if now - latest.timestamp >= STATIONARY_THRESHOLD:
        return True

    if not _is_low_speed(latest):
        return False

    if len(points) >= 2:
        span = latest.timestamp - points[0].timestamp
        if span >= STATIONARY_THRESHOLD:
            return all(_is_low_speed(p) for p in points[-RECENT_POINT_COUNT:])

    return False


def stationary_reason(
    points: Sequence[GpsSample], now: datetime | None = None
) -> str | None:
    """Human-readable reason the vehicle is stationary, or None if it is not."""
    now = now or utc_now()
    if not is_vehicle_stationary(points, now):
        return None

    latest = points[-1]
    since_update = now - latest.timestamp
    if since_update >= STATIONARY_THRESHOLD:
        return f"No GPS updates for {int(since_update.total_seconds() // 60)} minutes"

    if len(points) >= 2:
        span_minutes = (latest.timestamp - points[0].timestamp).total_seconds() / 60
        if span_minutes >= STATIONARY_THRESHOLD.total_seconds() / 60:
            return f"Low speed for {span_minutes:.1f} minutes"

    return "Stationary"
