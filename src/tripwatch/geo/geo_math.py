"""
Great-circle distance and speed banding.

Pure functions with no side effects. Distances are computed with the
Haversine formula over a spherical Earth (radius 6371 km) and reported in
miles.
"""

from collections.abc import Sequence
from enum import Enum

import numpy as np

from ..core.models import GpsSample

EARTH_RADIUS_KM = 6371.0
KM_TO_MILES = 0.621371


class SpeedBand(Enum):
    """Speed buckets shared by the map presentation and the trip summaries."""

    BAND_0_TO_20 = "0-20"
    BAND_20_TO_40 = "20-40"
    BAND_40_TO_60 = "40-60"
    BAND_60_TO_70 = "60-70"
    BAND_70_TO_75 = "70-75"
    BAND_75_PLUS = "75+"

    def __str__(self) -> str:
        return self.value

    @property
    def color(self) -> str:
        return SPEED_BAND_COLORS[self]


# Hex colors, green through dark red
SPEED_BAND_COLORS = {
    SpeedBand.BAND_0_TO_20: "#22c55e",
    SpeedBand.BAND_20_TO_40: "#84cc16",
    SpeedBand.BAND_40_TO_60: "#eab308",
    SpeedBand.BAND_60_TO_70: "#f97316",
    SpeedBand.BAND_70_TO_75: "#ef4444",
    SpeedBand.BAND_75_PLUS: "#991b1b",
}

# (upper bound exclusive, band)
_BAND_LIMITS = (
    (20.0, SpeedBand.BAND_0_TO_20),
    (40.0, SpeedBand.BAND_20_TO_40),
    (60.0, SpeedBand.BAND_40_TO_60),
    (70.0, SpeedBand.BAND_60_TO_70),
    (75.0, SpeedBand.BAND_70_TO_75),
)


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two coordinates in kilometers."""
    return float(_haversine_km(np.array([lat1]), np.array([lon1]),
                               np.array([lat2]), np.array([lon2]))[0])


def _haversine_km(
    lat1: np.ndarray, lon1: np.ndarray, lat2: np.ndarray, lon2: np.ndarray
) -> np.ndarray:
    lat1, lon1, lat2, lon2 = (np.radians(a) for a in (lat1, lon1, lat2, lon2))
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = np.sin(dlat / 2) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin(dlon / 2) ** 2
    # Rounding can push `a` a hair outside [0, 1] for antipodal points
    a = np.clip(a, 0.0, 1.0)
    return 2 * EARTH_RADIUS_KM * np.arctan2(np.sqrt(a), np.sqrt(1 - a))


def distance_miles(points: Sequence[GpsSample]) -> float:
    """
    Total path length through consecutive points, in miles.

    Args:
        points: Samples in travel order

    Returns:
        Sum of the Haversine legs converted to miles; 0.0 for fewer than two points.
    """
    if len(points) < 2:
        return 0.0

    lats = np.fromiter((p.latitude for p in points), dtype=float, count=len(points))
    lons = np.fromiter((p.longitude for p in points), dtype=float, count=len(points))
    legs = _haversine_km(lats[:-1], lons[:-1], lats[1:], lons[1:])
    return float(legs.sum()) * KM_TO_MILES


def speed_band(speed_mph: float | None) -> SpeedBand:
    """Bucket a speed; absent or negative speeds fall in the lowest band."""
    if speed_mph is None or speed_mph < 0:
        return SpeedBand.BAND_0_TO_20
    for limit, band in _BAND_LIMITS:
        if speed_mph < limit:
            return band
    return SpeedBand.BAND_75_PLUS
