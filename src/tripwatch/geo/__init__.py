"""Geographic helpers for TripWatch."""

from .geo_math import SpeedBand, distance_miles, haversine_km, speed_band
from .vehicle_status import is_vehicle_stationary, stationary_reason

__all__ = [
    "SpeedBand",
    "distance_miles",
    "haversine_km",
    "speed_band",
    "is_vehicle_stationary",
    "stationary_reason",
]
