"""Core components for TripWatch."""

from .config import Config
from .errors import ErrorKind, TelemetryError
from .models import CacheEntry, DataSource, FetchResult, GpsSample, PollingMode, Trip

__all__ = [
    "Config",
    "ErrorKind",
    "TelemetryError",
    "CacheEntry",
    "DataSource",
    "FetchResult",
    "GpsSample",
    "PollingMode",
    "Trip",
]
