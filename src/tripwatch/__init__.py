"""
TripWatch - Vehicle telemetry acquisition and trip segmentation

Periodically fetches a vehicle's GPS samples from the telematics provider,
splits them into the current trip and completed trips, and keeps a durable
cache so the last known location survives network outages.
"""

__version__ = "0.1.0"
__author__ = "TripWatch Team"

from .core.engine import TelemetryEngine
from .core.models import DataSource, FetchResult, GpsSample, Trip

__all__ = ["TelemetryEngine", "DataSource", "FetchResult", "GpsSample", "Trip", "__version__"]
