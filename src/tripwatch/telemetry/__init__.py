"""
Telemetry acquisition: credential inspection, provider client, cache,
trip segmentation, fetch cycle and mode scheduling.
"""

from .cache import TelemetryCache
from .fetch_cycle import FetchCycle
from .scheduler import ModeScheduler, SchedulerState
from .segmenter import TripSegmenter

__all__ = ["TelemetryCache", "FetchCycle", "ModeScheduler", "SchedulerState", "TripSegmenter"]
