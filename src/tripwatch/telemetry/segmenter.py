"""
Trip segmentation.

Splits a batch of GPS samples into the current (still open) trip and any
trips that have been closed off by a long reporting gap. The core rule: two
consecutive samples belong to the same trip while the time between them is
below the gap threshold (20 minutes by default).
"""

import itertools
import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from ..core.models import GpsSample, Trip
from ..geo.geo_math import distance_miles

logger = logging.getLogger(__name__)

# Disambiguates ids when the monotonic clock is coarser than the call rate
_trip_sequence = itertools.count()


@dataclass
class SegmentationResult:
    """
    Attributes:
        current_trip: Newest contiguous segment, chronological, capped to the display limit
        closed_trips: Older segments of two or more samples, newest first
        discarded: Number of invalid samples dropped before segmentation
    """

    current_trip: list[GpsSample] = field(default_factory=list)
    closed_trips: list[Trip] = field(default_factory=list)
    discarded: int = 0


class TripSegmenter:
    """
    Splits time-ordered samples into the current trip and closed trips.

    Usage:
        segmenter = TripSegmenter(config['segmentation'], device_id=imei)
        result = segmenter.segment(samples)
    """

    def __init__(self, config: dict[str, Any] | None = None, device_id: str = ""):
        """
        Initialize the segmenter.

        Args:
            config: Segmentation settings with keys:
                - gap_minutes: Reporting gap that closes a trip (default 20)
                - display_limit: Max current-trip points returned (default 20)
            device_id: Included in generated trip ids
        """
        config = config or {}
        self.gap_threshold = timedelta(minutes=config.get("gap_minutes", 20))
        self.display_limit = config.get("display_limit", 20)
        self.device_id = device_id

    def segment(
        self, samples: Iterable[GpsSample], device_id: str | None = None
    ) -> SegmentationResult:
        """
        Segment a batch of samples.

        Args:
            samples: Samples in any order; invalid ones are discarded
            device_id: Overrides the device id used in generated trip ids

        Returns:
            SegmentationResult. The newest segment is always the current trip,
            even when it holds a single sample; older single-sample segments
            are dropped.
        """
        samples = list(samples)
        valid = [s for s in samples if s.is_valid]
        discarded = len(samples) - len(valid)
        if discarded:
            logger.debug(f"Discarded {discarded} invalid samples")

        if not valid:
            return SegmentationResult(discarded=discarded)

        # Newest first
        ordered = sorted(valid, key=lambda s: s.timestamp, reverse=True)
        segments = self._split(ordered)

        current = list(reversed(segments[0]))
        if self.display_limit:
            current = current[-self.display_limit :]

        closed = []
        for segment in segments[1:]:
            if len(segment) < 2:
                continue
            closed.append(self._build_trip(list(reversed(segment)), device_id or self.device_id))

        if closed:
            logger.info(f"Detected {len(closed)} closed trips")

        return SegmentationResult(current_trip=current, closed_trips=closed, discarded=discarded)

    def _split(self, ordered: list[GpsSample]) -> list[list[GpsSample]]:
        """Walk newest-to-oldest, starting a new segment at every long gap."""
        segments = [[ordered[0]]]
        for newer, older in zip(ordered, ordered[1:]):
            if newer.timestamp - older.timestamp >= self.gap_threshold:
                segments.append([older])
            else:
                segments[-1].append(older)
        return segments

    def _build_trip(self, points: list[GpsSample], device_id: str) -> Trip:
        """Summarize a chronological segment as a Trip."""
        speeds = [p.speed_mph for p in points if p.speed_mph is not None and p.speed_mph > 0]
        return Trip(
            id=_new_trip_id(device_id),
            start_time=points[0].timestamp,
            end_time=points[-1].timestamp,
            points=points,
            distance_miles=distance_miles(points),
            max_speed_mph=max(speeds) if speeds else 0.0,
            avg_speed_mph=sum(speeds) / len(speeds) if speeds else 0.0,
            point_count=len(points),
        )


def _new_trip_id(device_id: str) -> str:
    return f"{device_id or 'device'}-{time.monotonic_ns()}-{next(_trip_sequence)}"
