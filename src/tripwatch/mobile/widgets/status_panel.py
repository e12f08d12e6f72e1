"""
Telemetry status panel for TripWatch.

Shows whether the displayed location is live or cached, when it was
recorded, and the latest position and speed.
"""

import logging

from kivy.graphics import Color, RoundedRectangle
from kivy.uix.boxlayout import BoxLayout
from kivy.uix.label import Label
from kivy.utils import get_color_from_hex

from ...core.models import DataSource, FetchResult
from ...geo.geo_math import speed_band

logger = logging.getLogger(__name__)


# Source color mapping (R, G, B, A) - normalized 0-1
SOURCE_COLORS = {
    DataSource.LIVE: (0.0, 0.8, 0.0, 1.0),  # Green
    DataSource.CACHED: (1.0, 0.65, 0.0, 1.0),  # Orange
    DataSource.UNAVAILABLE: (0.5, 0.5, 0.5, 1.0),  # Gray
}


def _make_label(text: str, font_size: str, size_hint_y: float, **kwargs) -> Label:
    label = Label(
        text=text,
        font_size=font_size,
        halign="left",
        valign="middle",
        size_hint_y=size_hint_y,
        **kwargs,
    )
    label.bind(size=label.setter("text_size"))
    return label


class TelemetryStatusPanel(BoxLayout):
    """
    Panel summarizing the latest FetchResult.

    Layout:
    ┌──────────────────────────────┐
    │  Live / Using last known ... │
    │  As of: 14:02:11 UTC         │
    │  40.00100, -70.00100         │
    │  Speed: 32 mph (20-40)       │
    │  Trips (7 days): 3           │
    └──────────────────────────────┘
    """

    def __init__(self, **kwargs):
        kwargs.setdefault("orientation", "vertical")
        kwargs.setdefault("padding", [15, 10, 15, 10])
        kwargs.setdefault("spacing", 5)
        super().__init__(**kwargs)

        self._source = DataSource.UNAVAILABLE
        self._status_text = "Waiting for location"

        self._status_label = _make_label("Waiting for location", "26sp", 0.3, bold=True)
        self._as_of_label = _make_label("As of: --", "16sp", 0.175)
        self._position_label = _make_label("--", "16sp", 0.175)
        self._speed_label = _make_label("Speed: --", "16sp", 0.175)
        self._trips_label = _make_label("Trips (7 days): --", "16sp", 0.175)

        for label in (
            self._status_label,
            self._as_of_label,
            self._position_label,
            self._speed_label,
            self._trips_label,
        ):
            self.add_widget(label)

        self._draw_background()
        self.bind(pos=self._update_background, size=self._update_background)

    def _draw_background(self):
        with self.canvas.before:
            Color(0, 0, 0, 0.7)
            self._bg_rect = RoundedRectangle(pos=self.pos, size=self.size, radius=[10])

    def _update_background(self, *args):
        if hasattr(self, "_bg_rect"):
            self._bg_rect.pos = self.pos
            self._bg_rect.size = self.size

    def update(self, result: FetchResult, trip_count: int | None = None) -> None:
        """
        Show a new FetchResult. Must be called on the Kivy main thread.

        Args:
            result: Latest result from the engine
            trip_count: Completed trips currently cached, if known
        """
        self._source = result.source
        self._status_text = result.status_label
        self._status_label.text = self._status_text
        self._status_label.color = SOURCE_COLORS.get(result.source, (1, 1, 1, 1))

        if result.as_of is not None:
            prefix = "Saved" if result.is_cached else "As of"
            self._as_of_label.text = f"{prefix}: {result.as_of.strftime('%H:%M:%S UTC')}"
        else:
            self._as_of_label.text = "As of: --"

        latest = result.latest_point
        if latest is None:
            self._position_label.text = "--"
            self._speed_label.text = "Speed: --"
        else:
            self._position_label.text = f"{latest.latitude:.5f}, {latest.longitude:.5f}"
            band = speed_band(latest.speed_mph)
            speed = f"{latest.speed_mph:.0f} mph" if latest.speed_mph is not None else "--"
            self._speed_label.text = f"Speed: {speed} ({band})"
            self._speed_label.color = get_color_from_hex(band.color)

        if trip_count is not None:
            self._trips_label.text = f"Trips (7 days): {trip_count}"

    def set_loading(self, loading: bool) -> None:
        if loading:
            self._status_label.text = "Updating..."
        elif self._status_label.text == "Updating...":
            self._status_label.text = self._status_text
