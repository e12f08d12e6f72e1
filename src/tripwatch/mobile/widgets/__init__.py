"""Custom Kivy widgets for TripWatch."""

from .status_panel import TelemetryStatusPanel

__all__ = ["TelemetryStatusPanel"]
