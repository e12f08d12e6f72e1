"""
TripWatch Mobile - Cross-platform Kivy shell for the telemetry engine.

Works on desktop (Windows, macOS, Linux) and mobile (Android, iOS).
"""

from .app import TripWatchApp

__all__ = ["TripWatchApp"]
