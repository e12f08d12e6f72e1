"""Flask status API for TripWatch."""

from .app import create_app

__all__ = ["create_app"]
