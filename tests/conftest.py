"""
Pytest fixtures for TripWatch tests.

Provides common test fixtures including:
- Test configuration
- A JsonStore in a temporary directory
- A controllable clock and fake timers
- GPS sample and credential builders
"""

import os

# Keep Kivy from parsing pytest's arguments
os.environ.setdefault("KIVY_NO_ARGS", "1")

import base64
import json
from datetime import datetime, timedelta, timezone

import pytest

from tripwatch.core.models import GpsSample
from tripwatch.telemetry.storage import open_store

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeForegroundTimer:
    """Foreground timer that only fires when tick() is called."""

    def __init__(self):
        self.callback = None
        self.interval = None

    def start(self, interval, callback):
        self.interval = interval
        self.callback = callback

    def stop(self):
        self.callback = None

    @property
    def is_running(self):
        return self.callback is not None

    def tick(self):
        self.callback()


class FakeBackgroundScheduler:
    """Background task facility that only fires when fire() is called."""

    def __init__(self):
        self.tasks = {}

    def register(self, name, callback, min_interval):
        self.tasks[name] = (callback, min_interval)

    def unregister(self, name):
        self.tasks.pop(name, None)

    def is_registered(self, name):
        return name in self.tasks

    def fire(self, name):
        self.tasks[name][0]()


def make_sample(
    minutes_ago: float,
    now: datetime = NOW,
    lat: float = 37.7749,
    lon: float = -122.4194,
    speed_mph: float | None = 25.0,
) -> GpsSample:
    """Sample taken `minutes_ago` before `now`."""
    return GpsSample(
        latitude=lat,
        longitude=lon,
        timestamp=now - timedelta(minutes=minutes_ago),
        speed_mph=speed_mph,
    )


def _b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def make_token(claims: dict | None = None) -> str:
    """Unsigned JWT-shaped credential with the given claims."""
    header = _b64(json.dumps({"alg": "HS256", "typ": "JWT"}).encode())
    payload = _b64(json.dumps(claims or {}).encode())
    return f"{header}.{payload}.signature"


@pytest.fixture
def test_config():
    """Test configuration dictionary."""
    return {
        "app": {"name": "TripWatch", "version": "0.1.0", "debug": False},
        "api": {
            "base_url": "https://telemetry.test/api",
            "timeout": 5,
            "window_hours": 24,
        },
        "polling": {
            "foreground_interval": 30,
            "background_interval": 900,
            "task_name": "test-background-fetch",
        },
        "segmentation": {"gap_minutes": 20, "display_limit": 20},
        "cache": {"max_age_days": 7, "trip_retention_days": 7, "max_trips": 500},
        "web": {"host": "127.0.0.1", "port": 5000},
    }


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path):
    """Fresh JsonStore backed by a temporary file."""
    return open_store(tmp_path / "store" / "telemetry.json")


@pytest.fixture
def valid_token():
    """Credential expiring thirty days after NOW."""
    return make_token({"sub": "user-1", "exp": int((NOW + timedelta(days=30)).timestamp())})


@pytest.fixture
def expired_token():
    """Credential that expired one hour before NOW."""
    return make_token({"sub": "user-1", "exp": int((NOW - timedelta(hours=1)).timestamp())})


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def sample():
    """Factory for GPS samples relative to NOW."""
    return make_sample


@pytest.fixture
def token():
    """Factory for JWT-shaped credentials."""
    return make_token


@pytest.fixture
def foreground_timer():
    return FakeForegroundTimer()


@pytest.fixture
def background_scheduler():
    return FakeBackgroundScheduler()
