"""
Unit tests for distance and speed-band helpers.
"""

import pytest

from tripwatch.geo.geo_math import (
    SpeedBand,
    distance_miles,
    haversine_km,
    speed_band,
)


class TestHaversine:
    """Tests for great-circle distance."""

    def test_same_point_is_zero(self):
        assert haversine_km(37.7749, -122.4194, 37.7749, -122.4194) == pytest.approx(0.0)

    def test_one_degree_of_latitude(self):
        """One degree along a meridian is about 111.19 km."""
        assert haversine_km(0.0, 10.0, 1.0, 10.0) == pytest.approx(111.19, abs=0.01)

    def test_symmetric(self):
        a = haversine_km(40.7128, -74.0060, 34.0522, -118.2437)
        b = haversine_km(34.0522, -118.2437, 40.7128, -74.0060)
        assert a == pytest.approx(b)

    def test_new_york_to_los_angeles(self):
        assert haversine_km(40.7128, -74.0060, 34.0522, -118.2437) == pytest.approx(3936, rel=0.005)

    def test_antipodal_points_do_not_fail(self):
        """Rounding near antipodes must not produce NaN."""
        d = haversine_km(0.0, 0.0, 0.0, 180.0)
        assert d == pytest.approx(20015.1, rel=0.001)


class TestDistanceMiles:
    """Tests for path length through a sequence of samples."""

    def test_empty_and_single(self, sample):
        assert distance_miles([]) == 0.0
        assert distance_miles([sample(0)]) == 0.0

    def test_two_points(self, sample):
        points = [sample(2, lat=0.0, lon=10.0), sample(1, lat=1.0, lon=10.0)]
        assert distance_miles(points) == pytest.approx(111.19 * 0.621371, abs=0.01)

    def test_sums_legs(self, sample):
        """Out and back doubles the one-way distance."""
        out = [sample(2, lat=0.0, lon=10.0), sample(1, lat=1.0, lon=10.0)]
        back = out + [sample(0, lat=0.0, lon=10.0)]
        assert distance_miles(back) == pytest.approx(2 * distance_miles(out))

    def test_stationary_points(self, sample):
        points = [sample(m) for m in (3, 2, 1, 0)]
        assert distance_miles(points) == pytest.approx(0.0)


class TestSpeedBand:
    """Tests for speed bucketing."""

    @pytest.mark.parametrize(
        "speed,expected",
        [
            (None, SpeedBand.BAND_0_TO_20),
            (-5.0, SpeedBand.BAND_0_TO_20),
            (0.0, SpeedBand.BAND_0_TO_20),
            (19.9, SpeedBand.BAND_0_TO_20),
            (20.0, SpeedBand.BAND_20_TO_40),
            (45.0, SpeedBand.BAND_40_TO_60),
            (60.0, SpeedBand.BAND_60_TO_70),
            (72.0, SpeedBand.BAND_70_TO_75),
            (75.0, SpeedBand.BAND_75_PLUS),
            (120.0, SpeedBand.BAND_75_PLUS),
        ],
    )
    def test_band_boundaries(self, speed, expected):
        assert speed_band(speed) == expected

    def test_every_band_has_a_color(self):
        for band in SpeedBand:
            assert band.color.startswith("#")
            assert len(band.color) == 7
