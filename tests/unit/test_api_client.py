"""
Unit tests for TelemetryClient.
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
import requests

from tripwatch.core.errors import TransportFailure, Unauthorized
from tripwatch.telemetry.api_client import TelemetryClient


def _response(status_code=200, body=None, json_error=False, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.reason = "Reason"
    response.text = text
    if json_error:
        response.json.side_effect = ValueError("No JSON")
    else:
        response.json.return_value = body
    return response


class TestFetchGps:
    """Tests for the GPS window request."""

    @pytest.fixture
    def session(self):
        return MagicMock()

    @pytest.fixture
    def client(self, session, test_config):
        return TelemetryClient(test_config["api"], session=session)

    def test_request_shape(self, client, session, now):
        session.request.return_value = _response(body={"gpsData": []})
        client.fetch_gps("imei-1", "tok", now - timedelta(hours=24), now)

        args, kwargs = session.request.call_args
        assert args == ("GET", "https://telemetry.test/api/devices/imei-1/gps")
        assert kwargs["headers"]["Authorization"] == "Bearer tok"
        assert kwargs["params"] == {
            "start": "2024-05-31T12:00:00.000Z",
            "end": "2024-06-01T12:00:00.000Z",
        }
        assert kwargs["timeout"] == 5

    def test_parses_records(self, client, session, now):
        """Speed is converted from m/s to mph."""
        body = {
            "gpsData": [
                {"lat": 37.7749, "lon": -122.4194, "time": now.timestamp(), "speed": 10.0},
                {"lat": 37.7750, "lon": -122.4195, "time": now.timestamp() - 60},
            ]
        }
        session.request.return_value = _response(body=body)
        samples = client.fetch_gps("imei-1", "tok", now - timedelta(hours=1), now)

        assert len(samples) == 2
        assert samples[0].timestamp == now
        assert samples[0].speed_mph == pytest.approx(22.3694)
        assert samples[1].speed_mph is None

    def test_skips_unreadable_records(self, client, session, now):
        body = {
            "gpsData": [
                {"lat": 37.0, "lon": -122.0},
                {"lat": "north", "lon": -122.0, "time": now.timestamp()},
                {"lat": 37.0, "lon": -122.0, "time": now.timestamp()},
            ]
        }
        session.request.return_value = _response(body=body)
        assert len(client.fetch_gps("imei-1", "tok", now, now)) == 1

    @pytest.mark.parametrize("junk", [None, "x", 42, ["lat", "lon"]])
    def test_skips_non_object_records(self, client, session, now, junk):
        """A record that is not an object is skipped, not fatal to the batch."""
        body = {"gpsData": [junk, {"lat": 37.0, "lon": -122.0, "time": now.timestamp()}]}
        session.request.return_value = _response(body=body)
        samples = client.fetch_gps("imei-1", "tok", now, now)
        assert len(samples) == 1
        assert samples[0].latitude == 37.0

    @pytest.mark.parametrize("body", [{}, {"gpsData": None}, {"gpsData": "x"}, []])
    def test_missing_data_is_empty(self, client, session, now, body):
        session.request.return_value = _response(body=body)
        assert client.fetch_gps("imei-1", "tok", now, now) == []

    def test_unauthorized(self, client, session, now):
        session.request.return_value = _response(status_code=401)
        with pytest.raises(Unauthorized):
            client.fetch_gps("imei-1", "tok", now, now)

    def test_server_error(self, client, session, now):
        session.request.return_value = _response(status_code=503)
        with pytest.raises(TransportFailure) as info:
            client.fetch_gps("imei-1", "tok", now, now)
        assert info.value.status_code == 503

    def test_timeout(self, client, session, now):
        session.request.side_effect = requests.exceptions.Timeout("slow")
        with pytest.raises(TransportFailure):
            client.fetch_gps("imei-1", "tok", now, now)

    def test_connection_error(self, client, session, now):
        session.request.side_effect = requests.exceptions.ConnectionError("offline")
        with pytest.raises(TransportFailure):
            client.fetch_gps("imei-1", "tok", now, now)

    def test_unreadable_body(self, client, session, now):
        session.request.return_value = _response(json_error=True)
        with pytest.raises(TransportFailure):
            client.fetch_gps("imei-1", "tok", now, now)


class TestWakeUp:
    """Tests for the device wake-up request."""

    @pytest.fixture
    def session(self):
        return MagicMock()

    @pytest.fixture
    def client(self, session, test_config):
        return TelemetryClient(test_config["api"], session=session)

    def test_success(self, client, session):
        session.request.return_value = _response(body={"success": True})
        result = client.wake_up_device("imei-1", "tok")
        assert result.success is True
        args, _ = session.request.call_args
        assert args == ("POST", "https://telemetry.test/api/devices/imei-1/wake-up")

    def test_not_successful(self, client, session):
        session.request.return_value = _response(body={"success": False})
        assert client.wake_up_device("imei-1", "tok").success is False

    def test_offline_device_message(self, client, session):
        session.request.return_value = _response(
            status_code=500, body={"error": "Something went wrong"}
        )
        result = client.wake_up_device("imei-1", "tok")
        assert result.success is False
        assert "offline" in result.message

    def test_network_failure_is_reported(self, client, session):
        session.request.side_effect = requests.exceptions.ConnectionError("offline")
        result = client.wake_up_device("imei-1", "tok")
        assert result.success is False

    def test_unauthorized_raises(self, client, session):
        session.request.return_value = _response(status_code=401)
        with pytest.raises(Unauthorized):
            client.wake_up_device("imei-1", "tok")


class TestDeviceAccount:
    """Tests for device lookup and registration."""

    @pytest.fixture
    def session(self):
        return MagicMock()

    @pytest.fixture
    def client(self, session, test_config):
        return TelemetryClient(test_config["api"], session=session)

    def test_device_found(self, client, session, now):
        session.request.return_value = _response(body={"gpsData": []})
        lookup = client.check_device("imei-1", "tok", now)

        assert lookup.has_device is True
        args, kwargs = session.request.call_args
        assert args == ("GET", "https://telemetry.test/api/devices/imei-1/gps")
        assert kwargs["params"]["end"] == "2024-06-01T12:00:00.000Z"

    def test_device_not_registered(self, client, session, now):
        session.request.return_value = _response(
            status_code=404, body={"error": "Device IMEI not found for user"}
        )
        lookup = client.check_device("imei-1", "tok", now)
        assert lookup.has_device is False
        assert lookup.error == "No device registered to this account"

    def test_lookup_plain_text_error(self, client, session, now):
        session.request.return_value = _response(status_code=500, json_error=True, text="boom")
        lookup = client.check_device("imei-1", "tok", now)
        assert lookup.has_device is False
        assert lookup.error == "boom"

    def test_lookup_network_failure(self, client, session, now):
        session.request.side_effect = requests.exceptions.ConnectionError("offline")
        assert client.check_device("imei-1", "tok", now).has_device is False

    def test_register(self, client, session):
        session.request.return_value = _response(status_code=201, body={"message": "Created"})
        result = client.register_device("tok", "123456789012345", "Family car", auto_year=2020)

        assert result.success is True
        assert result.message == "Created"
        args, kwargs = session.request.call_args
        assert args == ("POST", "https://telemetry.test/api/devices")
        assert kwargs["json"] == {"imei": "123456789012345", "name": "Family car", "autoYear": 2020}

    def test_register_rejected(self, client, session):
        session.request.return_value = _response(status_code=409, body={"error": "IMEI in use"})
        result = client.register_device("tok", "123456789012345", "Family car")
        assert result.success is False
        assert result.message == "IMEI in use"

    def test_register_unauthorized(self, client, session):
        session.request.return_value = _response(status_code=401)
        with pytest.raises(Unauthorized):
            client.register_device("tok", "123456789012345", "Family car")
