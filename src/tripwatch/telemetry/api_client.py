"""
HTTP client for the telemetry provider.

Wraps a `requests.Session` and maps every failure onto the engine's error
kinds: HTTP 401 raises Unauthorized; any other non-success status, network
error, timeout or unreadable body raises TransportFailure.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

import requests

from ..core.errors import TransportFailure, Unauthorized
from ..core.models import GpsSample, format_instant, utc_now

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.garditech.com/api"


@dataclass
class WakeUpResult:
    """Outcome of a device wake-up request."""

    success: bool
    message: str


@dataclass
class DeviceLookup:
    has_device: bool
    error: str | None = None


@dataclass
class RegistrationResult:
    success: bool
    message: str


class TelemetryClient:
    """
    Client for the device telemetry endpoints.

    Usage:
        client = TelemetryClient(config['api'])
        samples = client.fetch_gps(imei, token, start, end)
    """

    def __init__(self, config: dict[str, Any] | None = None, session: requests.Session | None = None):
        """
        Initialize the client.

        Args:
            config: API settings with keys:
                - base_url: Provider API root
                - timeout: Per-request timeout in seconds (default 15)
            session: Optional pre-built session (tests inject a mock)
        """
        config = config or {}
        self.base_url = config.get("base_url", DEFAULT_BASE_URL).rstrip("/")
        self.timeout = config.get("timeout", 15)
        self.session = session or requests.Session()

    def _headers(self, credential: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {credential}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, credential: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method,
                url,
                headers=self._headers(credential),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.exceptions.Timeout as e:
            raise TransportFailure(f"Request timed out: {e}") from e
        except requests.RequestException as e:
            raise TransportFailure(f"Network error: {e}") from e

        if response.status_code == 401:
            raise Unauthorized("Server rejected the credential (HTTP 401)")
        return response

    def fetch_gps(
        self, device_id: str, credential: str, start: datetime, end: datetime
    ) -> list[GpsSample]:
        """
        Fetch raw GPS samples for a time window.

        Args:
            device_id: Device identifier (IMEI)
            credential: Bearer credential
            start: Window start (UTC)
            end: Window end (UTC)

        Returns:
            Samples in provider order, with speeds converted to mph. Records
            missing a coordinate or timestamp are skipped.

        Raises:
            Unauthorized: on HTTP 401
            TransportFailure: on any other failure
        """
        params = {"start": format_instant(start), "end": format_instant(end)}
        response = self._request("GET", f"/devices/{device_id}/gps", credential, params=params)

        if not response.ok:
            raise TransportFailure(
                f"GPS API error: {response.status_code} {response.reason}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise TransportFailure(f"Unreadable GPS response: {e}") from e

        records = body.get("gpsData") if isinstance(body, dict) else None
        if not isinstance(records, list):
            return []

        samples = []
        for record in records:
            if not isinstance(record, dict):
                logger.debug(f"Skipping non-object GPS record {record!r}")
                continue
            try:
                samples.append(GpsSample.from_provider(record))
            except (KeyError, TypeError, ValueError, OverflowError, OSError) as e:
                logger.debug(f"Skipping unreadable GPS record {record!r}: {e}")
        logger.debug(f"GPS API returned {len(records)} records, {len(samples)} usable")
        return samples

    def wake_up_device(self, device_id: str, credential: str) -> WakeUpResult:
        """
        Ask the provider to wake a sleeping camera device.

        Non-auth failures are reported on the result rather than raised.

        Raises:
            Unauthorized: on HTTP 401
        """
        try:
            response = self._request("POST", f"/devices/{device_id}/wake-up", credential)
        except TransportFailure as e:
            logger.error(f"Wake-up request failed: {e}")
            return WakeUpResult(False, "Unable to wake up the camera. Please check your connection.")

        body = _body_or_error(response)

        if not response.ok:
            message = body.get("error") or "Failed to wake up device"
            if "Something went wrong" in message:
                message = (
                    "Unable to wake camera. The device may be offline or unreachable. "
                    "Please ensure the device has cellular signal."
                )
            logger.error(f"Wake-up failed: HTTP {response.status_code} {message}")
            return WakeUpResult(False, message)

        if body.get("success"):
            logger.info(f"Wake-up command sent to {device_id}")
            return WakeUpResult(True, "Camera wake command sent! Wait 30-60 seconds, then tap Retry.")
        return WakeUpResult(False, "Failed to wake up the camera. Please try again.")

    def check_device(
        self, device_id: str, credential: str, now: datetime | None = None
    ) -> DeviceLookup:
        """
        Check whether the account has a telemetry device.

        The provider has no lookup endpoint; a GPS request for a short window
        succeeds only when the device exists.

        Raises:
            Unauthorized: on HTTP 401
        """
        end = now or utc_now()
        params = {"start": format_instant(end - timedelta(days=1)), "end": format_instant(end)}
        try:
            response = self._request("GET", f"/devices/{device_id}/gps", credential, params=params)
        except TransportFailure as e:
            logger.error(f"Device lookup failed: {e}")
            return DeviceLookup(False, str(e))

        if response.ok:
            return DeviceLookup(True)

        error = _body_or_error(response).get("error") or "Failed to fetch device"
        if response.status_code == 404 and "Device IMEI not found" in error:
            logger.warning("No device associated with this account")
            return DeviceLookup(False, "No device registered to this account")
        logger.error(f"Device lookup failed: HTTP {response.status_code} {error}")
        return DeviceLookup(False, error)

    def register_device(
        self,
        credential: str,
        imei: str,
        name: str,
        insurer: str | None = None,
        auto_year: int | None = None,
        auto_make: str | None = None,
        auto_model: str | None = None,
    ) -> RegistrationResult:
        """
        Register a device to the signed-in account.

        Raises:
            Unauthorized: on HTTP 401
        """
        payload = {
            "imei": imei,
            "name": name,
            "insurer": insurer,
            "autoYear": auto_year,
            "autoMake": auto_make,
            "autoModel": auto_model,
        }
        payload = {k: v for k, v in payload.items() if v is not None}
        try:
            response = self._request("POST", "/devices", credential, json=payload)
        except TransportFailure as e:
            logger.error(f"Device registration failed: {e}")
            return RegistrationResult(False, "Network error")

        body = _body_or_error(response)
        if response.ok:
            logger.info(f"Registered device {imei}")
            return RegistrationResult(True, body.get("message") or "Device registered")
        message = body.get("error") or "Failed to register device"
        logger.error(f"Device registration failed: HTTP {response.status_code} {message}")
        return RegistrationResult(False, message)

    def close(self) -> None:
        self.session.close()


def _body_or_error(response: requests.Response) -> dict[str, Any]:
    """JSON object body; a plain-text body is surfaced as `error`."""
    try:
        body = response.json()
    except ValueError:
        return {"error": response.text} if response.text else {}
    return body if isinstance(body, dict) else {}
