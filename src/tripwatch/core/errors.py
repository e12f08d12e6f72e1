"""
Error kinds raised and reported by the telemetry engine.

Credential problems degrade to "require re-authentication"; everything else
degrades to "show cached or empty data". Nothing here is fatal to the process.
"""

from enum import Enum


class ErrorKind(Enum):
    """Every failure the engine can report on a FetchResult."""

    MALFORMED_CREDENTIAL = "malformed_credential"
    EXPIRED_CREDENTIAL = "expired_credential"
    UNAUTHORIZED = "unauthorized"
    TRANSPORT_FAILURE = "transport_failure"
    EMPTY_UPSTREAM_RESULT = "empty_upstream_result"
    CACHE_MISS = "cache_miss"

    def __str__(self) -> str:
        return self.value

    @property
    def requires_sign_out(self) -> bool:
        return self in (
            ErrorKind.MALFORMED_CREDENTIAL,
            ErrorKind.EXPIRED_CREDENTIAL,
            ErrorKind.UNAUTHORIZED,
        )


class TelemetryError(Exception):
    """Base class for telemetry engine errors."""

    kind: ErrorKind


class CredentialError(TelemetryError):
    """The bearer credential cannot be used; the user must sign in again."""


class MalformedCredential(CredentialError):
    kind = ErrorKind.MALFORMED_CREDENTIAL


class ExpiredCredential(CredentialError):
    kind = ErrorKind.EXPIRED_CREDENTIAL


class Unauthorized(CredentialError):
    """The server rejected the credential (HTTP 401)."""

    kind = ErrorKind.UNAUTHORIZED


class TransportFailure(TelemetryError):
    """Network error, timeout, unreadable body or a non-success HTTP status."""

    kind = ErrorKind.TRANSPORT_FAILURE

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
