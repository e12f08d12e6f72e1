"""
Bearer credential inspection.

Reads the payload of a JWT-shaped credential without verifying its signature;
the engine only needs the expiry to decide whether to keep polling or to ask
for a sign-out.

Failure policy:
- Not three dot-separated segments: treated as expired (fail closed).
- Payload that cannot be decoded: treated as valid (fail open).
- No `exp` claim: treated as valid.
"""

import base64
import binascii
import json
import logging
from datetime import datetime, timezone
from typing import Any

from ..core.errors import CredentialError, ExpiredCredential, MalformedCredential
from ..core.models import utc_now

logger = logging.getLogger(__name__)


def decode_payload(credential: str) -> dict[str, Any]:
    """
    Decode the claims segment of a credential.

    Raises:
        MalformedCredential: if the credential is not three dot-separated segments
        ValueError: if the payload is not base64url-encoded JSON object
    """
    parts = credential.split(".")
    if len(parts) != 3:
        raise MalformedCredential(f"Expected 3 segments, got {len(parts)}")

    segment = parts[1]
    padded = segment + "=" * (-len(segment) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        payload = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, json.JSONDecodeError) as e:
        raise ValueError(f"Unreadable credential payload: {e}") from e

    if not isinstance(payload, dict):
        raise ValueError("Credential payload is not a key/value object")
    return payload


def expires_at(credential: str) -> datetime | None:
    """
    Expiry instant from the `exp` claim, or None when it is absent.

    Raises:
        MalformedCredential, ValueError: as for decode_payload, or if `exp` is not numeric
    """
    exp = decode_payload(credential).get("exp")
    if exp is None:
        return None
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        raise ValueError(f"Non-numeric exp claim: {exp!r}")
    return datetime.fromtimestamp(exp, tz=timezone.utc)


def check(credential: str, now: datetime | None = None) -> None:
    """
    Validate a credential before it is used.

    Raises:
        MalformedCredential: if the credential is not three dot-separated segments
        ExpiredCredential: if its `exp` claim is at or before `now`
    """
    now = now or utc_now()
    try:
        expiry = expires_at(credential)
    except MalformedCredential:
        raise
    except (ValueError, OverflowError, OSError) as e:
        logger.warning(f"Could not decode credential, assuming valid: {e}")
        return

    if expiry is not None and now >= expiry:
        raise ExpiredCredential(f"Credential expired at {expiry.isoformat()}")


def is_expired(credential: str, now: datetime | None = None) -> bool:
    """
    Check whether the credential must be treated as expired.

    Args:
        credential: Bearer credential string
        now: Reference instant, defaults to the current UTC time

    Returns:
        True if malformed or past its `exp`; False if valid, undecodable or without `exp`.
    """
    try:
        check(credential, now)
    except CredentialError as e:
        logger.info(f"Credential unusable: {e}")
        return True
    return False
