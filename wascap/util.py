"""
Utility functions for wascap.

Provides encoding, time and identifier helpers shared by the token and
key modules.
"""

import base64
import binascii
import secrets
import time
from datetime import datetime, timezone
from typing import Optional

from .constants import SECS_PER_DAY


def now_epoch() -> int:
    """Get current Unix timestamp as integer."""
    return int(time.time())


def days_from_now(days: Optional[int], now: Optional[int] = None) -> Optional[int]:
    """
    Convert a day offset into an absolute Unix timestamp.

    Returns None when ``days`` is None, so an absent bound stays absent.
    """
    if days is None:
        return None
    if now is None:
        now = now_epoch()
    return now + int(days) * SECS_PER_DAY


def b64url_encode(b: bytes) -> str:
    """URL-safe base64 encode bytes to string (no padding)."""
    return base64.urlsafe_b64encode(b).rstrip(b'=').decode('ascii')


def b64url_decode(s: str) -> bytes:
    """
    URL-safe base64 decode string to bytes (handles missing padding).

    Unlike ``base64.urlsafe_b64decode`` this rejects characters outside the
    alphabet instead of silently discarding them, and rejects encodings
    whose unused trailing bits are set.

    Raises:
        ValueError: if the input is not valid unpadded base64url
    """
    if any(c in s for c in '+/='):
        raise ValueError("character outside the base64url alphabet")
    try:
        raw = s.encode('ascii')
    except UnicodeEncodeError as exc:
        raise ValueError("non-ascii character in base64url segment") from exc
    padding = 4 - (len(raw) % 4)
    if padding != 4:
        raw += b'=' * padding
    try:
        decoded = base64.b64decode(raw, altchars=b'-_', validate=True)
    except binascii.Error as exc:
        raise ValueError(f"invalid base64url segment: {exc}") from exc

    # Unused trailing bits must be zero: one byte string, one encoding
    if b64url_encode(decoded) != s:
        raise ValueError("non-canonical base64url encoding")
    return decoded


def utc_rfc3339(ts_epoch: int) -> str:
    """Convert Unix timestamp to RFC3339 UTC string."""
    return datetime.fromtimestamp(ts_epoch, tz=timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')


def generate_id(length: int = 16) -> str:
    """Generate a cryptographically secure random ID."""
    return secrets.token_hex(length)


def mask_sensitive(value: str, visible_chars: int = 4) -> str:
    """
    Mask a sensitive value, showing only the last N characters.
    Useful for logging.
    """
    if len(value) <= visible_chars:
        return '*' * len(value)
    return '*' * (len(value) - visible_chars) + value[-visible_chars:]
