"""
TOTP (Time-based One-Time Password) implementation following RFC 6238.

HMAC-SHA1, 6 digits, 30-second steps; the same codes Google Authenticator
shows for a default secret.
"""

import time
from typing import Optional

from core import base32
from core.hotp import generate_hotp

PERIOD = 30


def _now(timestamp: Optional[float]) -> int:
    return int(timestamp if timestamp is not None else time.time())


def time_step(timestamp: Optional[float] = None) -> int:
    """Return the number of whole 30-second windows since the epoch."""
    return _now(timestamp) // PERIOD


def generate_totp(secret_bytes: bytes, timestamp: Optional[float] = None) -> str:
    """
    Generate a TOTP code.

    Args:
        secret_bytes: Raw (already base32-decoded) secret bytes.
        timestamp:    Override Unix timestamp (uses time.time() if None).

    Returns:
        6-digit OTP string.
    """
    return generate_hotp(secret_bytes, time_step(timestamp))


def remaining_seconds(timestamp: Optional[float] = None) -> int:
    """Return seconds until the current TOTP window expires (1..30)."""
    return PERIOD - (_now(timestamp) % PERIOD)


def code_for_secret(secret: str, timestamp: Optional[float] = None) -> str:
    """Decode a Base32 secret and return its current code."""
    return generate_totp(base32.decode(secret), timestamp)
