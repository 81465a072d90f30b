"""
HOTP (HMAC-based One-Time Password) implementation following RFC 4226.

Fixed to HMAC-SHA1 and 6 digits.
"""

import hashlib
import hmac
import struct

from core.errors import InvalidSecret

DIGITS = 6
_MAX_COUNTER = 2**64 - 1


def dynamic_truncate(digest: bytes) -> int:
    """Extract the 31-bit value selected by the low nibble of the last byte."""
    offset = digest[-1] & 0x0F
    return (
        (digest[offset] & 0x7F) << 24
        | (digest[offset + 1] & 0xFF) << 16
        | (digest[offset + 2] & 0xFF) << 8
        | (digest[offset + 3] & 0xFF)
    )


def generate_hotp(secret_bytes: bytes, counter: int) -> str:
    """
    Generate an HOTP code.

    Args:
        secret_bytes: Raw decoded secret bytes.
        counter:      Unsigned 64-bit counter value.

    Returns:
        Zero-padded 6-digit OTP string.

    Raises:
        InvalidSecret: If ``secret_bytes`` is empty.
        ValueError:    If ``counter`` does not fit in 64 unsigned bits.
    """
    if not secret_bytes:
        raise InvalidSecret("Cannot compute a code from an empty key.")
    if counter < 0 or counter > _MAX_COUNTER:
        raise ValueError(f"Counter out of range: {counter}")

    msg = struct.pack(">Q", counter)
    digest = hmac.new(secret_bytes, msg, hashlib.sha1).digest()
    otp = dynamic_truncate(digest) % (10**DIGITS)
    return str(otp).zfill(DIGITS)
