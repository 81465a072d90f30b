"""
RFC 4648 Base32 decoding for user-typed secrets.

The decoder is deliberately lenient about presentation (whitespace, case,
trailing padding) and strict about content: anything outside ``A-Z2-7`` is
rejected, and a secret that packs to zero bytes is an error rather than an
empty key.
"""

import base64
import re

from core.errors import InvalidSecret

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
_VALUES = {ch: i for i, ch in enumerate(ALPHABET)}
_WHITESPACE = re.compile(r"\s+")


def normalize(secret: str) -> str:
    """
    Strip whitespace, uppercase and drop trailing ``=`` padding.

    No alphabet check is done here; see :func:`decode`.
    """
    return _WHITESPACE.sub("", secret or "").upper().rstrip("=")


def decode(secret: str) -> bytes:
    """
    Decode a Base32 secret string to raw key bytes.

    Args:
        secret: Base32 text as typed or pasted by the user.

    Returns:
        Raw bytes; every 8 characters give 5 bytes, an incomplete final
        group gives as many whole bytes as its bits allow.

    Raises:
        InvalidSecret: If the secret is empty, contains a character outside
            the RFC 4648 alphabet, or yields no whole byte.
    """
    clean = normalize(secret)
    if not clean:
        raise InvalidSecret("Secret is empty.")

    buffer = 0
    bits = 0
    out = bytearray()
    for ch in clean:
        value = _VALUES.get(ch)
        if value is None:
            raise InvalidSecret(f"Invalid Base32 character: {ch!r}")
        buffer = (buffer << 5) | value
        bits += 5
        if bits >= 8:
            bits -= 8
            out.append((buffer >> bits) & 0xFF)
            buffer &= (1 << bits) - 1
    # leftover low bits never form a byte
    if not out:
        raise InvalidSecret("Secret is too short to form a key.")
    return bytes(out)


def encode(raw: bytes) -> str:
    """Encode raw bytes as Base32 without padding."""
    return base64.b32encode(raw).decode("ascii").rstrip("=")


def is_valid(secret: str) -> bool:
    """Return True if ``secret`` decodes to a usable key."""
    try:
        decode(secret)
    except InvalidSecret:
        return False
    return True
