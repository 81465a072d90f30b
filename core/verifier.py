"""
Skew-tolerant verification of user-entered TOTP codes.
"""

import hmac
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from core import base32
from core.errors import InvalidSecret
from core.hotp import generate_hotp
from core.totp import time_step

_CODE_RE = re.compile(r"[0-9]{6}")


@dataclass(frozen=True)
class Plan:
    """A license plan: the Base32 secret that issues its keys and its length."""

    secret: str
    duration_days: int


def is_well_formed(candidate: str) -> bool:
    """True if ``candidate`` is exactly six ASCII digits."""
    return isinstance(candidate, str) and _CODE_RE.fullmatch(candidate) is not None


def verify(
    secret_bytes: bytes,
    candidate: str,
    tolerance_steps: int = 1,
    timestamp: Optional[float] = None,
) -> bool:
    """
    Validate a TOTP code within ±``tolerance_steps`` time steps.

    Every step in the window is computed and compared, a match does not
    short-circuit the loop.

    Args:
        secret_bytes:    Raw secret bytes.
        candidate:       Code typed by the user.
        tolerance_steps: Allowed skew in steps (default 1, i.e. ±30 s).
        timestamp:       Override Unix timestamp.

    Returns:
        True if the code is valid within the window. A malformed candidate
        is False without any HMAC being computed.

    Raises:
        InvalidSecret: If ``secret_bytes`` is empty.
        ValueError:    If ``tolerance_steps`` is negative.
    """
    if tolerance_steps < 0:
        raise ValueError("tolerance_steps must be >= 0.")
    if not secret_bytes:
        raise InvalidSecret("Cannot verify against an empty key.")
    if not is_well_formed(candidate):
        return False

    counter = time_step(timestamp)
    matched = False
    for step in range(-tolerance_steps, tolerance_steps + 1):
        if counter + step < 0:
            continue
        expected = generate_hotp(secret_bytes, counter + step)
        if hmac.compare_digest(candidate, expected):
            matched = True
    return matched


def match_plan(
    plans: Iterable[Plan],
    candidate: str,
    tolerance_steps: int = 1,
    timestamp: Optional[float] = None,
) -> Optional[Plan]:
    """
    Return the first plan whose secret accepts ``candidate``, or None.

    Raises:
        InvalidSecret: If a plan's secret does not decode.
    """
    for plan in plans:
        if verify(base32.decode(plan.secret), candidate, tolerance_steps, timestamp):
            return plan
    return None
