"""
Display helpers for Authgate.
"""

import re
import unicodedata
from typing import Optional

_SIX_DIGITS = re.compile(r"[0-9]{6}")


# ── Labels ────────────────────────────────────────────────────────────────────

def sanitise_label(text: str) -> str:
    """Remove control characters and limit label length."""
    text = unicodedata.normalize("NFC", text)
    text = "".join(ch for ch in text if unicodedata.category(ch)[0] != "C")
    return text[:128].strip()


# ── Codes ─────────────────────────────────────────────────────────────────────

def format_otp(code: str, group: int = 3) -> str:
    """
    Format an OTP code with spaces for readability.

    Example::

        >>> format_otp("123456")
        '123 456'
    """
    return " ".join(code[i : i + group] for i in range(0, len(code), group))


def clipboard_text(code: Optional[str]) -> Optional[str]:
    """
    Return the text to put on the clipboard for a displayed code.

    Internal whitespace is removed. Anything that is not a 6-digit code
    (an error marker, an empty slot) yields None.
    """
    if not code:
        return None
    compact = re.sub(r"\s+", "", code)
    if not _SIX_DIGITS.fullmatch(compact):
        return None
    return compact
