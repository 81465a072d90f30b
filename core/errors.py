"""
Exception types shared across Authgate.
"""


class AuthgateError(Exception):
    """Base class for all Authgate errors."""


class InvalidSecret(AuthgateError, ValueError):
    """A Base32 secret could not be decoded into a usable key."""


class StorageLocked(AuthgateError, RuntimeError):
    """An encrypted store was read without the correct key."""


# ── License activation ────────────────────────────────────────────────────────

class LicenseError(AuthgateError):
    """A single license activation attempt failed. Always retryable."""


class InvalidCandidateFormat(LicenseError, ValueError):
    """The license key is not exactly 6 digits."""


class NoMatch(LicenseError):
    """The license key is well-formed but matches no plan."""
