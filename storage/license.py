"""
License record persistence and the activation gate.

A license is granted by entering a 6-digit key issued from one of two fixed
TOTP secrets; the secret that accepts the key decides the duration. The
stored record is ``{"expiry": <epoch ms>, "durationDays": 30|180}``.
"""

import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from core.config import LICENSE_KEY
from core.errors import InvalidCandidateFormat, NoMatch
from core.verifier import Plan, is_well_formed, match_plan
from storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000

DEFAULT_PLANS: Sequence[Plan] = (
    Plan("K7HFE73HRIKYIWJFWXE5DSN4ZUA3LZSK", 30),
    Plan("RJCM3XBBMDLGHU6FWKH6DSEACKZMZKGI", 180),
)


@dataclass(frozen=True)
class LicenseRecord:
    expiry_epoch_millis: int
    duration_days: int

    def to_json(self) -> str:
        return json.dumps({"expiry": self.expiry_epoch_millis, "durationDays": self.duration_days})


def describe_duration(days: int) -> str:
    """Human wording for a plan length."""
    if days == 30:
        return "1 month"
    if days == 180:
        return "6 months"
    return f"{days} days"


class LicenseStore:
    """Reads and writes the single persisted license record."""

    def __init__(
        self,
        kv: KeyValueStore,
        key: str = LICENSE_KEY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._kv = kv
        self._key = key
        self._clock = clock

    def read(self) -> Optional[LicenseRecord]:
        """
        Return the active license, or None.

        Expired, corrupt or malformed records are purged. A locked store
        raises :class:`StorageLocked` and is left untouched.
        """
        raw = self._kv.get(self._key)
        if raw is None:
            return None

        record = _parse(raw)
        if record is None:
            logger.warning("Stored license is unreadable; removing it")
            self.clear()
            return None
        if record.expiry_epoch_millis <= int(self._clock() * 1000):
            logger.info("Stored license expired; removing it")
            self.clear()
            return None
        return record

    def write(self, record: LicenseRecord) -> None:
        self._kv.set(self._key, record.to_json())

    def clear(self) -> None:
        self._kv.remove(self._key)


def _parse(raw: str) -> Optional[LicenseRecord]:
    try:
        data = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    expiry = data.get("expiry")
    days = data.get("durationDays")
    if isinstance(expiry, bool) or not isinstance(expiry, (int, float)):
        return None
    if isinstance(days, bool) or not isinstance(days, int):
        days = 0
    return LicenseRecord(expiry_epoch_millis=int(expiry), duration_days=days)


class LicenseGate:
    """Decides whether the app is licensed and handles activation attempts."""

    def __init__(
        self,
        store: LicenseStore,
        plans: Sequence[Plan] = DEFAULT_PLANS,
        tolerance_steps: int = 1,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if tolerance_steps < 0:
            raise ValueError("tolerance_steps must be >= 0.")
        self._store = store
        self._plans = tuple(plans)
        self._tolerance = tolerance_steps
        self._clock = clock

    def is_licensed(self) -> bool:
        return self._store.read() is not None

    def activate(self, key: str) -> LicenseRecord:
        """
        Verify ``key`` against the plans and store a license on success.

        Raises:
            InvalidCandidateFormat: ``key`` is not 6 digits (spaces ignored).
            NoMatch:                No plan accepts ``key`` right now.
            InvalidSecret:          A configured plan secret is broken.
        """
        candidate = re.sub(r"\s+", "", key or "")
        if not is_well_formed(candidate):
            raise InvalidCandidateFormat("Invalid format. License key must be 6 digits.")

        now = self._clock()
        plan = match_plan(self._plans, candidate, self._tolerance, timestamp=now)
        if plan is None:
            logger.info("License activation rejected")
            raise NoMatch("Invalid or expired license key. Please check the code and try again.")

        record = LicenseRecord(
            expiry_epoch_millis=int(now * 1000) + plan.duration_days * DAY_MS,
            duration_days=plan.duration_days,
        )
        self._store.write(record)
        logger.info("License activated for %d days", plan.duration_days)
        return record
