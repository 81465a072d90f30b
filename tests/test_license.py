"""Tests for storage.license."""

import json
import secrets
from pathlib import Path

import pytest

from core import base32
from core.config import LICENSE_KEY
from core.crypto import KEY_SIZE
from core.errors import InvalidCandidateFormat, InvalidSecret, NoMatch, StorageLocked
from core.totp import generate_totp
from core.verifier import Plan
from storage.encryption import FieldEncryptor
from storage.kv_store import KeyValueStore
from storage.license import (
    DAY_MS,
    DEFAULT_PLANS,
    LicenseGate,
    LicenseRecord,
    LicenseStore,
    describe_duration,
)

NOW = 1_700_000_010.0
NOW_MS = int(NOW * 1000)
PLAN_30, PLAN_180 = DEFAULT_PLANS


def _code(plan: Plan, timestamp: float = NOW) -> str:
    return generate_totp(base32.decode(plan.secret), timestamp)


def _unused_code() -> str:
    taken = {
        _code(plan, NOW + step * 30)
        for plan in DEFAULT_PLANS
        for step in (-1, 0, 1)
    }
    return next(f"{n:06d}" for n in range(1_000_000) if f"{n:06d}" not in taken)


@pytest.fixture()
def kv(tmp_path: Path) -> KeyValueStore:
    return KeyValueStore(tmp_path / "store.json")


@pytest.fixture()
def store(kv: KeyValueStore) -> LicenseStore:
    return LicenseStore(kv, clock=lambda: NOW)


@pytest.fixture()
def gate(store: LicenseStore) -> LicenseGate:
    return LicenseGate(store, clock=lambda: NOW)


# ── Activation ────────────────────────────────────────────────────────────────

def test_unlicensed_by_default(gate: LicenseGate) -> None:
    assert not gate.is_licensed()


def test_activate_30_day_key(gate: LicenseGate, kv: KeyValueStore) -> None:
    record = gate.activate(_code(PLAN_30))
    assert record == LicenseRecord(NOW_MS + 30 * DAY_MS, 30)
    assert gate.is_licensed()
    assert json.loads(kv.get(LICENSE_KEY)) == {"expiry": NOW_MS + 30 * 86_400_000, "durationDays": 30}


def test_activate_180_day_key(gate: LicenseGate) -> None:
    record = gate.activate(_code(PLAN_180))
    assert record.duration_days == 180
    assert record.expiry_epoch_millis == NOW_MS + 180 * DAY_MS


def test_activate_accepts_spaced_key(gate: LicenseGate) -> None:
    code = _code(PLAN_30)
    assert gate.activate(f" {code[:3]} {code[3:]} ").duration_days == 30


@pytest.mark.parametrize("offset", [-30, 30])
def test_activate_tolerates_adjacent_step(gate: LicenseGate, offset: int) -> None:
    assert gate.activate(_code(PLAN_30, NOW + offset)).duration_days == 30


def test_activate_outside_window_rejected(store: LicenseStore) -> None:
    gate = LicenseGate(store, tolerance_steps=0, clock=lambda: NOW)
    stale = _code(PLAN_30, NOW - 30)
    if stale == _code(PLAN_30) or stale == _code(PLAN_180):
        pytest.skip("adjacent codes collide")
    with pytest.raises(NoMatch):
        gate.activate(stale)


def test_non_matching_key_stores_nothing(gate: LicenseGate, kv: KeyValueStore) -> None:
    with pytest.raises(NoMatch) as excinfo:
        gate.activate(_unused_code())
    assert "Invalid or expired license key" in str(excinfo.value)
    assert kv.get(LICENSE_KEY) is None
    assert not gate.is_licensed()


@pytest.mark.parametrize("key", ["", "12345", "1234567", "abcdef", "12-456", "١٢٣٤٥٦"])
def test_bad_format_rejected_before_crypto(gate: LicenseGate, kv: KeyValueStore, key: str) -> None:
    with pytest.raises(InvalidCandidateFormat):
        gate.activate(key)
    assert kv.get(LICENSE_KEY) is None


def test_rejection_is_retryable(gate: LicenseGate) -> None:
    with pytest.raises(NoMatch):
        gate.activate(_unused_code())
    assert gate.activate(_code(PLAN_30)).duration_days == 30


def test_broken_plan_secret_is_distinct_error(store: LicenseStore) -> None:
    gate = LicenseGate(store, plans=[Plan("1111", 30)], clock=lambda: NOW)
    with pytest.raises(InvalidSecret):
        gate.activate("123456")


def test_negative_window_rejected(store: LicenseStore) -> None:
    with pytest.raises(ValueError):
        LicenseGate(store, tolerance_steps=-1)


# ── Stored record ─────────────────────────────────────────────────────────────

def test_expired_license_purged(kv: KeyValueStore, store: LicenseStore) -> None:
    kv.set(LICENSE_KEY, json.dumps({"expiry": NOW_MS - 1, "durationDays": 30}))
    assert store.read() is None
    assert kv.get(LICENSE_KEY) is None


def test_license_expiring_now_is_absent(kv: KeyValueStore, store: LicenseStore) -> None:
    kv.set(LICENSE_KEY, json.dumps({"expiry": NOW_MS, "durationDays": 30}))
    assert store.read() is None


def test_valid_license_read(kv: KeyValueStore, store: LicenseStore) -> None:
    kv.set(LICENSE_KEY, json.dumps({"expiry": NOW_MS + 1, "durationDays": 180}))
    assert store.read() == LicenseRecord(NOW_MS + 1, 180)


@pytest.mark.parametrize(
    "blob",
    ["{bad json", "[]", '{"durationDays": 30}', '{"expiry": "soon"}', '{"expiry": true}'],
)
def test_corrupt_license_purged(kv: KeyValueStore, store: LicenseStore, blob: str) -> None:
    kv.set(LICENSE_KEY, blob)
    assert store.read() is None
    assert kv.get(LICENSE_KEY) is None


def test_license_expires_with_clock(kv: KeyValueStore) -> None:
    now = [NOW]
    gate = LicenseGate(LicenseStore(kv, clock=lambda: now[0]), clock=lambda: now[0])
    gate.activate(_code(PLAN_30))
    now[0] = NOW + 30 * 86_400 - 1
    assert gate.is_licensed()
    now[0] = NOW + 30 * 86_400
    assert not gate.is_licensed()


@pytest.mark.parametrize("days,text", [(30, "1 month"), (180, "6 months"), (7, "7 days")])
def test_describe_duration(days: int, text: str) -> None:
    assert describe_duration(days) == text


def test_locked_store_keeps_license(tmp_path: Path) -> None:
    enc = FieldEncryptor(secrets.token_bytes(KEY_SIZE))
    kv = KeyValueStore(tmp_path / "store.json")
    kv.enable_encryption(enc, secrets.token_bytes(32))
    LicenseGate(LicenseStore(kv, clock=lambda: NOW), clock=lambda: NOW).activate(_code(PLAN_180))

    locked = LicenseGate(LicenseStore(KeyValueStore(tmp_path / "store.json"), clock=lambda: NOW))
    with pytest.raises(StorageLocked):
        locked.is_licensed()

    unlocked = LicenseStore(KeyValueStore(tmp_path / "store.json", encryptor=enc), clock=lambda: NOW)
    assert unlocked.read() == LicenseRecord(NOW_MS + 180 * DAY_MS, 180)
