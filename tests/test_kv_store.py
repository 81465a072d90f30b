"""Tests for storage.kv_store."""

import json
import secrets
from pathlib import Path

import pytest

from core.crypto import KEY_SIZE
from core.errors import StorageLocked
from storage.encryption import FieldEncryptor
from storage.kv_store import KeyValueStore


@pytest.fixture()
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "authgate.json"


def test_missing_file_is_empty(store_path: Path) -> None:
    kv = KeyValueStore(store_path)
    assert kv.get("anything") is None
    assert kv.get_salt() is None
    assert not store_path.exists()


def test_set_get_persists(store_path: Path) -> None:
    KeyValueStore(store_path).set("k", "v")
    assert KeyValueStore(store_path).get("k") == "v"
    assert json.loads(store_path.read_text())["items"] == {"k": "v"}


def test_remove(store_path: Path) -> None:
    kv = KeyValueStore(store_path)
    kv.set("a", "1")
    kv.set("b", "2")
    kv.remove("a")
    kv.remove("missing")
    assert kv.get("a") is None
    assert json.loads(store_path.read_text())["items"] == {"b": "2"}


def test_write_leaves_no_temp_files(store_path: Path) -> None:
    kv = KeyValueStore(store_path)
    kv.set("a", "1")
    kv.set("a", "2")
    assert [p.name for p in store_path.parent.iterdir()] == [store_path.name]


@pytest.mark.parametrize("content", ["{not json", "[1, 2]", '"text"', '{"items": []}'])
def test_corrupt_file_reads_empty(store_path: Path, content: str) -> None:
    store_path.parent.mkdir(parents=True)
    store_path.write_text(content)
    kv = KeyValueStore(store_path)
    assert kv.get("k") is None
    kv.set("k", "v")
    assert kv.get("k") == "v"


# ── Encryption ────────────────────────────────────────────────────────────────

def _encryptor() -> FieldEncryptor:
    return FieldEncryptor(secrets.token_bytes(KEY_SIZE))


def test_encrypted_values_not_plain_on_disk(store_path: Path) -> None:
    kv = KeyValueStore(store_path, encryptor=_encryptor())
    kv.set("accounts", "JBSWY3DPEHPK3PXP")
    assert kv.get("accounts") == "JBSWY3DPEHPK3PXP"
    assert "JBSWY3DPEHPK3PXP" not in store_path.read_text()


def test_wrong_key_raises_locked(store_path: Path) -> None:
    KeyValueStore(store_path, encryptor=_encryptor()).set("k", "v")
    with pytest.raises(StorageLocked):
        KeyValueStore(store_path, encryptor=_encryptor()).get("k")


def test_enable_encryption_converts_existing_items(store_path: Path) -> None:
    kv = KeyValueStore(store_path)
    kv.set("accounts", "JBSWY3DPEHPK3PXP")
    salt = secrets.token_bytes(32)
    enc = _encryptor()

    kv.enable_encryption(enc, salt)

    assert "JBSWY3DPEHPK3PXP" not in store_path.read_text()
    assert kv.get("accounts") == "JBSWY3DPEHPK3PXP"
    reopened = KeyValueStore(store_path, encryptor=enc)
    assert reopened.get_salt() == salt
    assert reopened.check_key()
    assert reopened.get("accounts") == "JBSWY3DPEHPK3PXP"


def test_enable_encryption_twice_rejected(store_path: Path) -> None:
    kv = KeyValueStore(store_path)
    kv.enable_encryption(_encryptor(), secrets.token_bytes(32))
    with pytest.raises(StorageLocked):
        kv.enable_encryption(_encryptor(), secrets.token_bytes(32))


def test_check_key(store_path: Path) -> None:
    enc = _encryptor()
    kv = KeyValueStore(store_path, encryptor=enc)
    assert not kv.check_key()
    KeyValueStore(store_path).enable_encryption(enc, secrets.token_bytes(32))
    assert kv.check_key()

    other = KeyValueStore(store_path, encryptor=_encryptor())
    assert not other.check_key()
    other.set_encryptor(None)
    assert not other.check_key()


def test_encrypted_store_without_key_is_locked(store_path: Path) -> None:
    enc = _encryptor()
    kv = KeyValueStore(store_path)
    kv.enable_encryption(enc, secrets.token_bytes(32))
    kv.set("accounts", '[{"id": "1", "name": "Test", "secret": "JBSWY3DPEHPK3PXP"}]')
    kv.set("license", '{"expiry": 1, "durationDays": 30}')
    before = store_path.read_bytes()

    locked = KeyValueStore(store_path)
    with pytest.raises(StorageLocked):
        locked.get("accounts")
    with pytest.raises(StorageLocked):
        locked.get("missing")
    with pytest.raises(StorageLocked):
        locked.set("accounts", "[]")
    with pytest.raises(StorageLocked):
        locked.remove("license")

    assert store_path.read_bytes() == before
    assert KeyValueStore(store_path, encryptor=enc).get("license") == '{"expiry": 1, "durationDays": 30}'
