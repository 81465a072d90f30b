"""Tests for storage.accounts."""

import json
import secrets
from pathlib import Path
from typing import List

import pytest

from core.config import ACCOUNTS_KEY
from core.crypto import KEY_SIZE
from core.errors import StorageLocked
from storage.accounts import Account, AccountStore
from storage.encryption import FieldEncryptor
from storage.kv_store import KeyValueStore


@pytest.fixture()
def kv(tmp_path: Path) -> KeyValueStore:
    return KeyValueStore(tmp_path / "store.json")


@pytest.fixture()
def store(kv: KeyValueStore) -> AccountStore:
    return AccountStore(kv, clock=lambda: 1_700_000_000.0)


# ── CRUD ──────────────────────────────────────────────────────────────────────

def test_add_and_list(store: AccountStore) -> None:
    account = store.add("  Test ", " JBSWY3DPEHPK3PXP ")
    assert account == Account(id="1700000000000", name="Test", secret="JBSWY3DPEHPK3PXP")
    assert store.list() == (account,)
    assert store.get(account.id) == account


def test_ids_stay_unique_with_frozen_clock(store: AccountStore) -> None:
    a = store.add("a", "AAAA")
    b = store.add("b", "BBBB")
    assert int(b.id) == int(a.id) + 1


def test_add_keeps_invalid_secret(store: AccountStore) -> None:
    account = store.add("Typo", "not base32 at all!")
    assert store.list()[0].secret == "not base32 at all!"
    assert account.secret == "not base32 at all!"


@pytest.mark.parametrize("name,secret", [("", "AAAA"), ("x", ""), ("  ", "  ")])
def test_add_requires_name_and_secret(store: AccountStore, name: str, secret: str) -> None:
    with pytest.raises(ValueError):
        store.add(name, secret)
    assert store.list() == ()


def test_remove(store: AccountStore) -> None:
    a = store.add("a", "AAAA")
    b = store.add("b", "BBBB")
    assert store.remove(a.id)
    assert store.list() == (b,)
    assert not store.remove("missing")


def test_list_is_immutable_snapshot(store: AccountStore) -> None:
    before = store.list()
    store.add("a", "AAAA")
    assert before == ()


# ── Persistence ───────────────────────────────────────────────────────────────

def test_persisted_as_json_array(kv: KeyValueStore, store: AccountStore) -> None:
    store.add("GitHub", "JBSWY3DPEHPK3PXP")
    data = json.loads(kv.get(ACCOUNTS_KEY))
    assert data == [{"id": "1700000000000", "name": "GitHub", "secret": "JBSWY3DPEHPK3PXP"}]


def test_reload_from_store(kv: KeyValueStore, store: AccountStore) -> None:
    a = store.add("a", "AAAA")
    store.add("b", "BBBB")
    store.remove(a.id)

    reloaded = AccountStore(kv, clock=lambda: 1_700_000_000.0)
    assert [acc.name for acc in reloaded.list()] == ["b"]
    # ids keep increasing past what is already stored
    assert int(reloaded.add("c", "CCCC").id) > int(reloaded.list()[0].id)


@pytest.mark.parametrize("blob", ["{corrupt", '{"id": 1}', "42", "null"])
def test_corrupt_blob_is_empty(kv: KeyValueStore, blob: str) -> None:
    kv.set(ACCOUNTS_KEY, blob)
    assert AccountStore(kv).list() == ()


def test_malformed_entries_fail_soft(kv: KeyValueStore) -> None:
    kv.set(
        ACCOUNTS_KEY,
        json.dumps([
            {"id": "1", "name": "ok", "secret": "AAAA", "issuer": "extra field"},
            {"id": "2", "name": "no secret"},
            "not an object",
            {"id": "3", "name": 5, "secret": "AAAA"},
            {"name": "no id", "secret": "BBBB"},
            {"id": "1", "name": "duplicate", "secret": "CCCC"},
        ]),
    )
    accounts = AccountStore(kv).list()
    assert [a.name for a in accounts] == ["ok", "no id", "duplicate"]
    assert len({a.id for a in accounts}) == 3


# ── Notifications ─────────────────────────────────────────────────────────────

def test_subscribers_get_new_collection(store: AccountStore) -> None:
    seen: List[tuple] = []
    unsubscribe = store.subscribe(seen.append)
    a = store.add("a", "AAAA")
    store.remove(a.id)
    unsubscribe()
    store.add("b", "BBBB")
    assert seen == [(a,), ()]


def test_failing_subscriber_does_not_block_others(store: AccountStore) -> None:
    seen: List[tuple] = []

    def broken(_accounts) -> None:
        raise RuntimeError("boom")

    store.subscribe(broken)
    store.subscribe(seen.append)
    store.add("a", "AAAA")
    assert len(seen) == 1
    assert len(store.list()) == 1


def test_no_notification_for_noop_remove(store: AccountStore) -> None:
    seen: List[tuple] = []
    store.subscribe(seen.append)
    store.remove("missing")
    assert seen == []


# ── Export ────────────────────────────────────────────────────────────────────

def test_export_text(store: AccountStore) -> None:
    assert store.export_text() == ""
    store.add("Google", "AAAA")
    store.add("GitHub", "BBBB")
    assert store.export_text() == "Google: AAAA\n\nGitHub: BBBB"


def test_locked_store_raises_instead_of_loading_empty(tmp_path: Path) -> None:
    enc = FieldEncryptor(secrets.token_bytes(KEY_SIZE))
    kv = KeyValueStore(tmp_path / "store.json")
    kv.enable_encryption(enc, secrets.token_bytes(32))
    AccountStore(kv).add("Test", "JBSWY3DPEHPK3PXP")

    with pytest.raises(StorageLocked):
        AccountStore(KeyValueStore(tmp_path / "store.json"))
    names = [a.name for a in AccountStore(KeyValueStore(tmp_path / "store.json", encryptor=enc)).list()]
    assert names == ["Test"]
