"""
Named-secret collection persisted as one JSON array.

Stored form (under :data:`core.config.ACCOUNTS_KEY`)::

    [{"id": "1718000000000", "name": "GitHub", "secret": "JBSWY3DPEHPK3PXP"}, ...]

The secret is kept exactly as entered (trimmed) and is not validated on
add, so a typo can be fixed later without losing the entry. Undecodable
secrets surface as an error code when codes are generated.
"""

import json
import logging
import threading
import time
from dataclasses import asdict, dataclass
from typing import Callable, List, Optional, Tuple

from core.config import ACCOUNTS_KEY
from storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

Listener = Callable[[Tuple["Account", ...]], None]


# ── Data model ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Account:
    """A single TOTP account."""

    id: str
    name: str
    secret: str           # base32 as entered


# ── Store ─────────────────────────────────────────────────────────────────────

class AccountStore:
    """
    Owns the account collection and its persisted encoding.

    Mutations replace the in-memory tuple (copy-on-write), rewrite the whole
    serialized collection and then notify subscribers with the new tuple.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        key: str = ACCOUNTS_KEY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._kv = kv
        self._key = key
        self._clock = clock
        self._lock = threading.Lock()
        self._listeners: List[Listener] = []
        self._accounts: Tuple[Account, ...] = self._load()
        self._last_id = max((_id_value(a.id) for a in self._accounts), default=0)

    # ── Public API ───────────────────────────────────────────────────────

    def list(self) -> Tuple[Account, ...]:
        """Return all accounts in insertion order."""
        return self._accounts

    def get(self, account_id: str) -> Optional[Account]:
        for account in self._accounts:
            if account.id == account_id:
                return account
        return None

    def add(self, name: str, secret: str) -> Account:
        """
        Create and persist a new account.

        Raises:
            ValueError: If the name or the secret is blank.
        """
        name = (name or "").strip()
        secret = (secret or "").strip()
        if not name or not secret:
            raise ValueError("Name and Secret Key are required.")

        with self._lock:
            account = Account(id=self._next_id(), name=name, secret=secret)
            accounts = self._accounts + (account,)
            self._save(accounts)
        logger.info("Added account %s", account.id)
        self._notify(accounts)
        return account

    def remove(self, account_id: str) -> bool:
        """Delete an account by id. Returns False if it did not exist."""
        with self._lock:
            accounts = tuple(a for a in self._accounts if a.id != account_id)
            if len(accounts) == len(self._accounts):
                return False
            self._save(accounts)
        logger.info("Removed account %s", account_id)
        self._notify(accounts)
        return True

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for changes; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def export_text(self) -> str:
        """Plain-text backup: ``name: secret`` blocks separated by blank lines."""
        return "\n\n".join(f"{a.name}: {a.secret}" for a in self._accounts)

    # ── Internals ─────────────────────────────────────────────────────────

    def _next_id(self) -> str:
        candidate = int(self._clock() * 1000)
        if candidate <= self._last_id:
            candidate = self._last_id + 1
        self._last_id = candidate
        return str(candidate)

    def _save(self, accounts: Tuple[Account, ...]) -> None:
        self._kv.set(self._key, json.dumps([asdict(a) for a in accounts]))
        self._accounts = accounts

    def _notify(self, accounts: Tuple[Account, ...]) -> None:
        for listener in list(self._listeners):
            try:
                listener(accounts)
            except Exception:
                logger.exception("Account listener %r failed", listener)

    def _load(self) -> Tuple[Account, ...]:
        raw = self._kv.get(self._key)
        if raw is None:
            return ()
        try:
            items = json.loads(raw)
        except ValueError:
            logger.warning("Stored accounts are corrupt; starting empty")
            return ()
        if not isinstance(items, list):
            logger.warning("Stored accounts are not a list; starting empty")
            return ()

        accounts: List[Account] = []
        seen = set()
        for index, item in enumerate(items):
            account = _parse_item(item, index)
            if account is None:
                logger.warning("Skipping malformed stored account at index %d", index)
                continue
            if account.id in seen:
                account = Account(id=f"{account.id}-{index}", name=account.name, secret=account.secret)
            seen.add(account.id)
            accounts.append(account)
        return tuple(accounts)


def _parse_item(item: object, index: int) -> Optional[Account]:
    if not isinstance(item, dict):
        return None
    name = item.get("name")
    secret = item.get("secret")
    if not isinstance(name, str) or not isinstance(secret, str):
        return None
    raw_id = item.get("id")
    if isinstance(raw_id, (str, int)) and not isinstance(raw_id, bool) and str(raw_id):
        account_id = str(raw_id)
    else:
        account_id = f"legacy-{index}"
    return Account(id=account_id, name=name, secret=secret)


def _id_value(account_id: str) -> int:
    try:
        return int(account_id)
    except ValueError:
        return 0
