"""
File-backed key-value store with optional field-level AES-256-GCM encryption.

File layout
-----------
::

    {
      "meta":  {"salt": "<hex>", "check": "<encrypted marker>"},
      "items": {"<key>": "<value, encrypted when the store is encrypted>"}
    }

``meta`` is never encrypted. A store whose ``meta`` holds a salt or a check
value is encrypted: its items can only be read or written once a matching
:class:`FieldEncryptor` is attached, otherwise :class:`StorageLocked` is
raised. Every write rewrites the whole file through a temporary file and
:func:`os.replace`, so readers see either the old or the new content, never
a partial one.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional

from core.errors import StorageLocked
from storage.encryption import FieldEncryptor

logger = logging.getLogger(__name__)

_CHECK_PLAINTEXT = "authgate"


class KeyValueStore:
    """A small persistent string-to-string mapping."""

    def __init__(
        self,
        path: Path,
        encryptor: Optional[FieldEncryptor] = None,
    ) -> None:
        """
        Args:
            path:      JSON file to use; created on first write.
            encryptor: Encrypts item values. None stores them in plaintext.
        """
        self._path = Path(path)
        self._encryptor = encryptor
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    # ── Encryptor ─────────────────────────────────────────────────────────

    def set_encryptor(self, encryptor: Optional[FieldEncryptor]) -> None:
        """Attach, replace or detach the field encryptor."""
        self._encryptor = encryptor

    def enable_encryption(self, encryptor: FieldEncryptor, salt: bytes) -> None:
        """
        Turn a plaintext store into an encrypted one, in a single write.

        Existing items are encrypted in place, then the salt and a check
        value for ``encryptor`` are recorded and the encryptor is attached.

        Raises:
            StorageLocked: The store is already encrypted.
        """
        with self._lock:
            data = self._read()
            if _is_encrypted(data):
                raise StorageLocked("Store is already encrypted.")
            data["items"] = {
                key: encryptor.encrypt_field(value)
                for key, value in data["items"].items()
                if isinstance(value, str)
            }
            data["meta"]["salt"] = salt.hex()
            data["meta"]["check"] = encryptor.encrypt_field(_CHECK_PLAINTEXT)
            self._write(data)
            self._encryptor = encryptor
        logger.info("Encrypted store %s", self._path)

    def check_key(self) -> bool:
        """Return True if the current encryptor opens this store."""
        if self._encryptor is None:
            return False
        with self._lock:
            token = self._read()["meta"].get("check")
        if not isinstance(token, str):
            return False
        try:
            return self._encryptor.decrypt_field(token) == _CHECK_PLAINTEXT
        except StorageLocked:
            return False

    def get_salt(self) -> Optional[bytes]:
        """Return the stored salt, or None for a plaintext store."""
        with self._lock:
            value = self._read()["meta"].get("salt")
        if not isinstance(value, str):
            return None
        try:
            return bytes.fromhex(value)
        except ValueError:
            logger.warning("Ignoring malformed salt in %s", self._path)
            return None

    # ── Items ─────────────────────────────────────────────────────────────

    def get(self, key: str) -> Optional[str]:
        """
        Return the value stored under ``key`` or None.

        Raises:
            StorageLocked: The store is encrypted and no matching key is set.
        """
        with self._lock:
            data = self._read()
            self._ensure_unlocked(data)
        value = data["items"].get(key)
        if not isinstance(value, str):
            return None
        if self._encryptor is None:
            return value
        return self._encryptor.decrypt_field(value)

    def set(self, key: str, value: str) -> None:
        """
        Store ``value`` under ``key``, rewriting the whole file.

        Raises:
            StorageLocked: The store is encrypted and no key is set.
        """
        with self._lock:
            data = self._read()
            self._ensure_unlocked(data)
            if self._encryptor is not None:
                value = self._encryptor.encrypt_field(value)
            data["items"][key] = value
            self._write(data)

    def remove(self, key: str) -> None:
        """
        Delete ``key``; a missing key is ignored.

        Raises:
            StorageLocked: The store is encrypted and no key is set.
        """
        with self._lock:
            data = self._read()
            self._ensure_unlocked(data)
            if data["items"].pop(key, None) is not None:
                self._write(data)

    # ── Internals ─────────────────────────────────────────────────────────

    def _ensure_unlocked(self, data: Dict[str, dict]) -> None:
        if self._encryptor is None and _is_encrypted(data):
            raise StorageLocked(f"Store {self._path} is encrypted and locked.")

    def _read(self) -> Dict[str, dict]:
        empty: Dict[str, dict] = {"meta": {}, "items": {}}
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return empty
        except OSError:
            logger.exception("Failed to read %s", self._path)
            return empty
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Store %s is corrupt, treating it as empty", self._path)
            return empty
        if not isinstance(data, dict):
            logger.warning("Store %s has an unexpected layout, treating it as empty", self._path)
            return empty
        meta = data.get("meta")
        items = data.get("items")
        return {
            "meta": meta if isinstance(meta, dict) else {},
            "items": items if isinstance(items, dict) else {},
        }

    def _write(self, data: Dict[str, dict]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(
            prefix=self._path.name + ".", suffix=".tmp", dir=str(self._path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2, sort_keys=True)
            os.replace(tmp, self._path)
        except BaseException:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise


def _is_encrypted(data: Dict[str, dict]) -> bool:
    meta = data["meta"]
    return "salt" in meta or "check" in meta
