"""
Field-level encryption for stored values.

The caller owns key management; keys never reach disk through this module.
"""

import base64

from cryptography.exceptions import InvalidTag

from core import crypto
from core.errors import StorageLocked


class FieldEncryptor:
    """Encrypt / decrypt individual string values using AES-256-GCM."""

    def __init__(self, key: bytes) -> None:
        """
        Args:
            key: 32-byte key from :func:`core.crypto.derive_key`.
        """
        if len(key) != crypto.KEY_SIZE:
            raise ValueError("Key must be 32 bytes.")
        self._key = key

    def encrypt_field(self, plaintext: str) -> str:
        """Encrypt a string and return URL-safe base64 text."""
        blob = crypto.encrypt(plaintext.encode("utf-8"), self._key)
        return base64.urlsafe_b64encode(blob).decode("ascii")

    def decrypt_field(self, encoded: str) -> str:
        """
        Decrypt text produced by :meth:`encrypt_field`.

        Raises:
            StorageLocked: Wrong key, tampered or non-encrypted value.
        """
        try:
            blob = base64.urlsafe_b64decode(encoded.encode("ascii"))
            return crypto.decrypt(blob, self._key).decode("utf-8")
        except (InvalidTag, ValueError) as exc:
            raise StorageLocked("Stored value cannot be decrypted with this key.") from exc

    def wipe_key(self) -> None:
        """Overwrite the in-memory key with zeros (best-effort)."""
        self._key = b"\x00" * len(self._key)
