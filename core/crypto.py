"""
At-rest encryption primitives for the optional encrypted store.

Key derivation  : PBKDF2-HMAC-SHA256
Encryption      : AES-256-GCM (authenticated encryption)
"""

import hashlib
import secrets

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

# ── Constants ────────────────────────────────────────────────────────────────

SALT_SIZE = 32
NONCE_SIZE = 12
KEY_SIZE = 32
PBKDF2_ITERATIONS = 480_000
PBKDF2_HASH = "sha256"


# ── Key derivation ────────────────────────────────────────────────────────────

def derive_key(password: str, salt: bytes) -> bytes:
    """
    Derive a 256-bit key from a master password.

    Args:
        password: Master password.
        salt:     Random salt stored alongside the data.

    Returns:
        32-byte key.
    """
    return hashlib.pbkdf2_hmac(
        PBKDF2_HASH,
        password.encode("utf-8"),
        salt,
        PBKDF2_ITERATIONS,
        dklen=KEY_SIZE,
    )


def generate_salt() -> bytes:
    """Return a cryptographically random salt."""
    return secrets.token_bytes(SALT_SIZE)


# ── AES-256-GCM ───────────────────────────────────────────────────────────────

def _check_key(key: bytes) -> None:
    if len(key) != KEY_SIZE:
        raise ValueError(f"Key must be {KEY_SIZE} bytes, got {len(key)}")


def encrypt(plaintext: bytes, key: bytes) -> bytes:
    """
    Encrypt ``plaintext`` with AES-256-GCM.

    Layout of the returned blob::

        [ nonce (12 bytes) | ciphertext+tag ]
    """
    _check_key(key)
    nonce = secrets.token_bytes(NONCE_SIZE)
    return nonce + AESGCM(key).encrypt(nonce, plaintext, None)


def decrypt(blob: bytes, key: bytes) -> bytes:
    """
    Decrypt a blob produced by :func:`encrypt`.

    Raises:
        ValueError: If the key length is wrong.
        cryptography.exceptions.InvalidTag: Wrong key or tampered data.
    """
    _check_key(key)
    return AESGCM(key).decrypt(blob[:NONCE_SIZE], blob[NONCE_SIZE:], None)
