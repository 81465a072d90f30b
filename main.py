"""
Authgate – entry point.

Usage
-----
    python main.py

Or, if installed as a package:
    authgate

Configuration is read from ``AUTHGATE_*`` environment variables, see
:mod:`core.config`. Once a store has a salt it is always unlocked on start,
whatever ``AUTHGATE_ENCRYPT`` says.
"""

import logging
import sys
from typing import Optional

from PyQt6.QtWidgets import QApplication, QInputDialog, QLineEdit, QMessageBox

from core.config import AppConfig
from core.crypto import derive_key, generate_salt
from core.errors import StorageLocked
from storage.accounts import AccountStore
from storage.encryption import FieldEncryptor
from storage.kv_store import KeyValueStore
from storage.license import LicenseGate, LicenseStore
from ui.license_dialog import LicenseDialog
from ui.main_window import MainWindow
from ui.styles import STYLESHEET

logger = logging.getLogger("authgate")

_MAX_UNLOCK_ATTEMPTS = 5
_MIN_PASSWORD_LENGTH = 8


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    # never let key material reach debug output
    logging.getLogger("core.crypto").setLevel(logging.WARNING)
    logging.getLogger("storage.encryption").setLevel(logging.WARNING)


# ── Bootstrap ─────────────────────────────────────────────────────────────────

def _ask_password(title: str, prompt: str) -> Optional[str]:
    pw, ok = QInputDialog.getText(None, title, prompt, QLineEdit.EchoMode.Password)
    return pw if ok else None


def _create_password() -> Optional[str]:
    while True:
        pw = _ask_password(
            "Create Master Password",
            "Your accounts and license will be encrypted with this password.\n"
            "It cannot be recovered.",
        )
        if pw is None:
            return None
        if len(pw) < _MIN_PASSWORD_LENGTH:
            QMessageBox.warning(
                None, "Too Short", f"Password must be at least {_MIN_PASSWORD_LENGTH} characters."
            )
            continue
        if _ask_password("Create Master Password", "Confirm master password:") == pw:
            return pw
        QMessageBox.warning(None, "Mismatch", "Passwords do not match.")


def _encrypt_store(kv: KeyValueStore) -> Optional[FieldEncryptor]:
    """Set up a master password and encrypt a plaintext store with it."""
    pw = _create_password()
    if pw is None:
        return None
    salt = generate_salt()
    encryptor = FieldEncryptor(derive_key(pw, salt))
    kv.enable_encryption(encryptor, salt)
    logger.info("Store initialised with a new master password.")
    return encryptor


def _unlock(kv: KeyValueStore, salt: bytes) -> Optional[FieldEncryptor]:
    """
    Ask for the master password and attach the encryptor to ``kv``.

    Returns the encryptor, or None if the user cancelled or ran out of
    attempts.
    """
    for attempt in range(_MAX_UNLOCK_ATTEMPTS):
        pw = _ask_password("Unlock Authgate", "Enter your master password:")
        if pw is None:
            return None

        encryptor = FieldEncryptor(derive_key(pw, salt))
        kv.set_encryptor(encryptor)
        if kv.check_key():
            logger.info("Store unlocked.")
            return encryptor

        kv.set_encryptor(None)
        encryptor.wipe_key()
        remaining = _MAX_UNLOCK_ATTEMPTS - 1 - attempt
        if remaining > 0:
            QMessageBox.warning(
                None,
                "Wrong Password",
                f"Incorrect master password.\n{remaining} attempt(s) remaining.",
            )
    QMessageBox.critical(None, "Too Many Attempts", "Too many failed attempts. Authgate will exit.")
    return None


# ── Main ──────────────────────────────────────────────────────────────────────

def main() -> None:
    try:
        config = AppConfig.from_env()
    except ValueError as exc:
        print(f"authgate: {exc}", file=sys.stderr)
        sys.exit(2)
    _configure_logging(config.log_level)

    app = QApplication(sys.argv)
    app.setApplicationName("Authgate")
    app.setApplicationVersion("1.0.0")
    app.setStyleSheet(STYLESHEET)

    kv = KeyValueStore(config.store_path)
    logger.info("Using store %s", kv.path)

    encryptor: Optional[FieldEncryptor] = None
    try:
        salt = kv.get_salt()
        if salt is not None:
            encryptor = _unlock(kv, salt)
        elif config.encrypt_storage:
            encryptor = _encrypt_store(kv)
        if (salt is not None or config.encrypt_storage) and encryptor is None:
            logger.info("Unlock cancelled or failed – exiting.")
            sys.exit(0)

        gate = LicenseGate(LicenseStore(kv), tolerance_steps=config.license_window)
        if not gate.is_licensed():
            dlg = LicenseDialog(gate)
            if dlg.exec() != dlg.DialogCode.Accepted:
                logger.info("No license activated – exiting.")
                sys.exit(0)

        window = MainWindow(AccountStore(kv), config)
    except StorageLocked as exc:
        logger.error("Store %s cannot be opened: %s", kv.path, exc)
        QMessageBox.critical(None, "Store Locked", f"Authgate cannot open its data store.\n\n{exc}")
        sys.exit(1)
    window.show()

    code = app.exec()
    if encryptor is not None:
        encryptor.wipe_key()
    sys.exit(code)


if __name__ == "__main__":
    main()
