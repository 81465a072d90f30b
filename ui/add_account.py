"""
Add account dialog for Authgate.
"""

import logging
import secrets
from typing import Optional, Tuple

from PyQt6.QtCore import Qt, pyqtSignal
from PyQt6.QtWidgets import (
    QDialog,
    QDialogButtonBox,
    QFormLayout,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMessageBox,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from core import base32
from core.utils import sanitise_label

logger = logging.getLogger(__name__)


class AddAccountDialog(QDialog):
    """
    Dialog for adding a TOTP account.

    Emits :attr:`account_entered` with ``(name, secret)`` on accept. The
    secret is not required to decode; the user is only warned.
    """

    account_entered = pyqtSignal(str, str)

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._setup_ui()

    # ── UI construction ───────────────────────────────────────────────

    def _setup_ui(self) -> None:
        self.setWindowTitle("Add New 2FA Account")
        self.setMinimumWidth(420)
        self.setModal(True)

        root = QVBoxLayout(self)
        root.setSpacing(14)
        root.setContentsMargins(24, 24, 24, 24)

        lbl_title = QLabel("Add New 2FA Account")
        lbl_title.setObjectName("lbl_title")
        root.addWidget(lbl_title)

        form = QFormLayout()
        form.setSpacing(10)
        form.setLabelAlignment(Qt.AlignmentFlag.AlignRight)

        self._edit_name = QLineEdit()
        self._edit_name.setPlaceholderText("e.g., Google (me@example.com)")
        form.addRow("Account/Service Name", self._edit_name)

        self._edit_secret = QLineEdit()
        self._edit_secret.setPlaceholderText("Paste your secret key here")
        self._edit_secret.textChanged.connect(self._on_secret_changed)
        secret_row = QHBoxLayout()
        secret_row.addWidget(self._edit_secret)
        btn_gen = QPushButton("⟳")
        btn_gen.setObjectName("btn_icon")
        btn_gen.setFixedWidth(32)
        btn_gen.setToolTip("Generate a new random secret")
        btn_gen.clicked.connect(self._generate_secret)
        secret_row.addWidget(btn_gen)
        form.addRow("Secret Key", secret_row)

        root.addLayout(form)

        self._lbl_hint = QLabel("")
        self._lbl_hint.setObjectName("lbl_error")
        self._lbl_hint.setWordWrap(True)
        root.addWidget(self._lbl_hint)

        buttons = QDialogButtonBox(
            QDialogButtonBox.StandardButton.Save | QDialogButtonBox.StandardButton.Cancel
        )
        save = buttons.button(QDialogButtonBox.StandardButton.Save)
        save.setObjectName("btn_primary")
        save.setText("Save Account")
        buttons.accepted.connect(self._on_save)
        buttons.rejected.connect(self.reject)
        root.addWidget(buttons)

    # ── Slots ─────────────────────────────────────────────────────────

    def _generate_secret(self) -> None:
        """Fill in a fresh 160-bit random secret."""
        self._edit_secret.setText(base32.encode(secrets.token_bytes(20)))

    def _on_secret_changed(self, text: str) -> None:
        if text.strip() and not base32.is_valid(text):
            self._lbl_hint.setText(
                "This key is not valid Base32. It will be saved, but will show "
                "an error until corrected."
            )
        else:
            self._lbl_hint.setText("")

    def _on_save(self) -> None:
        try:
            name, secret = self._values()
        except ValueError as exc:
            QMessageBox.warning(self, "Missing Fields", str(exc))
            return
        self.account_entered.emit(name, secret)
        self.accept()

    def _values(self) -> Tuple[str, str]:
        name = sanitise_label(self._edit_name.text())
        secret = self._edit_secret.text().strip()
        if not name or not secret:
            raise ValueError("Name and Secret Key are required.")
        return name, secret
