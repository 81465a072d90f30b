"""
License activation dialog, shown when no valid license is stored.
"""

import logging
from typing import Optional

from PyQt6.QtCore import QRegularExpression, Qt, QTimer
from PyQt6.QtGui import QRegularExpressionValidator
from PyQt6.QtWidgets import (
    QDialog,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from core.errors import InvalidCandidateFormat, InvalidSecret, NoMatch
from storage.license import LicenseGate, LicenseRecord, describe_duration

logger = logging.getLogger(__name__)

_VERIFY_DELAY_MS = 500


class LicenseDialog(QDialog):
    """Collect a 6-digit license key and activate it through a :class:`LicenseGate`."""

    def __init__(self, gate: LicenseGate, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._gate = gate
        self.record: Optional[LicenseRecord] = None
        self._setup_ui()

    def _setup_ui(self) -> None:
        self.setWindowTitle("Activate License")
        self.setMinimumWidth(380)
        self.setModal(True)

        layout = QVBoxLayout(self)
        layout.setSpacing(12)
        layout.setContentsMargins(24, 24, 24, 24)

        title = QLabel("Activate License")
        title.setObjectName("lbl_title")
        layout.addWidget(title)

        info = QLabel("Please enter your license key to activate the application.")
        info.setObjectName("lbl_muted")
        info.setWordWrap(True)
        layout.addWidget(info)

        self._lbl_error = QLabel("")
        self._lbl_error.setObjectName("lbl_error")
        self._lbl_error.setWordWrap(True)
        self._lbl_error.hide()
        layout.addWidget(self._lbl_error)

        self._edit_key = QLineEdit()
        self._edit_key.setObjectName("edit_license")
        self._edit_key.setPlaceholderText("_ _ _ _ _ _")
        self._edit_key.setAlignment(Qt.AlignmentFlag.AlignCenter)
        # spaces are allowed while typing and stripped before checking
        self._edit_key.setValidator(
            QRegularExpressionValidator(QRegularExpression(r"[0-9 ]{0,11}"))
        )
        self._edit_key.textChanged.connect(self._on_text_changed)
        self._edit_key.returnPressed.connect(self._on_activate)
        layout.addWidget(self._edit_key)

        row = QHBoxLayout()
        btn_cancel = QPushButton("Quit")
        btn_cancel.clicked.connect(self.reject)
        row.addWidget(btn_cancel)
        row.addStretch()
        self._btn_activate = QPushButton("Activate")
        self._btn_activate.setObjectName("btn_primary")
        self._btn_activate.setEnabled(False)
        self._btn_activate.clicked.connect(self._on_activate)
        row.addWidget(self._btn_activate)
        layout.addLayout(row)

        footer = QLabel("If you don't have a license key, please contact support.")
        footer.setObjectName("lbl_muted")
        footer.setWordWrap(True)
        layout.addWidget(footer)

    # ── Slots ─────────────────────────────────────────────────────────

    def _on_text_changed(self, text: str) -> None:
        self._btn_activate.setEnabled(bool(text.strip()))

    def _on_activate(self) -> None:
        if not self._btn_activate.isEnabled():
            return
        self._btn_activate.setEnabled(False)
        self._btn_activate.setText("Checking…")
        self._lbl_error.hide()
        QTimer.singleShot(_VERIFY_DELAY_MS, self._verify)

    def _verify(self) -> None:
        try:
            self.record = self._gate.activate(self._edit_key.text())
        except (InvalidCandidateFormat, NoMatch) as exc:
            self._show_error(str(exc))
            return
        except InvalidSecret as exc:
            logger.error("License plan secret is broken: %s", exc)
            self._show_error(f"An error occurred during verification: {exc}")
            return

        self._btn_activate.setText("Activated")
        self._lbl_error.setObjectName("lbl_muted")
        self._lbl_error.setText(
            f"License activated successfully for {describe_duration(self.record.duration_days)}!"
        )
        self._lbl_error.show()
        QTimer.singleShot(1500, self.accept)

    def _show_error(self, message: str) -> None:
        self._lbl_error.setText(message)
        self._lbl_error.show()
        self._btn_activate.setText("Activate")
        self._btn_activate.setEnabled(bool(self._edit_key.text().strip()))
