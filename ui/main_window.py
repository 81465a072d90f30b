"""
Main application window for Authgate.

Layout
------
┌──────────────────────────────────────────────────┐
│  Authgate              [Export keys]  [+ Add]    │
├──────────────────────────────────────────────────┤
│  Instant Code  [paste a secret key……]  123 456   │
├──────────────────────────────────────────────────┤
│  ┌────────────────────────────────────────────┐  │
│  │  Account Name                 [Copy] [✕]   │  │
│  │             123 456                        │  │
│  │  ▓▓▓▓▓▓▓▓▓▓▓▓▓▓░░░░░░░░░░░░░░░░  18 s      │  │
│  └────────────────────────────────────────────┘  │
│  … more accounts …                               │
└──────────────────────────────────────────────────┘

Codes are produced by a :class:`~core.scheduler.RefreshScheduler` running on
its own thread; snapshots reach the GUI thread through a queued signal.
"""

import logging
from typing import Dict, Optional, Tuple

from PyQt6.QtCore import QObject, Qt, QTimer, pyqtSignal
from PyQt6.QtWidgets import (
    QApplication,
    QFileDialog,
    QFrame,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QProgressBar,
    QPushButton,
    QScrollArea,
    QVBoxLayout,
    QWidget,
)

from core.config import AppConfig
from core.scheduler import GeneratedCode, InstantCode, RefreshScheduler, Snapshot
from core.totp import PERIOD
from core.utils import clipboard_text, format_otp
from storage.accounts import Account, AccountStore

logger = logging.getLogger(__name__)

_CLIPBOARD_CLEAR_DELAY_MS = 15_000
_BACKUP_FILENAME = "2fa_backup_keys.txt"


def _render(label: QLabel, code: Optional[str], error_text: str) -> None:
    is_error = code is None
    label.setText(error_text if is_error else format_otp(code))
    label.setProperty("error", str(is_error).lower())
    label.style().unpolish(label)
    label.style().polish(label)


# ── Thread bridge ─────────────────────────────────────────────────────────────

class _SnapshotBridge(QObject):
    """Carries scheduler snapshots from the worker thread to the GUI thread."""

    snapshot_ready = pyqtSignal(object)


# ── Account card widget ───────────────────────────────────────────────────────

class AccountCard(QFrame):
    """A card that displays one account's code and countdown."""

    copy_requested = pyqtSignal(str)
    delete_requested = pyqtSignal(str)

    def __init__(self, account: Account, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.account = account
        self._code: Optional[GeneratedCode] = None
        self.setObjectName("card")
        self._build_ui()

    def _build_ui(self) -> None:
        root = QVBoxLayout(self)
        root.setContentsMargins(16, 12, 16, 12)
        root.setSpacing(6)

        top = QHBoxLayout()
        self._lbl_name = QLabel(self.account.name)
        self._lbl_name.setObjectName("lbl_account_name")
        self._lbl_name.setToolTip(self.account.name)
        top.addWidget(self._lbl_name)
        top.addStretch()

        btn_copy = QPushButton("Copy")
        btn_copy.setToolTip("Copy code to clipboard")
        btn_copy.clicked.connect(self._on_copy)
        top.addWidget(btn_copy)

        btn_delete = QPushButton("✕")
        btn_delete.setObjectName("btn_icon")
        btn_delete.setFixedSize(28, 28)
        btn_delete.setToolTip("Delete account")
        btn_delete.clicked.connect(lambda: self.delete_requested.emit(self.account.id))
        top.addWidget(btn_delete)
        root.addLayout(top)

        self._lbl_code = QLabel("— — —")
        self._lbl_code.setObjectName("lbl_code")
        self._lbl_code.setTextInteractionFlags(Qt.TextInteractionFlag.TextSelectableByMouse)
        root.addWidget(self._lbl_code)

        bottom = QHBoxLayout()
        self._progress = QProgressBar()
        self._progress.setMaximum(PERIOD)
        self._progress.setTextVisible(False)
        bottom.addWidget(self._progress)
        self._lbl_remaining = QLabel("")
        self._lbl_remaining.setObjectName("lbl_muted")
        bottom.addWidget(self._lbl_remaining)
        root.addLayout(bottom)

    def show_code(self, generated: GeneratedCode) -> None:
        """Update the card from a scheduler entry."""
        if generated != self._code:
            if self._code is None or generated.code != self._code.code:
                _render(self._lbl_code, generated.code, "Error")
            self._code = generated

        rem = generated.seconds_remaining
        self._progress.setValue(rem)
        self._progress.setProperty("low", str(rem <= 5).lower())
        self._progress.style().unpolish(self._progress)
        self._progress.style().polish(self._progress)
        self._lbl_remaining.setText("" if generated.is_error else f"{rem} s")

    def _on_copy(self) -> None:
        text = clipboard_text(self._code.code if self._code else None)
        if text:
            self.copy_requested.emit(text)


# ── Main window ───────────────────────────────────────────────────────────────

class MainWindow(QMainWindow):
    """Authgate main window."""

    def __init__(self, store: AccountStore, config: AppConfig) -> None:
        super().__init__()
        self._store = store
        self._cards: Dict[str, AccountCard] = {}
        self._clipboard_clear_timer: Optional[QTimer] = None
        self._instant = InstantCode()
        self._instant_code: Optional[str] = None

        self._scheduler = RefreshScheduler(
            store.list(), parallel_threshold=config.parallel_threshold
        )
        self._bridge = _SnapshotBridge()
        self._bridge.snapshot_ready.connect(self._on_snapshot)
        self._unsubscribers = [
            self._scheduler.subscribe(self._bridge.snapshot_ready.emit),
            store.subscribe(self._bridge_accounts),
        ]

        self._setup_ui()
        self._rebuild_cards(store.list())

    # ── UI construction ───────────────────────────────────────────────

    def _setup_ui(self) -> None:
        self.setWindowTitle("Authgate")
        self.setMinimumSize(460, 560)
        self.resize(520, 680)

        central = QWidget()
        self.setCentralWidget(central)
        root = QVBoxLayout(central)
        root.setContentsMargins(0, 0, 0, 0)
        root.setSpacing(0)

        header = QWidget()
        header_layout = QHBoxLayout(header)
        header_layout.setContentsMargins(20, 14, 20, 14)
        title = QLabel("Authgate")
        title.setObjectName("lbl_title")
        header_layout.addWidget(title)
        header_layout.addStretch()

        self._btn_export = QPushButton("Export keys")
        self._btn_export.setToolTip("Download all keys as a text file")
        self._btn_export.clicked.connect(self._on_export)
        header_layout.addWidget(self._btn_export)

        btn_add = QPushButton("+ Add")
        btn_add.setObjectName("btn_primary")
        btn_add.clicked.connect(self._on_add_account)
        header_layout.addWidget(btn_add)
        root.addWidget(header)

        # ── Instant code ──────────────────────────────────────────────
        instant = QFrame()
        instant.setObjectName("card")
        instant_layout = QVBoxLayout(instant)
        instant_layout.setContentsMargins(16, 12, 16, 12)
        lbl_instant = QLabel("Instant Code")
        lbl_instant.setObjectName("lbl_account_name")
        instant_layout.addWidget(lbl_instant)

        row = QHBoxLayout()
        self._edit_instant = QLineEdit()
        self._edit_instant.setPlaceholderText("Paste a secret key for a one-time code")
        self._edit_instant.textChanged.connect(self._on_instant_changed)
        row.addWidget(self._edit_instant)
        btn_paste = QPushButton("Paste")
        btn_paste.clicked.connect(self._on_paste_instant)
        row.addWidget(btn_paste)
        instant_layout.addLayout(row)

        self._lbl_instant = QLabel("")
        self._lbl_instant.setObjectName("lbl_code")
        self._lbl_instant.mousePressEvent = lambda _e: self._copy_to_clipboard(  # type: ignore[assignment]
            clipboard_text(self._instant_code)
        )
        self._lbl_instant.hide()
        instant_layout.addWidget(self._lbl_instant)

        self._lbl_instant_left = QLabel("")
        self._lbl_instant_left.setObjectName("lbl_muted")
        self._lbl_instant_left.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._lbl_instant_left.hide()
        instant_layout.addWidget(self._lbl_instant_left)

        instant_wrap = QWidget()
        wrap_layout = QVBoxLayout(instant_wrap)
        wrap_layout.setContentsMargins(16, 8, 16, 8)
        wrap_layout.addWidget(instant)
        root.addWidget(instant_wrap)

        # ── Cards ─────────────────────────────────────────────────────
        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setFrameShape(QFrame.Shape.NoFrame)
        self._cards_widget = QWidget()
        self._cards_layout = QVBoxLayout(self._cards_widget)
        self._cards_layout.setContentsMargins(16, 8, 16, 16)
        self._cards_layout.setSpacing(10)
        self._cards_layout.addStretch()
        scroll.setWidget(self._cards_widget)
        root.addWidget(scroll)

        self._empty_lbl = QLabel('No Saved 2FA Accounts\nClick "+ Add" to get started.')
        self._empty_lbl.setObjectName("lbl_muted")
        self._empty_lbl.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._cards_layout.insertWidget(0, self._empty_lbl)

        self._status = self.statusBar()
        self._status.showMessage("Ready")

    # ── Accounts ──────────────────────────────────────────────────────

    def _bridge_accounts(self, accounts: Tuple[Account, ...]) -> None:
        self._scheduler.set_accounts(accounts)
        self._rebuild_cards(accounts)
        self._scheduler.tick()

    def _rebuild_cards(self, accounts: Tuple[Account, ...]) -> None:
        wanted = {a.id for a in accounts}
        for account_id in list(self._cards):
            if account_id not in wanted:
                card = self._cards.pop(account_id)
                self._cards_layout.removeWidget(card)
                card.deleteLater()

        for account in accounts:
            if account.id in self._cards:
                continue
            card = AccountCard(account)
            card.copy_requested.connect(self._copy_to_clipboard)
            card.delete_requested.connect(self._on_delete_account)
            self._cards_layout.insertWidget(self._cards_layout.count() - 1, card)
            self._cards[account.id] = card

        self._empty_lbl.setVisible(not self._cards)
        self._btn_export.setEnabled(bool(self._cards))

    def _on_snapshot(self, snapshot: Snapshot) -> None:
        for account_id, generated in snapshot.items():
            card = self._cards.get(account_id)
            if card is not None:
                card.show_code(generated)
        self._refresh_instant()

    def _on_add_account(self) -> None:
        from ui.add_account import AddAccountDialog

        dlg = AddAccountDialog(self)
        dlg.account_entered.connect(self._save_new_account)
        dlg.exec()

    def _save_new_account(self, name: str, secret: str) -> None:
        try:
            account = self._store.add(name, secret)
        except ValueError as exc:
            QMessageBox.warning(self, "Error", str(exc))
            return
        except Exception as exc:
            logger.exception("Failed to add account")
            QMessageBox.critical(self, "Error", f"Failed to add account:\n{exc}")
            return
        self._status.showMessage(f'Account "{account.name}" added successfully.', 3000)

    def _on_delete_account(self, account_id: str) -> None:
        account = self._store.get(account_id)
        if account is None:
            return
        reply = QMessageBox.question(
            self,
            "Delete 2FA Account?",
            "Are you sure you want to delete this account? This action cannot be undone.",
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.Cancel,
        )
        if reply != QMessageBox.StandardButton.Yes:
            return
        try:
            self._store.remove(account_id)
        except Exception as exc:
            logger.exception("Failed to delete account")
            QMessageBox.critical(self, "Error", f"Failed to delete:\n{exc}")
            return
        self._status.showMessage("Account deleted.", 3000)

    # ── Instant code ──────────────────────────────────────────────────

    def _on_instant_changed(self, text: str) -> None:
        self._instant.set_secret(text)
        self._refresh_instant(force=True)

    def _refresh_instant(self, force: bool = False) -> None:
        generated = self._instant.poll()
        if generated is None:
            self._instant_code = None
            self._lbl_instant.hide()
            self._lbl_instant_left.hide()
            return
        if force or generated.code != self._instant_code:
            self._instant_code = generated.code
            _render(self._lbl_instant, generated.code, "Invalid Key")
        self._lbl_instant.show()
        self._lbl_instant_left.setText(
            f"Expires in {generated.seconds_remaining} s" if not generated.is_error else ""
        )
        self._lbl_instant_left.setVisible(not generated.is_error)

    def _on_paste_instant(self) -> None:
        text = QApplication.clipboard().text()
        if not text:
            self._status.showMessage("Clipboard is empty.", 3000)
            return
        self._edit_instant.setText(text)
        self._status.showMessage("Key pasted from clipboard.", 3000)

    # ── Clipboard ─────────────────────────────────────────────────────

    def _copy_to_clipboard(self, code: Optional[str]) -> None:
        if not code:
            return
        clipboard = QApplication.clipboard()
        clipboard.setText(code)
        self._status.showMessage("Code copied! Clearing in 15 s…", _CLIPBOARD_CLEAR_DELAY_MS)

        if self._clipboard_clear_timer:
            self._clipboard_clear_timer.stop()
        self._clipboard_clear_timer = QTimer(self)
        self._clipboard_clear_timer.setSingleShot(True)
        self._clipboard_clear_timer.timeout.connect(lambda: clipboard.setText(""))
        self._clipboard_clear_timer.start(_CLIPBOARD_CLEAR_DELAY_MS)

    # ── Export ────────────────────────────────────────────────────────

    def _on_export(self) -> None:
        content = self._store.export_text()
        if not content:
            self._status.showMessage("No accounts to download.", 3000)
            return
        path, _ = QFileDialog.getSaveFileName(
            self, "Export Keys", _BACKUP_FILENAME, "Text Files (*.txt)"
        )
        if not path:
            return
        try:
            with open(path, "w", encoding="utf-8") as fh:
                fh.write(content)
        except OSError as exc:
            QMessageBox.critical(self, "Export Error", str(exc))
            return
        QMessageBox.information(
            self, "Exported", f"Keys saved to:\n{path}\n\nThis file is not encrypted."
        )

    # ── Lifecycle ─────────────────────────────────────────────────────

    def showEvent(self, event) -> None:  # type: ignore[override]
        super().showEvent(event)
        self._scheduler.start()

    def closeEvent(self, event) -> None:  # type: ignore[override]
        self._scheduler.stop()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        if self._clipboard_clear_timer:
            self._clipboard_clear_timer.stop()
        super().closeEvent(event)
