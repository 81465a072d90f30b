"""
Qt stylesheet for Authgate.

Only the object names set in ``ui/`` are styled: ``btn_primary``,
``btn_icon``, ``edit_license``, ``card`` and the ``lbl_*`` labels, plus the
``error`` and ``low`` dynamic properties.
"""

from string import Template

PALETTE = {
    "base": "#111827",
    "surface": "#1f2937",
    "border": "#374151",
    "text": "#e5e7eb",
    "muted": "#9ca3af",
    "accent": "#db2777",
    "code": "#f472b6",
    "ok": "#22c55e",
    "danger": "#f87171",
    "mono": '"JetBrains Mono", "Consolas", monospace',
}

_TEMPLATE = Template("""
QWidget { background-color: $base; color: $text; font-size: 14px; }

QPushButton, QLineEdit, QFrame#card {
    background-color: $surface;
    border: 1px solid $border;
    border-radius: 6px;
}
QPushButton { padding: 7px 14px; }
QPushButton:disabled { color: $muted; }
QPushButton#btn_primary { background-color: $accent; border: none; font-weight: 700; }
QPushButton#btn_icon { background: transparent; border: none; padding: 4px; }

QLineEdit { padding: 8px 10px; }
QLineEdit:focus { border-color: $accent; }
QLineEdit#edit_license { font-family: $mono; font-size: 22px; letter-spacing: 8px; }

QLabel#lbl_title { font-size: 20px; font-weight: 700; }
QLabel#lbl_muted { font-size: 12px; color: $muted; }
QLabel#lbl_error { color: $danger; }
QLabel#lbl_account_name { font-weight: 600; }
QLabel#lbl_code { font-family: $mono; font-size: 36px; font-weight: 700; color: $code; qproperty-alignment: AlignCenter; }
QLabel#lbl_code[error="true"] { font-size: 16px; color: $danger; }

QProgressBar { background-color: $border; border: none; max-height: 6px; }
QProgressBar::chunk { background-color: $ok; }
QProgressBar[low="true"]::chunk { background-color: $danger; }
""")

STYLESHEET = _TEMPLATE.substitute(PALETTE)
