"""
Runtime configuration, read from environment variables.

=============================  ===========================================
AUTHGATE_HOME                  data directory (default: %APPDATA%/authgate
                               or ~/.local/share/authgate)
AUTHGATE_LICENSE_WINDOW        license verification skew, in 30 s steps
AUTHGATE_ENCRYPT               "1"/"true" to encrypt stored values
AUTHGATE_LOG_LEVEL             logging level name
AUTHGATE_PARALLEL_THRESHOLD    account count above which codes are
                               computed in a thread pool
=============================  ===========================================
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

ACCOUNTS_KEY = "2fa_accounts_v1"
LICENSE_KEY = "license_v1"
STORE_FILENAME = "authgate.json"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _default_dir() -> Path:
    return Path(os.environ.get("APPDATA", Path.home() / ".local" / "share")) / "authgate"


def _int(env: Mapping[str, str], name: str, default: int, minimum: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}.") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}.")
    return value


def _bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}.")


@dataclass(frozen=True)
class AppConfig:
    """Immutable application settings."""

    data_dir: Path
    license_window: int = 1
    encrypt_storage: bool = False
    log_level: str = "INFO"
    parallel_threshold: int = 16

    @property
    def store_path(self) -> Path:
        return self.data_dir / STORE_FILENAME

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "AppConfig":
        """
        Build a config from ``env`` (defaults to ``os.environ``).

        Raises:
            ValueError: If a variable holds an unusable value.
        """
        env = os.environ if env is None else env
        home = env.get("AUTHGATE_HOME")
        log_level = env.get("AUTHGATE_LOG_LEVEL", "INFO").strip().upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise ValueError(f"AUTHGATE_LOG_LEVEL is not a logging level: {log_level!r}.")
        return cls(
            data_dir=Path(home).expanduser() if home else _default_dir(),
            license_window=_int(env, "AUTHGATE_LICENSE_WINDOW", 1, minimum=0),
            encrypt_storage=_bool(env, "AUTHGATE_ENCRYPT", False),
            log_level=log_level,
            parallel_threshold=_int(env, "AUTHGATE_PARALLEL_THRESHOLD", 16, minimum=1),
        )
