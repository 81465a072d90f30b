"""Tests for core.config."""

from pathlib import Path

import pytest

from core.config import STORE_FILENAME, AppConfig


def test_defaults() -> None:
    config = AppConfig.from_env({})
    assert config.data_dir.name == "authgate"
    assert config.license_window == 1
    assert config.encrypt_storage is False
    assert config.log_level == "INFO"
    assert config.parallel_threshold == 16


def test_overrides(tmp_path: Path) -> None:
    config = AppConfig.from_env({
        "AUTHGATE_HOME": str(tmp_path),
        "AUTHGATE_LICENSE_WINDOW": "2",
        "AUTHGATE_ENCRYPT": "yes",
        "AUTHGATE_LOG_LEVEL": "debug",
        "AUTHGATE_PARALLEL_THRESHOLD": "4",
    })
    assert config.store_path == tmp_path / STORE_FILENAME
    assert config.license_window == 2
    assert config.encrypt_storage is True
    assert config.log_level == "DEBUG"
    assert config.parallel_threshold == 4


def test_zero_window_allowed() -> None:
    assert AppConfig.from_env({"AUTHGATE_LICENSE_WINDOW": "0"}).license_window == 0


@pytest.mark.parametrize(
    "env",
    [
        {"AUTHGATE_LICENSE_WINDOW": "-1"},
        {"AUTHGATE_LICENSE_WINDOW": "wide"},
        {"AUTHGATE_PARALLEL_THRESHOLD": "0"},
        {"AUTHGATE_ENCRYPT": "maybe"},
        {"AUTHGATE_LOG_LEVEL": "LOUD"},
    ],
)
def test_invalid_values(env: dict) -> None:
    with pytest.raises(ValueError):
        AppConfig.from_env(env)
