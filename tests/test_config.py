from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from stridequest.config import EngineConfig
from stridequest.constants import SECONDS_PER_DAY

_ENV_NAMES = (
    "STRIDEQUEST_DATA_ROOT",
    "STRIDEQUEST_EFFORT_RETENTION",
    "STRIDEQUEST_EFFORT_WINDOW_DAYS",
    "STRIDEQUEST_LOG_LEVEL",
    "STRIDEQUEST_CATALOG",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_environment() -> None:
    config = EngineConfig.from_env()

    assert config.data_root is None
    assert config.catalog_path is None
    assert config.effort_retention == 500
    assert config.effort_window_days == 7
    assert config.effort_window_seconds == pytest.approx(7 * SECONDS_PER_DAY)
    assert config.log_level == "INFO"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("STRIDEQUEST_DATA_ROOT", str(tmp_path))
    monkeypatch.setenv("STRIDEQUEST_EFFORT_RETENTION", "250")
    monkeypatch.setenv("STRIDEQUEST_EFFORT_WINDOW_DAYS", "14")
    monkeypatch.setenv("STRIDEQUEST_LOG_LEVEL", "debug")
    monkeypatch.setenv("STRIDEQUEST_CATALOG", str(tmp_path / "catalog.toml"))

    config = EngineConfig.from_env()

    assert config.data_root == tmp_path
    assert config.effort_retention == 250
    assert config.effort_window_days == 14
    assert config.log_level == "DEBUG"
    assert config.catalog_path == tmp_path / "catalog.toml"


def test_invalid_values_fall_back_or_clamp(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STRIDEQUEST_EFFORT_RETENTION", "lots")
    monkeypatch.setenv("STRIDEQUEST_EFFORT_WINDOW_DAYS", "-3")
    monkeypatch.setenv("STRIDEQUEST_LOG_LEVEL", "chatty")

    config = EngineConfig.from_env()

    assert config.effort_retention == 500
    assert config.effort_window_days == 1
    assert config.log_level == "INFO"
