"""Engine configuration utilities."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .constants import EFFORT_RETENTION_CAP, EFFORT_WINDOW_DAYS, SECONDS_PER_DAY


def env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def env_path(name: str) -> Path | None:
    value = os.getenv(name)
    if not value or not value.strip():
        return None
    return Path(value).expanduser()


@dataclass(slots=True)
class EngineConfig:
    data_root: Path | None = None
    effort_retention: int = EFFORT_RETENTION_CAP
    effort_window_days: int = EFFORT_WINDOW_DAYS
    log_level: str = "INFO"
    catalog_path: Path | None = None

    def __post_init__(self) -> None:
        try:
            self.effort_retention = max(1, int(self.effort_retention))
        except (TypeError, ValueError):
            self.effort_retention = EFFORT_RETENTION_CAP
        try:
            self.effort_window_days = max(1, int(self.effort_window_days))
        except (TypeError, ValueError):
            self.effort_window_days = EFFORT_WINDOW_DAYS
        level = str(self.log_level or "INFO").strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            level = "INFO"
        self.log_level = level

    @property
    def effort_window_seconds(self) -> float:
        return float(self.effort_window_days * SECONDS_PER_DAY)

    @classmethod
    def from_env(cls) -> "EngineConfig":
        return cls(
            data_root=env_path("STRIDEQUEST_DATA_ROOT"),
            effort_retention=env_int("STRIDEQUEST_EFFORT_RETENTION", EFFORT_RETENTION_CAP),
            effort_window_days=env_int("STRIDEQUEST_EFFORT_WINDOW_DAYS", EFFORT_WINDOW_DAYS),
            log_level=os.getenv("STRIDEQUEST_LOG_LEVEL", "INFO"),
            catalog_path=env_path("STRIDEQUEST_CATALOG"),
        )


__all__ = ["EngineConfig", "env_int", "env_path"]
