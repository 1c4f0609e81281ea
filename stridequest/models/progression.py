"""Level table, intensity tiers and level-up snapshots."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping, Sequence, Tuple

from ._validation import FieldSpec, ModelValidator, is_non_negative_int, is_positive_int


@dataclass(frozen=True, slots=True)
class LevelProgressionRow:
    level: int
    mana_per_workout: int
    mana_cap: int
    xp_to_reach_level: int

    def __post_init__(self) -> None:
        for name in ("mana_per_workout", "mana_cap", "xp_to_reach_level"):
            try:
                value = max(0, int(getattr(self, name)))
            except (TypeError, ValueError):
                value = 0
            object.__setattr__(self, name, value)
        try:
            level = max(1, int(self.level))
        except (TypeError, ValueError):
            level = 1
        object.__setattr__(self, "level", level)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LevelProgressionRow":
        payload = LevelProgressionRowValidator.validate(data)
        return cls(
            level=payload["level"],
            mana_per_workout=payload["mana_per_workout"],
            mana_cap=payload["mana_cap"],
            xp_to_reach_level=payload.get("xp_to_reach_level", 0),
        )


class LevelProgressionRowValidator(ModelValidator):
    model = LevelProgressionRow
    fields = {
        "level": FieldSpec(is_positive_int, "a level of at least 1"),
        "mana_per_workout": FieldSpec(is_non_negative_int, "mana gained per workout"),
        "mana_cap": FieldSpec(is_non_negative_int, "the mana pool cap"),
        "xp_to_reach_level": FieldSpec(
            is_non_negative_int, "XP required to reach the level", required=False
        ),
    }


LevelProgressionRow.validator = LevelProgressionRowValidator


DEFAULT_LEVEL_ROWS: Tuple[LevelProgressionRow, ...] = (
    LevelProgressionRow(1, 4, 20, 0),
    LevelProgressionRow(2, 4, 24, 1500),
    LevelProgressionRow(3, 5, 30, 1500),
    LevelProgressionRow(4, 5, 30, 1500),
    LevelProgressionRow(5, 5, 35, 1500),
    LevelProgressionRow(6, 6, 42, 3000),
    LevelProgressionRow(7, 6, 42, 3000),
    LevelProgressionRow(8, 6, 42, 3000),
    LevelProgressionRow(9, 7, 50, 3000),
    LevelProgressionRow(10, 7, 50, 3000),
    LevelProgressionRow(11, 8, 50, 6000),
)


class LevelTable:
    """Lookup over the static level rows.

    Rows are looked up by level clamped into ``[1, max_level]`` so an
    out-of-range level never fails. The XP column is the amount needed to
    advance *into* that level from the previous one.
    """

    def __init__(self, rows: Iterable[LevelProgressionRow] = DEFAULT_LEVEL_ROWS) -> None:
        ordered = sorted(rows, key=lambda row: row.level)
        if not ordered:
            raise ValueError("Level table requires at least one row")
        if ordered[0].level != 1:
            raise ValueError("Level table must start at level 1")
        for previous, current in zip(ordered, ordered[1:]):
            if current.level != previous.level + 1:
                raise ValueError(
                    f"Level table has a gap between {previous.level} and {current.level}"
                )
        self._rows: Tuple[LevelProgressionRow, ...] = tuple(ordered)

    @property
    def rows(self) -> Tuple[LevelProgressionRow, ...]:
        return self._rows

    @property
    def max_level(self) -> int:
        return self._rows[-1].level

    def clamp_level(self, level: int) -> int:
        return min(max(1, int(level)), self.max_level)

    def row(self, level: int) -> LevelProgressionRow:
        return self._rows[self.clamp_level(level) - 1]

    def mana_per_workout(self, level: int) -> int:
        return max(0, self.row(level).mana_per_workout)

    def mana_cap(self, level: int) -> int:
        return max(0, self.row(level).mana_cap)

    def xp_to_next_level(self, level: int) -> float:
        """XP needed to go from ``level`` to the next, or infinity at max level."""

        if level >= self.max_level:
            return math.inf
        return float(self.row(level + 1).xp_to_reach_level)

    def xp_progress(self, level: int, experience: float) -> float:
        needed = self.xp_to_next_level(level)
        if math.isinf(needed):
            return 1.0
        if needed <= 0:
            return 0.0
        return min(1.0, max(0.0, experience / needed))

    @classmethod
    def from_rows(cls, rows: Sequence[Mapping[str, Any]]) -> "LevelTable":
        return cls(LevelProgressionRow.from_dict(entry) for entry in rows)


class IntensityTier(str, Enum):
    """Mana regeneration band chosen from trailing weekly effort volume."""

    STARTING = "starting"
    ESTABLISHING = "establishing"
    CONSISTENT = "consistent"
    COMMITTED = "committed"
    HIGHLY_ACTIVE = "highly_active"
    ATHLETE = "athlete"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()

    @property
    def multiplier(self) -> float:
        return _INTENSITY_BANDS[self][1]

    @property
    def minimum_count(self) -> int:
        return _INTENSITY_BANDS[self][0]

    @classmethod
    def for_weekly_count(cls, count: int) -> "IntensityTier":
        count = max(0, int(count))
        selected = cls.STARTING
        for tier in cls:
            if count >= tier.minimum_count:
                selected = tier
        return selected


# Minimum weekly effort count and mana multiplier per tier.
_INTENSITY_BANDS = {
    IntensityTier.STARTING: (0, 1.0),
    IntensityTier.ESTABLISHING: (4, 1.2),
    IntensityTier.CONSISTENT: (8, 1.4),
    IntensityTier.COMMITTED: (13, 1.6),
    IntensityTier.HIGHLY_ACTIVE: (19, 1.8),
    IntensityTier.ATHLETE: (26, 2.0),
}


@dataclass(frozen=True, slots=True)
class LevelUpSnapshot:
    """What a presentation layer needs to announce a freshly gained level."""

    new_level: int
    mana_per_workout: int
    mana_cap: int
    xp_to_next_level: float

    @classmethod
    def for_level(cls, table: LevelTable, level: int) -> "LevelUpSnapshot":
        return cls(
            new_level=level,
            mana_per_workout=table.mana_per_workout(level),
            mana_cap=table.mana_cap(level),
            xp_to_next_level=table.xp_to_next_level(level),
        )


__all__ = [
    "DEFAULT_LEVEL_ROWS",
    "IntensityTier",
    "LevelProgressionRow",
    "LevelTable",
    "LevelUpSnapshot",
]
