"""Workout telemetry and the effort units derived from it."""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, List, Mapping, Optional

from ..constants import CYCLE_DISTANCE_CREDIT
from .combat import Affinity


def _coerce_non_negative_float(value: Any, default: float = 0.0) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:
        return default
    return max(0.0, number)


class WorkoutType(str, Enum):
    WALK = "walk"
    RUN = "run"
    CYCLE = "cycle"
    STRENGTH = "strength"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return self.value.title()

    @classmethod
    def from_value(cls, value: "WorkoutType | str | None") -> "WorkoutType":
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        aliases = {
            "walking": cls.WALK,
            "running": cls.RUN,
            "cycling": cls.CYCLE,
            "bike": cls.CYCLE,
            "traditionalstrengthtraining": cls.STRENGTH,
            "functionalstrengthtraining": cls.STRENGTH,
        }
        if normalized in aliases:
            return aliases[normalized]
        try:
            return cls(normalized)
        except ValueError:
            return cls.OTHER


class EffortTier(str, Enum):
    """Workout intensity band. Each tier awards a fixed number of effort units."""

    EASY = "easy"
    MODERATE = "moderate"
    HARD = "hard"

    @property
    def display_name(self) -> str:
        return self.value.title()

    @property
    def unit_count(self) -> int:
        return _TIER_UNITS[self]

    @property
    def rank(self) -> int:
        return _TIER_RANKS[self]

    @classmethod
    def from_value(cls, value: "EffortTier | str") -> "EffortTier":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            return cls.EASY


_TIER_UNITS = MappingProxyType(
    {EffortTier.EASY: 1, EffortTier.MODERATE: 2, EffortTier.HARD: 3}
)
_TIER_RANKS = MappingProxyType(
    {EffortTier.EASY: 0, EffortTier.MODERATE: 1, EffortTier.HARD: 2}
)

WORKOUT_AFFINITIES: Mapping[WorkoutType, Affinity] = MappingProxyType(
    {
        WorkoutType.WALK: Affinity.RHYTHM,
        WorkoutType.RUN: Affinity.ENDURANCE,
        WorkoutType.CYCLE: Affinity.ENDURANCE,
        WorkoutType.STRENGTH: Affinity.FORCE,
        WorkoutType.OTHER: Affinity.PRECISION,
    }
)


def affinity_for_workout(workout_type: WorkoutType | str) -> Affinity:
    return WORKOUT_AFFINITIES[WorkoutType.from_value(workout_type)]


@dataclass(slots=True)
class WorkoutRecord:
    """A completed workout as delivered by the telemetry source."""

    key: str
    type: WorkoutType
    calories: float = 0.0
    distance_miles: float = 0.0
    duration_minutes: float = 0.0
    completed_at: float = 0.0
    avg_heart_rate: Optional[float] = None

    def __post_init__(self) -> None:
        self.key = str(self.key)
        self.type = WorkoutType.from_value(self.type)
        self.calories = _coerce_non_negative_float(self.calories)
        self.distance_miles = _coerce_non_negative_float(self.distance_miles)
        self.duration_minutes = _coerce_non_negative_float(self.duration_minutes)
        self.completed_at = _coerce_non_negative_float(self.completed_at, time.time())
        if self.avg_heart_rate is not None:
            self.avg_heart_rate = _coerce_non_negative_float(self.avg_heart_rate)

    @property
    def affinity(self) -> Affinity:
        return WORKOUT_AFFINITIES[self.type]

    @property
    def experience(self) -> float:
        """XP granted by this workout: one point per calorie, unrounded."""

        return self.calories

    @property
    def credited_distance(self) -> float:
        if self.type is WorkoutType.CYCLE:
            return self.distance_miles * CYCLE_DISTANCE_CREDIT
        return self.distance_miles

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "WorkoutRecord":
        payload = dict(data)
        if "key" not in payload and "id" in payload:
            payload["key"] = payload.pop("id")
        for alias, name in (
            ("workout_type", "type"),
            ("distance", "distance_miles"),
            ("minutes", "duration_minutes"),
            ("heart_rate", "avg_heart_rate"),
        ):
            if name not in payload and alias in payload:
                payload[name] = payload.pop(alias)
        completed_at = payload.get("completed_at", 0.0)
        if isinstance(completed_at, datetime):
            if completed_at.tzinfo is None:
                completed_at = completed_at.replace(tzinfo=timezone.utc)
            completed_at = completed_at.timestamp()
        return cls(
            key=payload["key"],
            type=payload.get("type", WorkoutType.OTHER),
            calories=payload.get("calories", 0.0),
            distance_miles=payload.get("distance_miles", 0.0),
            duration_minutes=payload.get("duration_minutes", 0.0),
            completed_at=completed_at,
            avg_heart_rate=payload.get("avg_heart_rate"),
        )


def chronological(records: Iterable[WorkoutRecord]) -> List[WorkoutRecord]:
    """Order records oldest first, ties broken by key, for replayable intake."""

    return sorted(records, key=lambda record: (record.completed_at, record.key))


@dataclass(frozen=True, slots=True)
class EffortUnit:
    affinity: Affinity
    tier: EffortTier
    earned_at: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "affinity", Affinity.from_value(self.affinity))
        object.__setattr__(self, "tier", EffortTier.from_value(self.tier))
        object.__setattr__(self, "earned_at", _coerce_non_negative_float(self.earned_at))

    def to_dict(self) -> dict[str, Any]:
        return {
            "affinity": self.affinity.value,
            "tier": self.tier.value,
            "earned_at": self.earned_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EffortUnit":
        return cls(
            affinity=data["affinity"],
            tier=data.get("tier", EffortTier.EASY),
            earned_at=data.get("earned_at", 0.0),
        )


__all__ = [
    "EffortTier",
    "EffortUnit",
    "WORKOUT_AFFINITIES",
    "WorkoutRecord",
    "WorkoutType",
    "affinity_for_workout",
    "chronological",
]
