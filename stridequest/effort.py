"""Classify workout telemetry into effort tiers and effort units."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, List, Mapping, NamedTuple, Optional

from .models._validation import FieldSpec, ModelValidator, is_non_negative_number
from .models.workout import EffortTier, EffortUnit, WorkoutRecord, WorkoutType


@dataclass(frozen=True, slots=True)
class TierThresholds:
    hr_moderate: float = 120.0
    hr_hard: float = 150.0
    cpm_moderate: float = 6.0
    cpm_hard: float = 12.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TierThresholds":
        payload = TierThresholdsValidator.validate(data)
        defaults = cls()
        return cls(
            hr_moderate=float(payload.get("hr_moderate", defaults.hr_moderate)),
            hr_hard=float(payload.get("hr_hard", defaults.hr_hard)),
            cpm_moderate=float(payload.get("cpm_moderate", defaults.cpm_moderate)),
            cpm_hard=float(payload.get("cpm_hard", defaults.cpm_hard)),
        )


class TierThresholdsValidator(ModelValidator):
    model = TierThresholds
    fields = {
        name: FieldSpec(is_non_negative_number, f"a non-negative {label}", required=False)
        for name, label in (
            ("hr_moderate", "heart rate"),
            ("hr_hard", "heart rate"),
            ("cpm_moderate", "calories per minute"),
            ("cpm_hard", "calories per minute"),
        )
    }


DEFAULT_THRESHOLDS = TierThresholds()


class ClassificationBasis(str, Enum):
    HEART_RATE = "heart_rate"
    CALORIES_PER_MINUTE = "calories_per_minute"

    @property
    def display_name(self) -> str:
        if self is ClassificationBasis.HEART_RATE:
            return "Heart Rate"
        return "Calories/min"


class EffortClassification(NamedTuple):
    tier: EffortTier
    basis: ClassificationBasis
    metric_value: float
    thresholds: TierThresholds


def _tier_for(value: float, moderate: float, hard: float) -> EffortTier:
    if value >= hard:
        return EffortTier.HARD
    if value >= moderate:
        return EffortTier.MODERATE
    return EffortTier.EASY


class EffortClassifier:
    """Turns a workout into a tier and the matching effort units."""

    def __init__(
        self,
        overrides: Optional[Mapping[WorkoutType, TierThresholds]] = None,
        *,
        default: TierThresholds = DEFAULT_THRESHOLDS,
    ) -> None:
        self._default = default
        self._overrides = MappingProxyType(
            {WorkoutType.from_value(key): value for key, value in (overrides or {}).items()}
        )

    def thresholds_for(self, workout_type: WorkoutType) -> TierThresholds:
        return self._overrides.get(WorkoutType.from_value(workout_type), self._default)

    def classify(self, record: WorkoutRecord) -> EffortClassification:
        thresholds = self.thresholds_for(record.type)
        if record.avg_heart_rate is not None:
            heart_rate = record.avg_heart_rate
            tier = _tier_for(heart_rate, thresholds.hr_moderate, thresholds.hr_hard)
            return EffortClassification(tier, ClassificationBasis.HEART_RATE, heart_rate, thresholds)
        minutes = max(1.0, record.duration_minutes)
        cpm = record.calories / minutes
        tier = _tier_for(cpm, thresholds.cpm_moderate, thresholds.cpm_hard)
        return EffortClassification(tier, ClassificationBasis.CALORIES_PER_MINUTE, cpm, thresholds)

    def efforts_for(self, record: WorkoutRecord) -> List[EffortUnit]:
        """Effort units earned by ``record``, stamped with its completion time."""

        tier = self.classify(record).tier
        return [
            EffortUnit(affinity=record.affinity, tier=tier, earned_at=record.completed_at)
            for _ in range(tier.unit_count)
        ]

    def threshold_lines(self, workout_type: WorkoutType, basis: ClassificationBasis) -> List[str]:
        thresholds = self.thresholds_for(workout_type)
        if basis is ClassificationBasis.HEART_RATE:
            return [
                f"Hard if Avg HR ≥ {thresholds.hr_hard:g} bpm",
                f"Moderate if Avg HR ≥ {thresholds.hr_moderate:g} bpm",
                "Easy otherwise",
            ]
        return [
            f"Hard if Calories/min ≥ {thresholds.cpm_hard:g}",
            f"Moderate if Calories/min ≥ {thresholds.cpm_moderate:g}",
            "Easy otherwise",
        ]


__all__ = [
    "ClassificationBasis",
    "DEFAULT_THRESHOLDS",
    "EffortClassification",
    "EffortClassifier",
    "TierThresholds",
]
