from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from stridequest.effort import (
    ClassificationBasis,
    EffortClassifier,
    TierThresholds,
)
from stridequest.models._validation import ModelValidationError
from stridequest.models.combat import Affinity
from stridequest.models.workout import (
    EffortTier,
    WorkoutRecord,
    WorkoutType,
    affinity_for_workout,
    chronological,
)


def _record(key: str = "w1", workout_type: str = "run", **kwargs) -> WorkoutRecord:
    return WorkoutRecord(key=key, type=workout_type, **kwargs)


def test_heart_rate_drives_tier_when_present() -> None:
    classifier = EffortClassifier()

    hard = classifier.classify(_record(calories=300, duration_minutes=30, avg_heart_rate=155))
    moderate = classifier.classify(_record(avg_heart_rate=120))
    easy = classifier.classify(_record(avg_heart_rate=119.5))

    assert hard.tier is EffortTier.HARD
    assert hard.basis is ClassificationBasis.HEART_RATE
    assert hard.metric_value == pytest.approx(155)
    assert moderate.tier is EffortTier.MODERATE
    assert easy.tier is EffortTier.EASY


def test_heart_rate_takes_precedence_over_calorie_rate() -> None:
    classifier = EffortClassifier()

    result = classifier.classify(_record(calories=1000, duration_minutes=10, avg_heart_rate=100))

    assert result.tier is EffortTier.EASY
    assert result.basis is ClassificationBasis.HEART_RATE


def test_calories_per_minute_fallback() -> None:
    classifier = EffortClassifier()

    moderate = classifier.classify(_record(calories=180, duration_minutes=30))
    hard = classifier.classify(_record(calories=360, duration_minutes=30))

    assert moderate.basis is ClassificationBasis.CALORIES_PER_MINUTE
    assert moderate.metric_value == pytest.approx(6.0)
    assert moderate.tier is EffortTier.MODERATE
    assert hard.tier is EffortTier.HARD


def test_zero_duration_is_treated_as_one_minute() -> None:
    classifier = EffortClassifier()

    result = classifier.classify(_record(calories=5, duration_minutes=0))

    assert result.metric_value == pytest.approx(5.0)
    assert result.tier is EffortTier.EASY


def test_per_type_threshold_override() -> None:
    classifier = EffortClassifier({WorkoutType.WALK: TierThresholds(hr_moderate=100, hr_hard=130)})

    walk = classifier.classify(_record(workout_type="walk", avg_heart_rate=110))
    run = classifier.classify(_record(workout_type="run", avg_heart_rate=110))

    assert walk.tier is EffortTier.MODERATE
    assert run.tier is EffortTier.EASY
    assert classifier.thresholds_for("walking").hr_hard == pytest.approx(130)


def test_efforts_for_stamps_affinity_tier_and_time() -> None:
    classifier = EffortClassifier()
    record = _record(workout_type="strength", calories=360, duration_minutes=30, completed_at=1_700_000_000)

    efforts = classifier.efforts_for(record)

    assert len(efforts) == 3
    assert {effort.affinity for effort in efforts} == {Affinity.FORCE}
    assert {effort.tier for effort in efforts} == {EffortTier.HARD}
    assert all(effort.earned_at == pytest.approx(1_700_000_000) for effort in efforts)


@pytest.mark.parametrize(
    ("workout_type", "affinity"),
    [
        ("walk", Affinity.RHYTHM),
        ("run", Affinity.ENDURANCE),
        ("cycling", Affinity.ENDURANCE),
        ("strength", Affinity.FORCE),
        ("yoga", Affinity.PRECISION),
    ],
)
def test_workout_type_affinity_table(workout_type: str, affinity: Affinity) -> None:
    assert affinity_for_workout(workout_type) is affinity


def test_threshold_lines_describe_the_basis() -> None:
    classifier = EffortClassifier()

    heart_rate = classifier.threshold_lines(WorkoutType.RUN, ClassificationBasis.HEART_RATE)
    calories = classifier.threshold_lines(WorkoutType.RUN, ClassificationBasis.CALORIES_PER_MINUTE)

    assert heart_rate == [
        "Hard if Avg HR ≥ 150 bpm",
        "Moderate if Avg HR ≥ 120 bpm",
        "Easy otherwise",
    ]
    assert calories[0] == "Hard if Calories/min ≥ 12"
    assert ClassificationBasis.CALORIES_PER_MINUTE.display_name == "Calories/min"


def test_threshold_payload_is_validated() -> None:
    with pytest.raises(ModelValidationError) as excinfo:
        TierThresholds.from_dict({"hr_hard": -5})

    assert "hr_hard" in str(excinfo.value)
    assert TierThresholds.from_dict({"cpm_hard": 10}).cpm_hard == pytest.approx(10)


def test_workout_record_from_dict_accepts_aliases_and_datetimes() -> None:
    record = WorkoutRecord.from_dict(
        {
            "id": "abc",
            "workout_type": "cycling",
            "calories": 199.6,
            "distance": 10,
            "minutes": 40,
            "heart_rate": 131,
            "completed_at": datetime(2024, 1, 1),
        }
    )

    assert record.key == "abc"
    assert record.type is WorkoutType.CYCLE
    assert record.experience == 200
    assert record.credited_distance == pytest.approx(5.0)
    assert record.avg_heart_rate == pytest.approx(131)
    assert record.completed_at == pytest.approx(
        datetime(2024, 1, 1, tzinfo=timezone.utc).timestamp()
    )


def test_workout_record_clamps_negative_values() -> None:
    record = WorkoutRecord(key="neg", type="run", calories=-50, distance_miles=-2)

    assert record.calories == 0
    assert record.distance_miles == 0
    assert record.experience == 0


def test_chronological_orders_by_time_then_key() -> None:
    records = [
        _record("b", completed_at=20),
        _record("c", completed_at=10),
        _record("a", completed_at=20),
    ]

    assert [record.key for record in chronological(records)] == ["c", "a", "b"]
