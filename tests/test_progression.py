from __future__ import annotations

import math
import sys
from pathlib import Path

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from stridequest.models._validation import ModelValidationError
from stridequest.models.combat import Affinity
from stridequest.models.players import PlayerProgress
from stridequest.models.progression import (
    IntensityTier,
    LevelProgressionRow,
    LevelTable,
    LevelUpSnapshot,
)
from stridequest.models.workout import EffortTier, EffortUnit
from stridequest.snapshot import dump_snapshot


def test_level_up_keeps_overflow_experience() -> None:
    table = LevelTable()
    player = PlayerProgress(experience=1400)

    level_ups = player.apply_workout("w1", 200, 0.0, table)

    assert level_ups == 1
    assert player.level == 2
    assert player.experience == pytest.approx(100)


def test_apply_workout_is_idempotent() -> None:
    table = LevelTable()
    player = PlayerProgress()

    player.apply_workout("w1", 300, 2.5, table)
    once = dump_snapshot(player)
    repeated = player.apply_workout("w1", 300, 2.5, table)

    assert repeated == 0
    assert dump_snapshot(player) == once
    assert player.applied_workout_ids == ["w1"]
    assert player.distance_progress == pytest.approx(2.5)


def test_large_grant_crosses_several_levels() -> None:
    table = LevelTable()
    player = PlayerProgress()

    level_ups = player.add_xp(3000, table)

    assert level_ups == 2
    assert player.level == 3
    assert player.experience == pytest.approx(0)


def test_max_level_accumulates_without_levelling() -> None:
    table = LevelTable()
    player = PlayerProgress(level=11)

    assert player.add_xp(10_000, table) == 0
    assert player.level == 11
    assert player.experience == pytest.approx(10_000)
    assert math.isinf(table.xp_to_next_level(11))
    assert player.xp_progress(table) == pytest.approx(1.0)


def test_xp_progress_fraction() -> None:
    table = LevelTable()
    player = PlayerProgress(experience=750)

    assert player.xp_progress(table) == pytest.approx(0.5)


def test_level_lookup_clamps_out_of_range_levels() -> None:
    table = LevelTable()

    assert table.row(0).level == 1
    assert table.row(99).level == 11
    assert table.mana_cap(99) == 50
    assert table.mana_per_workout(3) == 5


def test_level_table_rejects_gaps() -> None:
    with pytest.raises(ValueError):
        LevelTable([LevelProgressionRow(1, 4, 20, 0), LevelProgressionRow(3, 5, 30, 1500)])


def test_level_rows_are_validated() -> None:
    with pytest.raises(ModelValidationError):
        LevelTable.from_rows([{"level": 1, "mana_per_workout": "four", "mana_cap": 20}])

    table = LevelTable.from_rows(
        [
            {"level": 1, "mana_per_workout": 2, "mana_cap": 10},
            {"level": 2, "mana_per_workout": 3, "mana_cap": 12, "xp_to_reach_level": 100},
        ]
    )
    assert table.max_level == 2
    assert table.xp_to_next_level(1) == pytest.approx(100)


@pytest.mark.parametrize(
    ("count", "tier"),
    [
        (0, IntensityTier.STARTING),
        (3, IntensityTier.STARTING),
        (4, IntensityTier.ESTABLISHING),
        (8, IntensityTier.CONSISTENT),
        (12, IntensityTier.CONSISTENT),
        (13, IntensityTier.COMMITTED),
        (19, IntensityTier.HIGHLY_ACTIVE),
        (26, IntensityTier.ATHLETE),
        (400, IntensityTier.ATHLETE),
    ],
)
def test_intensity_tier_bands(count: int, tier: IntensityTier) -> None:
    assert IntensityTier.for_weekly_count(count) is tier


def test_intensity_tier_metadata() -> None:
    assert IntensityTier.CONSISTENT.multiplier == pytest.approx(1.4)
    assert IntensityTier.HIGHLY_ACTIVE.display_name == "Highly Active"


def test_level_up_snapshot_reads_the_table() -> None:
    snapshot = LevelUpSnapshot.for_level(LevelTable(), 2)

    assert snapshot.new_level == 2
    assert snapshot.mana_per_workout == 4
    assert snapshot.mana_cap == 24
    assert snapshot.xp_to_next_level == pytest.approx(1500)


def test_effort_ledger_trims_oldest_entries() -> None:
    player = PlayerProgress()
    efforts = [EffortUnit(Affinity.RHYTHM, EffortTier.EASY, float(index)) for index in range(505)]

    player.add_efforts(efforts, max_stored=500)

    assert len(player.efforts) == 500
    assert player.efforts[0].earned_at == pytest.approx(5.0)
    assert player.efforts[-1].earned_at == pytest.approx(504.0)


def test_effort_counts_respect_the_since_cutoff() -> None:
    player = PlayerProgress(
        efforts=[
            EffortUnit(Affinity.FORCE, EffortTier.HARD, 10.0),
            EffortUnit(Affinity.FORCE, EffortTier.HARD, 100.0),
            EffortUnit(Affinity.RHYTHM, EffortTier.EASY, 100.0),
        ]
    )

    counts = player.effort_counts(since=50.0)

    assert counts[Affinity.FORCE] == 1
    assert counts[Affinity.RHYTHM] == 1
    assert counts[Affinity.PRECISION] == 0
    assert player.effort_count(Affinity.FORCE) == 2
    assert player.total_efforts(since=50.0) == 2


def test_player_normalises_stored_values() -> None:
    player = PlayerProgress(
        level="3",
        experience=-20,
        mana_pool="oops",
        player_class="WIZARD",
        species="dragon",
        applied_workout_ids=["a", "b", "a"],
        notified_attack_ids=["x", "x"],
    )

    assert player.level == 3
    assert player.experience == 0
    assert player.mana_pool == 0
    assert player.player_class.value == "wizard"
    assert player.species.value == "human"
    assert player.applied_workout_ids == ["a", "b"]
    assert player.notified_attack_ids == {"x"}
