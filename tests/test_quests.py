from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from stridequest.models._validation import ModelValidationError
from stridequest.models.combat import ArmorSegment, ArmorType, EffectiveAttack, EnemyCombatant
from stridequest.models.players import PlayerProgress
from stridequest.models.rejections import ValidationRejection
from stridequest.models.world import QuestArea, QuestAreaProgress
from stridequest.quests import QuestPhase, QuestTracker


def _areas() -> list[QuestArea]:
    meadow = QuestArea(
        "Meadow",
        [
            EnemyCombatant("sprout", "Angry Sprout", 3),
            EnemyCombatant(
                "hedgehog",
                "Hedgehog",
                4,
                armor=[ArmorSegment(ArmorType.STABILITY, 2)],
                narrative={"defeat": "The hedgehog curls up and rolls away."},
            ),
        ],
        unlock_miles=0,
        reward_xp=100,
    )
    peak = QuestArea("Peak", [EnemyCombatant("goat", "Goat", 5)], unlock_miles=10, reward_xp=200)
    return [meadow, peak]


def _hit(hp: int = 0, armor: int = 0, cost: int = 1) -> EffectiveAttack:
    return EffectiveAttack(mana_cost=cost, hp_removed=hp, armor_removed=armor)


def test_insufficient_mana_does_not_touch_progress() -> None:
    tracker = QuestTracker(_areas())
    player = PlayerProgress(mana_pool=0)

    resolution = tracker.resolve_attack(player, "Meadow", _hit(hp=5, cost=2))

    assert resolution.rejection is ValidationRejection.INSUFFICIENT_MANA
    assert resolution.mana_spent == 0
    assert player.quest_progress == {}
    assert tracker.encounter_state(player, "Meadow").enemy.hp == 3


def test_defeat_advances_to_next_enemy() -> None:
    tracker = QuestTracker(_areas())
    player = PlayerProgress(mana_pool=10)

    resolution = tracker.resolve_attack(player, "Meadow", _hit(hp=5, cost=2))

    assert resolution.enemy_defeated is True
    assert resolution.quest_completed is False
    assert player.mana_pool == 8
    assert player.defeated_enemy_ids == {"sprout"}
    assert player.quest_progress["Meadow"].current_enemy_index == 1
    assert tracker.encounter_state(player, "Meadow").enemy.key == "hedgehog"


def test_partial_damage_is_persisted_and_survives_a_new_tracker() -> None:
    tracker = QuestTracker(_areas())
    player = PlayerProgress(
        mana_pool=10, quest_progress={"Meadow": QuestAreaProgress(current_enemy_index=1)}
    )

    tracker.resolve_attack(player, "Meadow", _hit(armor=1))

    progress = player.quest_progress["Meadow"]
    assert progress.current_enemy_hp == 4
    assert [segment.value for segment in progress.current_enemy_armor] == [1]

    rebuilt = QuestTracker(_areas()).encounter_state(player, "Meadow")
    assert rebuilt.enemy.armor_remaining == 1
    # The catalog enemy keeps its original armor.
    assert _areas()[0].enemies[1].armor_remaining == 2


def test_last_defeat_completes_the_area() -> None:
    tracker = QuestTracker(_areas())
    player = PlayerProgress(
        mana_pool=10, quest_progress={"Meadow": QuestAreaProgress(current_enemy_index=1)}
    )

    resolution = tracker.resolve_attack(player, "Meadow", _hit(hp=4, armor=2))

    assert resolution.enemy_defeated is True
    assert resolution.quest_completed is True
    assert resolution.message == "The hedgehog curls up and rolls away."
    assert player.quest_progress["Meadow"].completed is True
    assert tracker.encounter_state(player, "Meadow") is None

    again = tracker.resolve_attack(player, "Meadow", _hit(hp=1))
    assert again.rejection is ValidationRejection.QUEST_COMPLETED
    assert player.mana_pool == 9


def test_quest_index_and_latches_never_regress() -> None:
    tracker = QuestTracker(_areas())
    player = PlayerProgress(mana_pool=3)
    attacks = [_hit(hp=3), _hit(hp=1), _hit(armor=2), _hit(hp=9), _hit(hp=1)]
    indices = []

    for attack in attacks:
        tracker.resolve_attack(player, "Meadow", attack)
        indices.append(player.progress_for("Meadow").current_enemy_index)
        player.mana_pool = 3

    assert indices == sorted(indices)
    assert indices[-1] == 2
    assert player.progress_for("Meadow").completed is True
    tracker.claim_reward(player, "Meadow")
    tracker.resolve_attack(player, "Meadow", _hit(hp=1))
    assert player.progress_for("Meadow").reward_claimed is True


def test_locked_area_refuses_attacks_until_distance_is_reached() -> None:
    tracker = QuestTracker(_areas())
    player = PlayerProgress(mana_pool=10, distance_progress=9.5)

    assert tracker.phase(player, "Peak") is QuestPhase.LOCKED
    assert tracker.resolve_attack(player, "Peak", _hit(hp=1)).rejection is (
        ValidationRejection.QUEST_LOCKED
    )
    assert player.mana_pool == 10

    player.distance_progress = 10.0
    assert tracker.phase(player, "Peak") is QuestPhase.ACTIVE
    assert tracker.resolve_attack(player, "Peak", _hit(hp=1)).rejection is None


def test_unknown_area_is_rejected() -> None:
    tracker = QuestTracker(_areas())

    resolution = tracker.resolve_attack(PlayerProgress(mana_pool=5), "Moon", _hit(hp=1))

    assert resolution.rejection is ValidationRejection.UNKNOWN_AREA
    assert resolution.message == "Unknown quest area."


def test_reward_can_only_be_claimed_once_after_completion() -> None:
    tracker = QuestTracker(_areas())
    player = PlayerProgress()

    assert tracker.claim_reward(player, "Meadow").rejection is ValidationRejection.REWARD_NOT_READY

    player.set_progress("Meadow", QuestAreaProgress(current_enemy_index=2, completed=True))
    claim = tracker.claim_reward(player, "Meadow")

    assert claim.claimed is True
    assert claim.reward_name == "Meadow Button"
    assert claim.reward_xp == 100
    assert player.claimed_reward_names == {"Meadow Button"}
    assert tracker.phase(player, "Meadow") is QuestPhase.CLAIMED

    second = tracker.claim_reward(player, "Meadow")
    assert second.rejection is ValidationRejection.REWARD_ALREADY_CLAIMED


def test_summary_text_follows_progress() -> None:
    tracker = QuestTracker(_areas())
    player = PlayerProgress()

    assert tracker.summary_text(player, "Meadow") == "Enemy 1/2"

    player.set_progress("Meadow", QuestAreaProgress(current_enemy_index=1))
    assert tracker.summary_text(player, "Meadow") == "Enemy 2/2"

    player.set_progress("Meadow", QuestAreaProgress(current_enemy_index=2, completed=True))
    assert tracker.summary_text(player, "Meadow") == "Completed (Reward Ready)"

    tracker.claim_reward(player, "Meadow")
    assert tracker.summary_text(player, "Meadow") == "Completed (Reward Claimed)"


def test_trophies_follow_catalog_order() -> None:
    tracker = QuestTracker(_areas())
    player = PlayerProgress(defeated_enemy_ids={"goat", "sprout"})

    assert [enemy.key for enemy in tracker.trophies(player)] == ["sprout", "goat"]


def test_progress_record_clamps_and_round_trips() -> None:
    progress = QuestAreaProgress(current_enemy_index=-3, current_enemy_hp=-1, reward_claimed=True)

    assert progress.current_enemy_index == 0
    assert progress.current_enemy_hp == 0
    assert progress.reward_claimed is False
    assert "current_enemy_armor" not in progress.to_dict()

    restored = QuestAreaProgress.from_dict(
        {"current_enemy_index": 1, "current_enemy_armor": [{"kind": "pattern", "amount": 2}]}
    )
    assert restored.current_enemy_armor == [ArmorSegment(ArmorType.PATTERN, 2)]


def test_area_payload_requires_enemies() -> None:
    with pytest.raises(ModelValidationError):
        QuestArea.from_dict({"name": "Void", "enemies": []})

    area = QuestArea.from_dict(
        {"name": "Dunes", "unlock_miles": 3.5, "enemies": [{"id": "worm", "name": "Worm", "hp": 4}]}
    )
    assert area.reward_name == "Dunes Button"
    assert area.enemies[0].key == "worm"
