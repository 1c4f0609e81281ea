from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

import tomllib

from stridequest.game import GameState
from stridequest.models.players import PlayerProgress
from stridequest.models.workout import WorkoutRecord
from stridequest.models.world import QuestAreaProgress
from stridequest.storage import DataStore, _write_toml


def _store(tmp_path: Path) -> DataStore:
    return DataStore(root=tmp_path, package_root=PROJECT_BASE)


def test_save_and_load_round_trip_through_toml(tmp_path: Path) -> None:
    store = _store(tmp_path)
    state = GameState(repository=store)
    state.create_character("Rowan", player_class="wizard")
    state.apply_workout(
        WorkoutRecord("w1", "run", calories=320, distance_miles=3.1, avg_heart_rate=151, completed_at=100),
        now=200,
    )
    state.player.set_progress("Cave", QuestAreaProgress(current_enemy_index=1, current_enemy_armor=[]))
    state.save()

    restored = _store(tmp_path).load()

    assert restored == state.player
    assert restored.quest_progress["Cave"].current_enemy_armor == []
    assert (tmp_path / "savedata" / "saves" / "default.toml").exists()


def test_schema_version_is_recorded(tmp_path: Path) -> None:
    store = _store(tmp_path)

    store.save("default", PlayerProgress(name="Rowan"))

    versions = tomllib.loads((tmp_path / "savedata" / "schema_version.toml").read_text("utf8"))
    assert versions == {"collections": {"saves": 3}}


def test_missing_save_loads_a_fresh_player(tmp_path: Path) -> None:
    assert _store(tmp_path).load("nobody") == PlayerProgress()


def test_corrupt_save_loads_fresh_and_stays_on_disk(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.save("slot", PlayerProgress(name="Rowan"))
    path = tmp_path / "savedata" / "saves" / "slot.toml"
    contents = 'schema_version = 3\nplayer = "not a table"\n'
    path.write_text(contents, encoding="utf8")

    player = store.load("slot")

    assert player == PlayerProgress()
    assert path.read_text(encoding="utf8") == contents


def test_save_from_newer_schema_is_not_deleted(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    store = _store(tmp_path)
    store.save("slot", PlayerProgress(name="Rowan"))
    path = tmp_path / "savedata" / "saves" / "slot.toml"
    _write_toml(path, {"schema_version": 4, "player": {"name": "Future Rowan", "level": 3}})

    with caplog.at_level(logging.WARNING, logger="stridequest.storage"):
        player = store.load("slot")

    assert player == PlayerProgress()
    assert "newer than supported" in caplog.text
    assert tomllib.loads(path.read_text("utf8"))["player"]["name"] == "Future Rowan"


def test_keys_are_quoted_on_disk_and_listed_back(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.save("team a/1", PlayerProgress(name="Quoted"))

    records = store.get("saves")

    assert list(records) == ["team a/1"]
    assert records["team a/1"]["player"]["name"] == "Quoted"
    assert store.load("team a/1").name == "Quoted"


def test_clear_removes_the_save(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.save("default", PlayerProgress(name="Rowan"))

    store.clear()
    store.clear()

    assert store.get_record("saves", "default") is None


def test_unknown_collection_raises(tmp_path: Path) -> None:
    with pytest.raises(KeyError):
        _store(tmp_path).get("worlds")


def test_legacy_save_is_migrated_on_first_access(tmp_path: Path) -> None:
    legacy_path = tmp_path / "savedata" / "saves" / "default.toml"
    _write_toml(
        legacy_path,
        {
            "name": "Old Timer",
            "level": 2,
            "experience": 15.0,
            "mana_by_attack_id": {"__mana_pool": 7},
        },
    )

    player = _store(tmp_path).load()

    assert player.name == "Old Timer"
    assert player.mana_pool == 7
    migrated = tomllib.loads(legacy_path.read_text("utf8"))
    assert migrated["schema_version"] == 3
    assert migrated["player"]["unspent_level_ups"] == 0
    assert "mana_by_attack_id" not in migrated["player"]
