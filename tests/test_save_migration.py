import sys
from pathlib import Path
import importlib

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

import pytest
import tomllib

from stridequest.storage import (
    CollectionConfig,
    MigrationContext,
    MissingMigrationError,
    VersionManager,
    _write_toml,
)


def _saves_config(version: int = 3) -> CollectionConfig:
    return CollectionConfig(
        name="saves",
        path="savedata/saves/{key}.toml",
        version=version,
        version_scope="savedata",
        migration_key="saves",
    )


def _context(base: Path) -> MigrationContext:
    config = _saves_config()
    return MigrationContext(
        collection=config, base=base, scope_path=config.resolve_scope_path(base)
    )


def test_encounter_armor_migration_wraps_and_backfills(tmp_path: Path, capsys) -> None:
    migration = importlib.import_module("migrations.saves.0002_encounter_armor")

    save_dir = tmp_path / "savedata" / "saves"
    _write_toml(
        save_dir / "raw.toml",
        {"name": "Raw", "mana_by_attack_id": {"__mana_pool": 5}},
    )
    _write_toml(
        save_dir / "wrapped.toml",
        {"schema_version": 1, "player": {"name": "Wrapped", "notified_attack_ids": ["kn_sword_slash"]}},
    )

    migration.apply(_context(tmp_path))

    raw = tomllib.loads((save_dir / "raw.toml").read_text("utf8"))
    wrapped = tomllib.loads((save_dir / "wrapped.toml").read_text("utf8"))

    assert raw["schema_version"] == 2
    assert raw["player"]["name"] == "Raw"
    assert raw["player"]["mana_pool"] == 5
    assert raw["player"]["defeated_enemy_ids"] == []
    assert wrapped["player"]["notified_attack_ids"] == ["kn_sword_slash"]
    assert "upgraded 2 save(s) to schema 2" in capsys.readouterr().out


def test_level_up_migration_backfills_counters(tmp_path: Path) -> None:
    migration = importlib.import_module("migrations.saves.0003_level_ups_and_rewards")

    save_path = tmp_path / "savedata" / "saves" / "default.toml"
    _write_toml(save_path, {"schema_version": 2, "player": {"name": "Rowan", "unspent_level_ups": 2}})

    migration.apply(_context(tmp_path))

    payload = tomllib.loads(save_path.read_text("utf8"))
    assert payload["schema_version"] == 3
    assert payload["player"]["unspent_level_ups"] == 2
    assert payload["player"]["claimed_reward_names"] == []


def test_version_manager_reports_missing_steps(tmp_path: Path) -> None:
    manager = VersionManager(base=tmp_path, migrations_base=PROJECT_BASE / "migrations")

    with pytest.raises(MissingMigrationError):
        manager.ensure(_saves_config(version=9))


def test_migrations_never_lower_a_stored_schema_version(tmp_path: Path) -> None:
    armor = importlib.import_module("migrations.saves.0002_encounter_armor")
    rewards = importlib.import_module("migrations.saves.0003_level_ups_and_rewards")

    save_path = tmp_path / "savedata" / "saves" / "current.toml"
    _write_toml(
        save_path,
        {
            "schema_version": 3,
            "player": {"name": "Rowan", "unspent_level_ups": 1, "claimed_reward_names": ["Field Button"]},
        },
    )

    armor.apply(_context(tmp_path))
    assert tomllib.loads(save_path.read_text("utf8"))["schema_version"] == 3

    rewards.apply(_context(tmp_path))
    payload = tomllib.loads(save_path.read_text("utf8"))
    assert payload["schema_version"] == 3
    assert payload["player"]["claimed_reward_names"] == ["Field Button"]
    assert payload["player"]["unspent_level_ups"] == 1
