"""Versioned save snapshots for :class:`PlayerProgress`.

A snapshot is ``{"schema_version": N, "player": {...}}``. Each schema bump
only adds fields; the upgrade steps below fill in their defaults so older
saves always load. Payloads without the wrapper are the legacy layout in
which the player fields sat at the top level.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, MutableMapping

from .constants import LEGACY_MANA_POOL_KEY, SNAPSHOT_SCHEMA_VERSION
from .models.players import PlayerProgress

log = logging.getLogger(__name__)


class SnapshotDecodeError(ValueError):
    """Raised when a stored payload cannot be turned back into a player."""


def upgrade_to_v2(player: MutableMapping[str, Any]) -> None:
    # Quest progress gained ``current_enemy_armor`` in v2. It stays absent
    # here so a partially damaged enemy keeps its catalog armor.
    player.setdefault("quest_progress", {})
    player.setdefault("defeated_enemy_ids", [])
    player.setdefault("notified_attack_ids", [])


def upgrade_to_v3(player: MutableMapping[str, Any]) -> None:
    player.setdefault("unspent_level_ups", 0)
    player.setdefault("claimed_reward_names", [])


_UPGRADES: Dict[int, Callable[[MutableMapping[str, Any]], None]] = {
    1: upgrade_to_v2,
    2: upgrade_to_v3,
}


def upgrade_player_payload(player: MutableMapping[str, Any], from_version: int) -> int:
    """Apply upgrade steps in place and return the resulting schema version."""

    version = max(1, from_version)
    while version < SNAPSHOT_SCHEMA_VERSION:
        _UPGRADES[version](player)
        version += 1
    return version


def _legacy_mana(player: MutableMapping[str, Any]) -> None:
    legacy = player.pop("mana_by_attack_id", None)
    if "mana_pool" in player or not isinstance(legacy, Mapping):
        return
    if LEGACY_MANA_POOL_KEY in legacy:
        player["mana_pool"] = legacy[LEGACY_MANA_POOL_KEY]


_PLAYER_FIELDS = (
    "name",
    "species",
    "player_class",
    "level",
    "experience",
    "distance_progress",
    "mana_pool",
    "unspent_level_ups",
    "efforts",
    "applied_workout_ids",
    "notified_attack_ids",
    "quest_progress",
    "defeated_enemy_ids",
    "claimed_reward_names",
)


def decode_snapshot(payload: Mapping[str, Any]) -> PlayerProgress:
    """Rebuild a player from ``payload``, raising :class:`SnapshotDecodeError`."""

    if not isinstance(payload, Mapping):
        raise SnapshotDecodeError("snapshot must be a mapping")
    try:
        if "player" in payload:
            version = int(payload.get("schema_version", 1))
            player = dict(payload["player"])
        else:
            version = 1
            player = dict(payload)
        if version > SNAPSHOT_SCHEMA_VERSION:
            raise SnapshotDecodeError(
                f"snapshot schema {version} is newer than supported {SNAPSHOT_SCHEMA_VERSION}"
            )
        _legacy_mana(player)
        upgrade_player_payload(player, version)
        fields = {name: player[name] for name in _PLAYER_FIELDS if name in player}
        return PlayerProgress(**fields)
    except SnapshotDecodeError:
        raise
    except (TypeError, ValueError, KeyError, AttributeError) as exc:
        raise SnapshotDecodeError(str(exc)) from exc


def load_snapshot(payload: Mapping[str, Any] | None) -> PlayerProgress:
    """Fail-soft variant of :func:`decode_snapshot` that never raises."""

    if payload is None:
        return PlayerProgress()
    try:
        return decode_snapshot(payload)
    except SnapshotDecodeError as exc:
        log.warning("Discarding unreadable save snapshot: %s", exc)
        return PlayerProgress()


def dump_snapshot(player: PlayerProgress) -> Dict[str, Any]:
    return {
        "schema_version": SNAPSHOT_SCHEMA_VERSION,
        "player": {
            "name": player.name,
            "species": player.species.value,
            "player_class": player.player_class.value,
            "level": player.level,
            "experience": player.experience,
            "distance_progress": player.distance_progress,
            "mana_pool": player.mana_pool,
            "unspent_level_ups": player.unspent_level_ups,
            "efforts": [effort.to_dict() for effort in player.efforts],
            "applied_workout_ids": list(player.applied_workout_ids),
            "notified_attack_ids": sorted(player.notified_attack_ids),
            "quest_progress": {
                name: progress.to_dict() for name, progress in player.quest_progress.items()
            },
            "defeated_enemy_ids": sorted(player.defeated_enemy_ids),
            "claimed_reward_names": sorted(player.claimed_reward_names),
        },
    }


__all__ = [
    "SnapshotDecodeError",
    "decode_snapshot",
    "dump_snapshot",
    "load_snapshot",
    "upgrade_player_payload",
    "upgrade_to_v2",
    "upgrade_to_v3",
]
