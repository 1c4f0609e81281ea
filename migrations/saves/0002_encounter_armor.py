"""Wrap legacy saves and backfill trophy and notification ledgers."""

from __future__ import annotations

from typing import Any, MutableMapping

from stridequest.constants import LEGACY_MANA_POOL_KEY
from stridequest.snapshot import upgrade_to_v2
from stridequest.storage import _read_toml, _write_toml


FROM_VERSION = 1
TO_VERSION = 2
DESCRIPTION = "Wrap raw player saves and add defeated enemy and notified attack ids"


def _player_section(payload: MutableMapping[str, Any]) -> MutableMapping[str, Any] | None:
    player = payload.get("player")
    if isinstance(player, MutableMapping):
        return player
    if "schema_version" in payload:
        return None
    # Legacy layout: player fields at the top level of the document.
    player = dict(payload)
    payload.clear()
    payload["player"] = player
    return player


def _stored_version(payload: MutableMapping[str, Any]) -> int:
    try:
        return int(payload.get("schema_version", 0))
    except (TypeError, ValueError):
        return 0


def apply(context) -> None:  # type: ignore[override]
    updated = 0
    for path in context.record_paths():
        payload = _read_toml(path)
        if not isinstance(payload, MutableMapping):
            continue
        player = _player_section(payload)
        if player is None:
            continue
        legacy_mana = player.pop("mana_by_attack_id", None)
        if "mana_pool" not in player and isinstance(legacy_mana, MutableMapping):
            if LEGACY_MANA_POOL_KEY in legacy_mana:
                player["mana_pool"] = legacy_mana[LEGACY_MANA_POOL_KEY]
        upgrade_to_v2(player)
        payload["schema_version"] = max(_stored_version(payload), TO_VERSION)
        _write_toml(path, payload)
        updated += 1

    if updated:
        context.log(f"upgraded {updated} save(s) to schema {TO_VERSION}")
