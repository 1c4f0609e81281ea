"""Backfill pending level-ups and claimed reward names."""

from __future__ import annotations

from typing import Any, MutableMapping

from stridequest.snapshot import upgrade_to_v3
from stridequest.storage import _read_toml, _write_toml


FROM_VERSION = 2
TO_VERSION = 3
DESCRIPTION = "Ensure saves track unspent level-ups and claimed reward names"


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
        player = payload.get("player")
        if not isinstance(player, MutableMapping):
            continue
        upgrade_to_v3(player)
        payload["schema_version"] = max(_stored_version(payload), TO_VERSION)
        _write_toml(path, payload)
        updated += 1

    if updated:
        context.log(f"upgraded {updated} save(s) to schema {TO_VERSION}")
