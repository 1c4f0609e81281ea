"""Shared constants used across the progression core and its storage."""

from __future__ import annotations

# Oldest effort units are dropped once the ledger grows past this many entries.
EFFORT_RETENTION_CAP = 500

# Rolling window used for weekly effort counts (intensity tier and attack
# modifiers).
EFFORT_WINDOW_DAYS = 7
SECONDS_PER_DAY = 24 * 60 * 60
EFFORT_WINDOW_SECONDS = EFFORT_WINDOW_DAYS * SECONDS_PER_DAY

# Cycling distance only counts for half toward quest area unlocks.
CYCLE_DISTANCE_CREDIT = 0.5

# Older saves kept the mana pool inside the per-attack mana mapping.
LEGACY_MANA_POOL_KEY = "__mana_pool"

SNAPSHOT_SCHEMA_VERSION = 3

DEFAULT_SAVE_KEY = "default"


__all__ = [
    "CYCLE_DISTANCE_CREDIT",
    "DEFAULT_SAVE_KEY",
    "EFFORT_RETENTION_CAP",
    "EFFORT_WINDOW_DAYS",
    "EFFORT_WINDOW_SECONDS",
    "LEGACY_MANA_POOL_KEY",
    "SECONDS_PER_DAY",
    "SNAPSHOT_SCHEMA_VERSION",
]
