"""Mana pool rules: caps, intensity-scaled regeneration and spending."""

from __future__ import annotations

import math
import time

from .constants import EFFORT_WINDOW_SECONDS
from .models.players import PlayerProgress
from .models.progression import IntensityTier, LevelTable


def intensity_tier(weekly_effort_count: int) -> IntensityTier:
    return IntensityTier.for_weekly_count(weekly_effort_count)


def weekly_effort_total(
    player: PlayerProgress,
    *,
    now: float | None = None,
    window: float = EFFORT_WINDOW_SECONDS,
) -> int:
    timestamp = float(now) if now is not None else time.time()
    return player.total_efforts(since=timestamp - window)


def regen_amount(base: int, multiplier: float) -> int:
    """Mana gained for one workout. At least 1 whenever ``base`` is positive."""

    if base <= 0:
        return 0
    return max(1, int(math.floor(base * multiplier)))


def mana_capacity(player: PlayerProgress, table: LevelTable) -> int:
    return table.mana_cap(player.level)


def ensure_player_mana(player: PlayerProgress, table: LevelTable) -> int:
    """Clamp ``player``'s pool to the cap for their current level."""

    capacity = mana_capacity(player, table)
    player.sync_mana(capacity)
    return capacity


def regen_on_workout(
    player: PlayerProgress,
    table: LevelTable,
    *,
    now: float | None = None,
    window: float = EFFORT_WINDOW_SECONDS,
) -> int:
    """Replenish the pool for one workout and return the mana actually added."""

    base = table.mana_per_workout(player.level)
    tier = intensity_tier(weekly_effort_total(player, now=now, window=window))
    gain = regen_amount(base, tier.multiplier)
    if gain <= 0:
        return 0
    capacity = mana_capacity(player, table)
    before = player.mana_pool
    player.mana_pool = min(capacity, before + gain)
    return max(0, player.mana_pool - before)


def spend_mana(player: PlayerProgress, amount: int) -> bool:
    return player.consume_mana(amount)


__all__ = [
    "ensure_player_mana",
    "intensity_tier",
    "mana_capacity",
    "regen_amount",
    "regen_on_workout",
    "spend_mana",
    "weekly_effort_total",
]
