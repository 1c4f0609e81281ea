"""Resolve static attack definitions into effort-scaled effective attacks."""

from __future__ import annotations

import time
from typing import Iterable, List, Mapping, Optional, Sequence

from .constants import EFFORT_WINDOW_SECONDS
from .models.combat import (
    AddArmorByEffort,
    AddHPByEffort,
    Affinity,
    AttackDefinition,
    EffectiveAttack,
    ManaDiscountByEffort,
    effect_totals,
)
from .models.players import PlayerProgress
from .models.rejections import ValidationRejection


def weekly_effort_counts(
    player: PlayerProgress,
    *,
    now: float | None = None,
    window: float = EFFORT_WINDOW_SECONDS,
) -> dict[Affinity, int]:
    """Per-affinity effort counts earned within the trailing window."""

    timestamp = float(now) if now is not None else time.time()
    return player.effort_counts(since=timestamp - window)


def effective_attack(
    attack: AttackDefinition, weekly_counts: Mapping[Affinity, int]
) -> EffectiveAttack:
    """Fold ``attack``'s modifiers, in declared order, into a single result.

    Pure: safe to call for previews as well as for actual resolution.
    """

    mana = max(0, attack.base_mana_cost)
    hp, armor = effect_totals(attack.effects)

    def _count(affinity: Affinity) -> int:
        return max(0, int(weekly_counts.get(affinity, 0)))

    for modifier in attack.modifiers:
        if isinstance(modifier, ManaDiscountByEffort):
            discount = _count(modifier.affinity) // max(1, modifier.every)
            mana = max(max(0, modifier.min_cost), mana - discount)
        elif isinstance(modifier, AddHPByEffort):
            hp += max(0, _count(modifier.affinity) * modifier.per_effort)
        elif isinstance(modifier, AddArmorByEffort):
            armor += max(0, _count(modifier.affinity) * modifier.per_effort)
        else:
            raise TypeError(f"Unsupported attack modifier: {modifier!r}")

    return EffectiveAttack(mana_cost=mana, hp_removed=hp, armor_removed=armor)


def known_attacks(attacks: Iterable[AttackDefinition], level: int) -> List[AttackDefinition]:
    """Attacks available at ``level``, ordered by required level then name."""

    return sorted(
        (attack for attack in attacks if attack.required_level <= level),
        key=lambda attack: (attack.required_level, attack.name),
    )


def check_requirements(
    attack: AttackDefinition, player: PlayerProgress
) -> Optional[ValidationRejection]:
    """Return why ``player`` cannot use ``attack``, or ``None`` if they can."""

    if player.level < attack.required_level:
        return ValidationRejection.LEVEL_TOO_LOW
    for gate in attack.requirements:
        if player.effort_count(gate.affinity) < gate.min_count:
            return ValidationRejection.REQUIREMENTS_NOT_MET
    return None


def usable_attacks(
    attacks: Sequence[AttackDefinition], player: PlayerProgress
) -> List[AttackDefinition]:
    return [
        attack
        for attack in known_attacks(attacks, player.level)
        if check_requirements(attack, player) is None
    ]


def newly_usable_attacks(
    attacks: Sequence[AttackDefinition], player: PlayerProgress
) -> List[AttackDefinition]:
    """Usable attacks the player has not been told about yet.

    Nothing is reported before the player has a name, so attacks unlocked
    during character creation are announced once creation finishes.
    """

    if not player.has_identity:
        return []
    return [
        attack
        for attack in usable_attacks(attacks, player)
        if attack.key not in player.notified_attack_ids
    ]


__all__ = [
    "check_requirements",
    "effective_attack",
    "known_attacks",
    "newly_usable_attacks",
    "usable_attacks",
    "weekly_effort_counts",
]
