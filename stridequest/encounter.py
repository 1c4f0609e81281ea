"""Deterministic combat resolution for a single attack against one enemy."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, NamedTuple, Tuple, Union

from .models.combat import ArmorSegment, EffectiveAttack, EncounterState, total_armor
from .models.rejections import ValidationRejection


ARMOR_BLOCKED_MESSAGE = "Armor remains—HP damage is blocked."
NO_ARMOR_MESSAGE = "No armor to remove."


@dataclass(frozen=True, slots=True)
class NoEffect:
    reason: ValidationRejection

    @property
    def message(self) -> str:
        return self.reason.message


@dataclass(frozen=True, slots=True)
class Applied:
    messages: Tuple[str, ...] = ()

    @property
    def message(self) -> str:
        return " ".join(self.messages)


@dataclass(frozen=True, slots=True)
class EnemyDefeated:
    message: str


EncounterResult = Union[NoEffect, Applied, EnemyDefeated]


class EncounterOutcome(NamedTuple):
    mana_spent: int
    result: EncounterResult


def remove_armor(segments: List[ArmorSegment], amount: int) -> int:
    """Strip up to ``amount`` armor from ``segments`` in list order."""

    remaining = max(0, amount)
    removed = 0
    for segment in segments:
        if remaining == 0:
            break
        if segment.value <= 0:
            continue
        taken = min(segment.value, remaining)
        segment.value -= taken
        remaining -= taken
        removed += taken
    return removed


def apply_attack(
    attack: EffectiveAttack, mana_available: int, state: EncounterState
) -> EncounterOutcome:
    """Apply ``attack`` to ``state`` in place.

    The two refusal paths (enemy already down, not enough mana) leave the
    state untouched and charge nothing. Every other call charges the full
    cost, even if neither armor nor HP moved.
    """

    if state.is_defeated:
        return EncounterOutcome(0, NoEffect(ValidationRejection.ENEMY_DEFEATED))

    cost = max(0, attack.mana_cost)
    if mana_available < cost:
        return EncounterOutcome(0, NoEffect(ValidationRejection.INSUFFICIENT_MANA))

    enemy = state.enemy
    messages: List[str] = []

    if attack.armor_removed > 0:
        removed = remove_armor(enemy.armor, attack.armor_removed)
        messages.append(f"Removed {removed} armor." if removed > 0 else NO_ARMOR_MESSAGE)

    if attack.hp_removed > 0:
        if total_armor(enemy.armor) > 0:
            messages.append(ARMOR_BLOCKED_MESSAGE)
        else:
            removed = min(attack.hp_removed, enemy.hp)
            enemy.hp -= removed
            messages.append(f"Removed {removed} HP.")

    if enemy.hp == 0:
        state.is_defeated = True
        return EncounterOutcome(cost, EnemyDefeated(enemy.narrative.defeat))

    return EncounterOutcome(cost, Applied(tuple(messages)))


__all__ = [
    "ARMOR_BLOCKED_MESSAGE",
    "Applied",
    "EncounterOutcome",
    "EncounterResult",
    "EnemyDefeated",
    "NO_ARMOR_MESSAGE",
    "NoEffect",
    "apply_attack",
    "remove_armor",
]
