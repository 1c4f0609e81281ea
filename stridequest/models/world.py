"""Quest areas and the persisted per-area progress record."""

from __future__ import annotations

from dataclasses import dataclass, field
from collections.abc import Mapping
from typing import Any, List, Optional

from ._validation import (
    FieldSpec,
    ModelValidator,
    SequenceSpec,
    is_non_empty_str,
    is_non_negative_int,
    is_non_negative_number,
    validate_payload,
)
from .combat import ArmorSegment, EnemyCombatant, normalize_armor


@dataclass(slots=True)
class QuestArea:
    name: str
    enemies: List[EnemyCombatant] = field(default_factory=list)
    unlock_miles: float = 0.0
    reward_xp: int = 0
    reward_name: str = ""

    def __post_init__(self) -> None:
        self.name = str(self.name)
        try:
            self.unlock_miles = max(0.0, float(self.unlock_miles))
        except (TypeError, ValueError):
            self.unlock_miles = 0.0
        try:
            self.reward_xp = max(0, int(self.reward_xp))
        except (TypeError, ValueError):
            self.reward_xp = 0
        self.reward_name = str(self.reward_name or f"{self.name} Button")
        self.enemies = [
            entry if isinstance(entry, EnemyCombatant) else EnemyCombatant.from_dict(entry)
            for entry in self.enemies
        ]

    def is_unlocked(self, distance_progress: float) -> bool:
        return distance_progress >= self.unlock_miles

    def enemy_at(self, index: int) -> Optional[EnemyCombatant]:
        if 0 <= index < len(self.enemies):
            return self.enemies[index]
        return None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "QuestArea":
        payload = validate_payload(cls, data)
        return cls(
            name=payload["name"],
            enemies=list(payload.get("enemies") or ()),
            unlock_miles=payload.get("unlock_miles", 0.0),
            reward_xp=payload.get("reward_xp", 0),
            reward_name=payload.get("reward_name", ""),
        )


class QuestAreaValidator(ModelValidator):
    model = QuestArea
    fields = {
        "name": FieldSpec(is_non_empty_str, "a non-empty area name"),
        "enemies": FieldSpec(
            SequenceSpec(Mapping, allow_empty=False), "a non-empty list of enemies"
        ),
        "unlock_miles": FieldSpec(is_non_negative_number, "unlock distance in miles", required=False),
        "reward_xp": FieldSpec(is_non_negative_int, "reward XP", required=False),
        "reward_name": FieldSpec(str, "a reward name", required=False),
    }


QuestArea.validator = QuestAreaValidator


@dataclass(slots=True)
class QuestAreaProgress:
    """Persisted progress through one area's enemy list.

    ``current_enemy_hp``/``current_enemy_armor`` are ``None`` when the current
    enemy has not been touched yet, in which case catalog values apply.
    """

    current_enemy_index: int = 0
    current_enemy_hp: Optional[int] = None
    current_enemy_armor: Optional[List[ArmorSegment]] = None
    completed: bool = False
    reward_claimed: bool = False

    def __post_init__(self) -> None:
        try:
            self.current_enemy_index = max(0, int(self.current_enemy_index))
        except (TypeError, ValueError):
            self.current_enemy_index = 0
        if self.current_enemy_hp is not None:
            try:
                self.current_enemy_hp = max(0, int(self.current_enemy_hp))
            except (TypeError, ValueError):
                self.current_enemy_hp = None
        if self.current_enemy_armor is not None:
            self.current_enemy_armor = normalize_armor(self.current_enemy_armor)
        self.completed = bool(self.completed)
        self.reward_claimed = bool(self.reward_claimed) and self.completed

    def clear_enemy_state(self) -> None:
        self.current_enemy_hp = None
        self.current_enemy_armor = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "current_enemy_index": self.current_enemy_index,
            "completed": self.completed,
            "reward_claimed": self.reward_claimed,
        }
        if self.current_enemy_hp is not None:
            payload["current_enemy_hp"] = self.current_enemy_hp
        if self.current_enemy_armor is not None:
            payload["current_enemy_armor"] = [
                segment.to_dict() for segment in self.current_enemy_armor
            ]
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "QuestAreaProgress":
        payload = dict(data)
        return cls(
            current_enemy_index=payload.get("current_enemy_index", 0),
            current_enemy_hp=payload.get("current_enemy_hp"),
            current_enemy_armor=payload.get("current_enemy_armor"),
            completed=payload.get("completed", False),
            reward_claimed=payload.get("reward_claimed", False),
        )


__all__ = ["QuestArea", "QuestAreaProgress"]
