"""Player aggregate: XP ledger, mana pool, effort history and quest progress."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from ..constants import EFFORT_RETENTION_CAP
from .combat import Affinity
from .progression import LevelTable
from .workout import EffortUnit
from .world import QuestAreaProgress


class PlayerClass(str, Enum):
    WIZARD = "wizard"
    KNIGHT = "knight"
    JESTER = "jester"

    @property
    def display_name(self) -> str:
        return self.value.title()

    @classmethod
    def from_value(cls, value: "PlayerClass | str | None") -> "PlayerClass":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.KNIGHT


class Species(str, Enum):
    HUMAN = "human"
    ELF = "elf"
    GNOME = "gnome"
    ORC = "orc"

    @property
    def display_name(self) -> str:
        return self.value.title()

    @classmethod
    def from_value(cls, value: "Species | str | None") -> "Species":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.HUMAN


def _normalize_efforts(value: Any) -> List[EffortUnit]:
    efforts: List[EffortUnit] = []
    for entry in value or ():
        if isinstance(entry, EffortUnit):
            efforts.append(entry)
        elif isinstance(entry, Mapping):
            try:
                efforts.append(EffortUnit.from_dict(entry))
            except (KeyError, ValueError):
                continue
    return efforts


def _normalize_progress(value: Any) -> Dict[str, QuestAreaProgress]:
    progress: Dict[str, QuestAreaProgress] = {}
    if not isinstance(value, Mapping):
        return progress
    for area_name, entry in value.items():
        if isinstance(entry, QuestAreaProgress):
            progress[str(area_name)] = entry
        elif isinstance(entry, Mapping):
            progress[str(area_name)] = QuestAreaProgress.from_dict(entry)
    return progress


def _normalize_str_set(value: Any) -> Set[str]:
    if value is None or isinstance(value, (str, bytes)):
        return set()
    return {str(item) for item in value}


@dataclass(slots=True)
class PlayerProgress:
    name: str = ""
    species: Species = Species.HUMAN
    player_class: PlayerClass = PlayerClass.KNIGHT
    level: int = 1
    experience: float = 0.0
    distance_progress: float = 0.0
    mana_pool: int = 0
    unspent_level_ups: int = 0
    efforts: List[EffortUnit] = field(default_factory=list)
    applied_workout_ids: List[str] = field(default_factory=list)
    notified_attack_ids: Set[str] = field(default_factory=set)
    quest_progress: Dict[str, QuestAreaProgress] = field(default_factory=dict)
    defeated_enemy_ids: Set[str] = field(default_factory=set)
    claimed_reward_names: Set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        self.name = str(self.name or "").strip()
        self.species = Species.from_value(self.species)
        self.player_class = PlayerClass.from_value(self.player_class)
        try:
            self.level = max(1, int(self.level))
        except (TypeError, ValueError):
            self.level = 1
        try:
            experience = float(self.experience)
        except (TypeError, ValueError):
            experience = 0.0
        self.experience = experience if math.isfinite(experience) and experience > 0 else 0.0
        try:
            self.distance_progress = max(0.0, float(self.distance_progress))
        except (TypeError, ValueError):
            self.distance_progress = 0.0
        try:
            self.mana_pool = max(0, int(self.mana_pool))
        except (TypeError, ValueError):
            self.mana_pool = 0
        try:
            self.unspent_level_ups = max(0, int(self.unspent_level_ups))
        except (TypeError, ValueError):
            self.unspent_level_ups = 0
        self.efforts = _normalize_efforts(self.efforts)
        self.applied_workout_ids = list(dict.fromkeys(str(item) for item in self.applied_workout_ids or ()))
        self.notified_attack_ids = _normalize_str_set(self.notified_attack_ids)
        self.quest_progress = _normalize_progress(self.quest_progress)
        self.defeated_enemy_ids = _normalize_str_set(self.defeated_enemy_ids)
        self.claimed_reward_names = _normalize_str_set(self.claimed_reward_names)

    # ------------------------------------------------------------------
    # Progression ledger
    # ------------------------------------------------------------------

    def has_applied(self, workout_id: str) -> bool:
        return str(workout_id) in self.applied_workout_ids

    def apply_workout(
        self,
        workout_id: str,
        calories: float,
        distance: float,
        table: LevelTable,
    ) -> int:
        """Credit a workout once. Returns the number of levels gained."""

        workout_id = str(workout_id)
        if workout_id in self.applied_workout_ids:
            return 0
        self.applied_workout_ids.append(workout_id)
        try:
            self.distance_progress += max(0.0, float(distance))
        except (TypeError, ValueError):
            pass
        return self.add_xp(calories, table)

    def add_xp(self, amount: float, table: LevelTable) -> int:
        try:
            gained = max(0.0, float(amount))
        except (TypeError, ValueError):
            gained = 0.0
        if math.isfinite(gained):
            self.experience += gained
        return self.level_up_if_needed(table)

    def level_up_if_needed(self, table: LevelTable) -> int:
        level_ups = 0
        while self.level < table.max_level:
            needed = table.xp_to_next_level(self.level)
            if self.experience < needed:
                break
            self.experience -= needed
            self.level += 1
            level_ups += 1
        return level_ups

    def xp_progress(self, table: LevelTable) -> float:
        return table.xp_progress(self.level, self.experience)

    # ------------------------------------------------------------------
    # Mana pool
    # ------------------------------------------------------------------

    def sync_mana(self, capacity: int) -> None:
        """Clamp the stored pool into ``[0, capacity]``."""

        try:
            cap = max(0, int(capacity))
        except (TypeError, ValueError):
            cap = 0
        self.mana_pool = min(cap, max(0, int(self.mana_pool)))

    def consume_mana(self, amount: int) -> bool:
        try:
            cost = max(0, int(amount))
        except (TypeError, ValueError):
            cost = 0
        if cost > self.mana_pool:
            return False
        self.mana_pool -= cost
        return True

    # ------------------------------------------------------------------
    # Effort ledger
    # ------------------------------------------------------------------

    def add_effort(self, effort: EffortUnit, *, max_stored: int = EFFORT_RETENTION_CAP) -> None:
        self.efforts.append(effort)
        limit = max(1, int(max_stored))
        if len(self.efforts) > limit:
            del self.efforts[: len(self.efforts) - limit]

    def add_efforts(
        self, efforts: Iterable[EffortUnit], *, max_stored: int = EFFORT_RETENTION_CAP
    ) -> None:
        for effort in efforts:
            self.add_effort(effort, max_stored=max_stored)

    def effort_count(self, affinity: Affinity, *, since: Optional[float] = None) -> int:
        return sum(
            1
            for effort in self.efforts
            if effort.affinity is affinity and (since is None or effort.earned_at >= since)
        )

    def effort_counts(self, *, since: Optional[float] = None) -> Dict[Affinity, int]:
        counts = {affinity: 0 for affinity in Affinity}
        for effort in self.efforts:
            if since is None or effort.earned_at >= since:
                counts[effort.affinity] += 1
        return counts

    def total_efforts(self, *, since: Optional[float] = None) -> int:
        return sum(1 for effort in self.efforts if since is None or effort.earned_at >= since)

    # ------------------------------------------------------------------
    # Quest bookkeeping
    # ------------------------------------------------------------------

    def progress_for(self, area_name: str) -> QuestAreaProgress:
        """Return the stored progress for ``area_name`` (not inserted if new)."""

        return self.quest_progress.get(area_name) or QuestAreaProgress()

    def set_progress(self, area_name: str, progress: QuestAreaProgress) -> None:
        self.quest_progress[area_name] = progress

    def record_defeat(self, enemy_id: str) -> None:
        self.defeated_enemy_ids.add(str(enemy_id))

    @property
    def has_identity(self) -> bool:
        """``False`` until character creation has given the player a name."""

        return bool(self.name)


__all__ = ["PlayerClass", "PlayerProgress", "Species"]
