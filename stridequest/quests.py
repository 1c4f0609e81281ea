"""Quest progression: sequences encounters through each area's enemy list."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence

from .encounter import EncounterOutcome, EnemyDefeated, NoEffect, apply_attack
from .mana import spend_mana
from .models.combat import EffectiveAttack, EncounterState, EnemyCombatant
from .models.players import PlayerProgress
from .models.rejections import ValidationRejection
from .models.world import QuestArea, QuestAreaProgress

log = logging.getLogger(__name__)


class QuestPhase(str, Enum):
    LOCKED = "locked"
    ACTIVE = "active"
    COMPLETED = "completed"
    CLAIMED = "claimed"


@dataclass(frozen=True, slots=True)
class AttackResolution:
    """Result of resolving one attack inside a quest area."""

    area_name: str
    outcome: Optional[EncounterOutcome] = None
    rejection: Optional[ValidationRejection] = None
    enemy: Optional[EnemyCombatant] = None
    enemy_defeated: bool = False
    quest_completed: bool = False

    @property
    def mana_spent(self) -> int:
        return self.outcome.mana_spent if self.outcome is not None else 0

    @property
    def message(self) -> str:
        if self.outcome is not None:
            return self.outcome.result.message
        if self.rejection is not None:
            return self.rejection.message
        return ""


@dataclass(frozen=True, slots=True)
class RewardClaim:
    area_name: str
    rejection: Optional[ValidationRejection] = None
    reward_name: str = ""
    reward_xp: int = 0

    @property
    def claimed(self) -> bool:
        return self.rejection is None


class QuestTracker:
    """Tracks live encounters per area on top of persisted progress.

    Encounter states are cached per area for the session; persisted
    ``QuestAreaProgress`` on the player stays the source of truth, so a cache
    miss rebuilds the encounter from the catalog plus any saved hp/armor.
    """

    def __init__(self, areas: Sequence[QuestArea]) -> None:
        self._areas: Dict[str, QuestArea] = {area.name: area for area in areas}
        self._encounters: Dict[str, EncounterState] = {}

    @property
    def areas(self) -> List[QuestArea]:
        return list(self._areas.values())

    def area(self, area_name: str) -> Optional[QuestArea]:
        return self._areas.get(area_name)

    def reset(self) -> None:
        self._encounters.clear()

    def phase(self, player: PlayerProgress, area_name: str) -> QuestPhase:
        area = self._areas.get(area_name)
        progress = player.progress_for(area_name)
        if progress.reward_claimed:
            return QuestPhase.CLAIMED
        if progress.completed:
            return QuestPhase.COMPLETED
        if area is not None and not area.is_unlocked(player.distance_progress):
            return QuestPhase.LOCKED
        return QuestPhase.ACTIVE

    def encounter_state(self, player: PlayerProgress, area_name: str) -> Optional[EncounterState]:
        """The live encounter for ``area_name``, or ``None`` once the area is done."""

        area = self._areas.get(area_name)
        if area is None:
            return None
        progress = player.progress_for(area_name)
        if progress.completed:
            return None
        enemy = area.enemy_at(progress.current_enemy_index)
        if enemy is None:
            return None

        cached = self._encounters.get(area_name)
        if cached is not None and cached.enemy.key == enemy.key:
            return cached

        live_enemy = enemy.copy()
        if progress.current_enemy_hp is not None:
            live_enemy.hp = progress.current_enemy_hp
        if progress.current_enemy_armor is not None:
            live_enemy.armor = [segment.copy() for segment in progress.current_enemy_armor]
        state = EncounterState(enemy=live_enemy)
        self._encounters[area_name] = state
        return state

    def resolve_attack(
        self, player: PlayerProgress, area_name: str, attack: EffectiveAttack
    ) -> AttackResolution:
        area = self._areas.get(area_name)
        if area is None:
            return AttackResolution(area_name, rejection=ValidationRejection.UNKNOWN_AREA)
        progress = player.progress_for(area_name)
        if progress.completed:
            return AttackResolution(area_name, rejection=ValidationRejection.QUEST_COMPLETED)
        if not area.is_unlocked(player.distance_progress):
            return AttackResolution(area_name, rejection=ValidationRejection.QUEST_LOCKED)

        state = self.encounter_state(player, area_name)
        if state is None:
            return AttackResolution(area_name, rejection=ValidationRejection.QUEST_COMPLETED)

        outcome = apply_attack(attack, player.mana_pool, state)
        if isinstance(outcome.result, NoEffect):
            return AttackResolution(
                area_name, outcome=outcome, rejection=outcome.result.reason, enemy=state.enemy
            )

        spend_mana(player, outcome.mana_spent)
        if isinstance(outcome.result, EnemyDefeated):
            completed = self._advance(player, area, progress, state)
            return AttackResolution(
                area_name,
                outcome=outcome,
                enemy=state.enemy,
                enemy_defeated=True,
                quest_completed=completed,
            )

        progress.current_enemy_hp = state.enemy.hp
        progress.current_enemy_armor = [segment.copy() for segment in state.enemy.armor]
        player.set_progress(area_name, progress)
        return AttackResolution(area_name, outcome=outcome, enemy=state.enemy)

    def _advance(
        self,
        player: PlayerProgress,
        area: QuestArea,
        progress: QuestAreaProgress,
        state: EncounterState,
    ) -> bool:
        player.record_defeat(state.enemy.key)
        progress.current_enemy_index += 1
        progress.clear_enemy_state()
        self._encounters.pop(area.name, None)
        log.info("Defeated %s in %s", state.enemy.name, area.name)
        if progress.current_enemy_index >= len(area.enemies):
            progress.completed = True
            log.info("Quest area %s completed", area.name)
        player.set_progress(area.name, progress)
        return progress.completed

    def claim_reward(self, player: PlayerProgress, area_name: str) -> RewardClaim:
        """Mark ``area_name``'s reward claimed. Granting the XP is up to the caller."""

        area = self._areas.get(area_name)
        if area is None:
            return RewardClaim(area_name, rejection=ValidationRejection.UNKNOWN_AREA)
        progress = player.progress_for(area_name)
        if progress.reward_claimed:
            return RewardClaim(area_name, rejection=ValidationRejection.REWARD_ALREADY_CLAIMED)
        if not progress.completed:
            return RewardClaim(area_name, rejection=ValidationRejection.REWARD_NOT_READY)
        progress.reward_claimed = True
        player.set_progress(area_name, progress)
        player.claimed_reward_names.add(area.reward_name)
        log.info("Claimed %s reward (%s)", area.name, area.reward_name)
        return RewardClaim(area_name, reward_name=area.reward_name, reward_xp=area.reward_xp)

    def summary_text(self, player: PlayerProgress, area_name: str) -> str:
        area = self._areas.get(area_name)
        progress = player.progress_for(area_name)
        if progress.completed:
            if progress.reward_claimed:
                return "Completed (Reward Claimed)"
            return "Completed (Reward Ready)"
        total = len(area.enemies) if area is not None else 0
        current = min(progress.current_enemy_index + 1, max(1, total))
        return f"Enemy {current}/{total}"

    def trophies(self, player: PlayerProgress) -> List[EnemyCombatant]:
        """Defeated catalog enemies in catalog order."""

        trophies: List[EnemyCombatant] = []
        for area in self._areas.values():
            for enemy in area.enemies:
                if enemy.key in player.defeated_enemy_ids:
                    trophies.append(enemy)
        return trophies


__all__ = [
    "AttackResolution",
    "QuestPhase",
    "QuestTracker",
    "RewardClaim",
]
