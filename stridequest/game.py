"""Core progression engine shared by scripts and presentation layers."""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Tuple

from .attacks import (
    check_requirements,
    effective_attack,
    known_attacks,
    newly_usable_attacks,
    weekly_effort_counts,
)
from .catalog import Catalog, default_catalog
from .config import EngineConfig
from .constants import DEFAULT_SAVE_KEY
from .effort import EffortClassification
from .mana import ensure_player_mana, intensity_tier, regen_on_workout, weekly_effort_total
from .models.combat import Affinity, AttackDefinition, EffectiveAttack, EncounterState, EnemyCombatant
from .models.players import PlayerClass, PlayerProgress, Species
from .models.progression import IntensityTier, LevelTable, LevelUpSnapshot
from .models.rejections import ValidationRejection
from .models.workout import (
    EffortTier,
    EffortUnit,
    WorkoutRecord,
    WorkoutType,
    affinity_for_workout,
)
from .quests import AttackResolution, QuestPhase, QuestTracker, RewardClaim
from .storage import SaveRepository

log = logging.getLogger(__name__)


class GameEventKind(str, Enum):
    LEVEL_GAINED = "level_gained"
    ATTACKS_NOTIFIABLE = "attacks_notifiable"
    ENEMY_DEFEATED = "enemy_defeated"
    QUEST_COMPLETED = "quest_completed"
    REWARD_CLAIMED = "reward_claimed"


@dataclass(slots=True)
class GameEvent:
    """Something a presentation layer may want to announce."""

    kind: GameEventKind
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class GameEventQueue:
    """FIFO queue of pending events.

    A level-up is announced before any pending "new attacks" notice so the
    player sees why the attacks unlocked.
    """

    events: deque[GameEvent] = field(default_factory=deque)

    def push(self, event: GameEvent) -> None:
        if event.kind is GameEventKind.LEVEL_GAINED:
            for index, pending in enumerate(self.events):
                if pending.kind is GameEventKind.ATTACKS_NOTIFIABLE:
                    self.events.insert(index, event)
                    return
        self.events.append(event)

    def pop(self) -> Optional[GameEvent]:
        if self.events:
            return self.events.popleft()
        return None

    def drain(self) -> List[GameEvent]:
        drained = list(self.events)
        self.events.clear()
        return drained

    def __len__(self) -> int:
        return len(self.events)


class WorkoutApplication(NamedTuple):
    workout_id: str
    applied: bool
    level_ups: int = 0
    mana_gained: int = 0
    efforts: Tuple[EffortUnit, ...] = ()


@dataclass(frozen=True, slots=True)
class SummaryLine:
    tier: EffortTier
    workout_type: WorkoutType
    workouts: int
    efforts: int

    @property
    def affinity(self) -> Affinity:
        return affinity_for_workout(self.workout_type)


@dataclass(slots=True)
class ApplyAllSummary:
    workout_count: int = 0
    total_xp: float = 0.0
    distance_credited: float = 0.0
    level_ups: int = 0
    lines: List[SummaryLine] = field(default_factory=list)
    mana_before: int = 0
    mana_after: int = 0

    @property
    def mana_gained_net(self) -> int:
        return max(0, self.mana_after - self.mana_before)

    @property
    def total_efforts(self) -> int:
        return sum(line.efforts for line in self.lines)


def _summary_lines(
    applied: Iterable[tuple[WorkoutRecord, WorkoutApplication]]
) -> List[SummaryLine]:
    grouped: Dict[tuple[EffortTier, WorkoutType], list[int]] = {}
    for record, result in applied:
        if not result.efforts:
            continue
        key = (result.efforts[0].tier, record.type)
        bucket = grouped.setdefault(key, [0, 0])
        bucket[0] += 1
        bucket[1] += len(result.efforts)
    lines = [
        SummaryLine(tier=tier, workout_type=workout_type, workouts=counts[0], efforts=counts[1])
        for (tier, workout_type), counts in grouped.items()
    ]
    lines.sort(key=lambda line: (-line.tier.rank, line.workout_type.display_name))
    return lines


class GameState:
    """Single owner of one player's progression.

    Every operation runs to completion before the next; callers that share a
    ``GameState`` across threads must serialise access themselves.
    """

    def __init__(
        self,
        catalog: Catalog | None = None,
        repository: SaveRepository | None = None,
        *,
        config: EngineConfig | None = None,
        save_key: str = DEFAULT_SAVE_KEY,
        player: PlayerProgress | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.catalog = catalog or default_catalog()
        self.repository = repository
        self.save_key = save_key
        self.classifier = self.catalog.classifier()
        self.quests = QuestTracker(self.catalog.quest_areas)
        self.events = GameEventQueue()
        if player is None:
            player = repository.load(save_key) if repository is not None else PlayerProgress()
        self.player = player
        ensure_player_mana(self.player, self.level_table)

    @property
    def level_table(self) -> LevelTable:
        return self.catalog.level_table

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self) -> None:
        if self.repository is not None:
            self.repository.save(self.save_key, self.player)

    def reload(self) -> PlayerProgress:
        if self.repository is not None:
            self.player = self.repository.load(self.save_key)
        self.quests.reset()
        self.events.drain()
        ensure_player_mana(self.player, self.level_table)
        return self.player

    def reset(self) -> PlayerProgress:
        """Erase the save and start over with a fresh player."""

        if self.repository is not None:
            self.repository.clear(self.save_key)
        self.player = PlayerProgress()
        self.quests.reset()
        self.events.drain()
        ensure_player_mana(self.player, self.level_table)
        return self.player

    def create_character(
        self,
        name: str,
        *,
        species: Species | str = Species.HUMAN,
        player_class: PlayerClass | str = PlayerClass.KNIGHT,
    ) -> None:
        self.player.name = str(name).strip()
        self.player.species = Species.from_value(species)
        self.player.player_class = PlayerClass.from_value(player_class)
        self._notify_usable_attacks()
        self.save()

    # ------------------------------------------------------------------
    # Workout intake
    # ------------------------------------------------------------------

    def classify(self, record: WorkoutRecord) -> EffortClassification:
        return self.classifier.classify(record)

    def apply_workout(
        self, record: WorkoutRecord, *, now: float | None = None, persist: bool = True
    ) -> WorkoutApplication:
        """Credit ``record`` once: XP, distance, mana and effort units."""

        player = self.player
        if player.has_applied(record.key):
            log.debug("Skipping already applied workout %s", record.key)
            return WorkoutApplication(record.key, applied=False)

        timestamp = float(now) if now is not None else time.time()
        level_ups = player.apply_workout(
            record.key, record.experience, record.credited_distance, self.level_table
        )
        self._record_level_ups(level_ups)
        mana_gained = regen_on_workout(
            player,
            self.level_table,
            now=timestamp,
            window=self.config.effort_window_seconds,
        )
        efforts = self.classifier.efforts_for(record)
        player.add_efforts(efforts, max_stored=self.config.effort_retention)
        ensure_player_mana(player, self.level_table)
        self._notify_usable_attacks()
        log.debug(
            "Applied workout %s (%s): +%.1f XP, +%d mana, %d effort(s)",
            record.key,
            record.type.value,
            record.experience,
            mana_gained,
            len(efforts),
        )
        if persist:
            self.save()
        return WorkoutApplication(
            record.key,
            applied=True,
            level_ups=level_ups,
            mana_gained=mana_gained,
            efforts=tuple(efforts),
        )

    def apply_all(
        self, records: Iterable[WorkoutRecord], *, now: float | None = None
    ) -> ApplyAllSummary:
        """Apply ``records`` in the given order and summarise what changed.

        Order matters: each record's mana gain depends on the efforts already
        on the ledger. Use :func:`chronological` for a replayable order.
        """

        timestamp = float(now) if now is not None else time.time()
        summary = ApplyAllSummary(mana_before=self.player.mana_pool)
        applied: List[tuple[WorkoutRecord, WorkoutApplication]] = []
        for record in records:
            result = self.apply_workout(record, now=timestamp, persist=False)
            if not result.applied:
                continue
            applied.append((record, result))
            summary.workout_count += 1
            summary.total_xp += record.experience
            summary.distance_credited += record.credited_distance
            summary.level_ups += result.level_ups
        summary.lines = _summary_lines(applied)
        summary.mana_after = self.player.mana_pool
        if applied:
            self.save()
        return summary

    # ------------------------------------------------------------------
    # Progression queries
    # ------------------------------------------------------------------

    def _record_level_ups(self, level_ups: int) -> None:
        if level_ups <= 0:
            return
        self.player.unspent_level_ups += level_ups
        snapshot = LevelUpSnapshot.for_level(self.level_table, self.player.level)
        log.info("Reached level %d (+%d)", self.player.level, level_ups)
        self.events.push(
            GameEvent(
                GameEventKind.LEVEL_GAINED,
                {"levels_gained": level_ups, "snapshot": snapshot},
            )
        )

    def pending_level_up(self) -> Optional[LevelUpSnapshot]:
        if self.player.unspent_level_ups <= 0:
            return None
        return LevelUpSnapshot.for_level(self.level_table, self.player.level)

    def acknowledge_level_up(self) -> bool:
        if self.player.unspent_level_ups <= 0:
            return False
        self.player.unspent_level_ups -= 1
        self.save()
        return True

    def xp_progress(self) -> float:
        return self.player.xp_progress(self.level_table)

    def mana_status(self) -> tuple[int, int]:
        """``(current, cap)`` for the player's pool."""

        return self.player.mana_pool, self.level_table.mana_cap(self.player.level)

    def weekly_counts(self, *, now: float | None = None) -> Dict[Affinity, int]:
        return weekly_effort_counts(
            self.player, now=now, window=self.config.effort_window_seconds
        )

    def intensity(self, *, now: float | None = None) -> IntensityTier:
        total = weekly_effort_total(
            self.player, now=now, window=self.config.effort_window_seconds
        )
        return intensity_tier(total)

    # ------------------------------------------------------------------
    # Attacks
    # ------------------------------------------------------------------

    def class_attacks(self) -> List[AttackDefinition]:
        return self.catalog.attacks_for(self.player.player_class)

    def known_attacks(self) -> List[AttackDefinition]:
        return known_attacks(self.class_attacks(), self.player.level)

    def preview_attack(
        self, attack_key: str, *, now: float | None = None
    ) -> Optional[EffectiveAttack]:
        attack = self.catalog.attack(self.player.player_class, attack_key)
        if attack is None:
            return None
        return effective_attack(attack, self.weekly_counts(now=now))

    def _notify_usable_attacks(self) -> None:
        fresh = newly_usable_attacks(self.class_attacks(), self.player)
        if not fresh:
            return
        self.player.notified_attack_ids.update(attack.key for attack in fresh)
        self.events.push(
            GameEvent(
                GameEventKind.ATTACKS_NOTIFIABLE,
                {"attack_keys": [attack.key for attack in fresh]},
            )
        )

    # ------------------------------------------------------------------
    # Quests
    # ------------------------------------------------------------------

    def encounter_state(self, area_name: str) -> Optional[EncounterState]:
        return self.quests.encounter_state(self.player, area_name)

    def quest_phase(self, area_name: str) -> QuestPhase:
        return self.quests.phase(self.player, area_name)

    def quest_summary(self, area_name: str) -> str:
        return self.quests.summary_text(self.player, area_name)

    def trophies(self) -> List[EnemyCombatant]:
        return self.quests.trophies(self.player)

    def attack(
        self, area_name: str, attack_key: str, *, now: float | None = None
    ) -> AttackResolution:
        attack = self.catalog.attack(self.player.player_class, attack_key)
        if attack is None:
            return AttackResolution(area_name, rejection=ValidationRejection.UNKNOWN_ATTACK)
        if self.player.level < attack.required_level:
            return AttackResolution(area_name, rejection=ValidationRejection.LEVEL_TOO_LOW)

        effective = effective_attack(attack, self.weekly_counts(now=now))
        resolution = self.quests.resolve_attack(self.player, area_name, effective)
        if resolution.rejection is not None:
            return resolution

        if resolution.enemy_defeated and resolution.enemy is not None:
            self.events.push(
                GameEvent(
                    GameEventKind.ENEMY_DEFEATED,
                    {
                        "area": area_name,
                        "enemy_key": resolution.enemy.key,
                        "message": resolution.message,
                    },
                )
            )
        if resolution.quest_completed:
            self.events.push(GameEvent(GameEventKind.QUEST_COMPLETED, {"area": area_name}))
        self.save()
        return resolution

    def can_use(self, attack_key: str) -> Optional[ValidationRejection]:
        attack = self.catalog.attack(self.player.player_class, attack_key)
        if attack is None:
            return ValidationRejection.UNKNOWN_ATTACK
        return check_requirements(attack, self.player)

    def claim_reward(self, area_name: str) -> RewardClaim:
        claim = self.quests.claim_reward(self.player, area_name)
        if not claim.claimed:
            return claim
        level_ups = self.player.add_xp(claim.reward_xp, self.level_table)
        self._record_level_ups(level_ups)
        ensure_player_mana(self.player, self.level_table)
        self.events.push(
            GameEvent(
                GameEventKind.REWARD_CLAIMED,
                {"area": area_name, "reward_name": claim.reward_name, "reward_xp": claim.reward_xp},
            )
        )
        self._notify_usable_attacks()
        self.save()
        return claim


__all__ = [
    "ApplyAllSummary",
    "GameEvent",
    "GameEventKind",
    "GameEventQueue",
    "GameState",
    "SummaryLine",
    "WorkoutApplication",
]
