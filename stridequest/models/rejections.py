"""Recoverable reasons an operation was refused."""

from __future__ import annotations

from enum import Enum


class ValidationRejection(str, Enum):
    """Returned (never raised) when a player action cannot go ahead."""

    INSUFFICIENT_MANA = "insufficient_mana"
    LEVEL_TOO_LOW = "level_too_low"
    REQUIREMENTS_NOT_MET = "requirements_not_met"
    QUEST_COMPLETED = "quest_completed"
    QUEST_LOCKED = "quest_locked"
    REWARD_ALREADY_CLAIMED = "reward_already_claimed"
    REWARD_NOT_READY = "reward_not_ready"
    ENEMY_DEFEATED = "enemy_defeated"
    UNKNOWN_AREA = "unknown_area"
    UNKNOWN_ATTACK = "unknown_attack"

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_MESSAGES = {
    ValidationRejection.INSUFFICIENT_MANA: "Not enough mana.",
    ValidationRejection.LEVEL_TOO_LOW: "Your level is too low for that attack.",
    ValidationRejection.REQUIREMENTS_NOT_MET: "You have not trained enough for that attack yet.",
    ValidationRejection.QUEST_COMPLETED: "This quest is already complete.",
    ValidationRejection.QUEST_LOCKED: "Travel farther to unlock this area.",
    ValidationRejection.REWARD_ALREADY_CLAIMED: "Reward already claimed.",
    ValidationRejection.REWARD_NOT_READY: "Finish the quest to claim its reward.",
    ValidationRejection.ENEMY_DEFEATED: "Enemy already defeated.",
    ValidationRejection.UNKNOWN_AREA: "Unknown quest area.",
    ValidationRejection.UNKNOWN_ATTACK: "Unknown attack.",
}


__all__ = ["ValidationRejection"]
