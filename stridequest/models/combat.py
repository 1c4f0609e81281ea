"""Combat-related domain models: affinities, armor, enemies and attacks."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from collections.abc import Mapping
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

from ._validation import (
    FieldSpec,
    ModelValidator,
    SequenceSpec,
    is_non_empty_str,
    is_non_negative_int,
    one_of,
    validate_payload,
)


def _coerce_non_negative_int(value: Any, default: int = 0) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return default


class Affinity(str, Enum):
    """Stat category shared by effort units and attack modifiers."""

    RHYTHM = "rhythm"
    ENDURANCE = "endurance"
    FORCE = "force"
    PRECISION = "precision"

    @property
    def display_name(self) -> str:
        return self.value.title()

    @classmethod
    def from_value(cls, value: "Affinity | str") -> "Affinity":
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


class ArmorType(str, Enum):
    """Tag for an enemy armor segment."""

    STRUCTURAL = "structural"
    STABILITY = "stability"
    PATTERN = "pattern"

    @property
    def display_name(self) -> str:
        return self.value.title()

    @classmethod
    def from_value(cls, value: "ArmorType | str") -> "ArmorType":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            return cls.STABILITY


@dataclass(slots=True)
class ArmorSegment:
    """A bucket of absorbable damage. Zero means inactive."""

    type: ArmorType = ArmorType.STABILITY
    value: int = 0

    def __post_init__(self) -> None:
        self.type = ArmorType.from_value(self.type)
        self.value = _coerce_non_negative_int(self.value)

    @property
    def is_active(self) -> bool:
        return self.value > 0

    def copy(self) -> "ArmorSegment":
        return ArmorSegment(type=self.type, value=self.value)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "value": self.value}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ArmorSegment":
        payload = dict(data)
        if "type" not in payload and "kind" in payload:
            payload["type"] = payload.pop("kind")
        if "value" not in payload and "amount" in payload:
            payload["value"] = payload.pop("amount")
        return cls(type=payload.get("type", ArmorType.STABILITY), value=payload.get("value", 0))


def normalize_armor(value: Any) -> List[ArmorSegment]:
    """Coerce ``value`` into a list of fresh :class:`ArmorSegment` copies."""

    if value is None:
        return []
    if isinstance(value, (ArmorSegment, Mapping)):
        value = [value]
    segments: List[ArmorSegment] = []
    for entry in value:
        if isinstance(entry, ArmorSegment):
            segments.append(entry.copy())
        elif isinstance(entry, Mapping):
            segments.append(ArmorSegment.from_dict(entry))
    return segments


def total_armor(segments: Iterable[ArmorSegment]) -> int:
    return sum(max(0, segment.value) for segment in segments)


@dataclass(frozen=True, slots=True)
class EnemyNarrative:
    opening: str = ""
    defeat: str = ""
    trophy: str = ""
    phase_shifts: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "EnemyNarrative":
        if not data:
            return cls()
        shifts = data.get("phase_shifts") or ()
        return cls(
            opening=str(data.get("opening", "")),
            defeat=str(data.get("defeat", "")),
            trophy=str(data.get("trophy", "")),
            phase_shifts=tuple(str(entry) for entry in shifts),
        )


@dataclass(slots=True)
class EnemyCombatant:
    key: str
    name: str
    hp: int
    armor: List[ArmorSegment] = field(default_factory=list)
    narrative: EnemyNarrative = field(default_factory=EnemyNarrative)
    weakness: Optional[Affinity] = None

    def __post_init__(self) -> None:
        self.key = str(self.key)
        self.name = str(self.name)
        self.hp = _coerce_non_negative_int(self.hp)
        self.armor = normalize_armor(self.armor)
        if isinstance(self.narrative, Mapping):
            self.narrative = EnemyNarrative.from_dict(self.narrative)
        if self.weakness is not None:
            self.weakness = Affinity.from_value(self.weakness)

    @property
    def armor_remaining(self) -> int:
        return total_armor(self.armor)

    def copy(self) -> "EnemyCombatant":
        """Return an independent copy whose armor can be mutated freely."""

        return EnemyCombatant(
            key=self.key,
            name=self.name,
            hp=self.hp,
            armor=[segment.copy() for segment in self.armor],
            narrative=self.narrative,
            weakness=self.weakness,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EnemyCombatant":
        payload = dict(data)
        if "key" not in payload and "id" in payload:
            payload["key"] = payload.pop("id")
        payload = validate_payload(cls, payload)
        narrative = payload.pop("narrative", None)
        return cls(
            key=payload["key"],
            name=payload["name"],
            hp=payload["hp"],
            armor=normalize_armor(payload.get("armor")),
            narrative=EnemyNarrative.from_dict(narrative),
            weakness=payload.get("weakness"),
        )


class EnemyCombatantValidator(ModelValidator):
    model = EnemyCombatant
    fields = {
        "key": FieldSpec(is_non_empty_str, "a non-empty enemy key"),
        "name": FieldSpec(is_non_empty_str, "a non-empty enemy name"),
        "hp": FieldSpec(is_non_negative_int, "a non-negative hit point total"),
        "armor": FieldSpec(SequenceSpec(Mapping), "a list of armor segments", required=False),
        "narrative": FieldSpec(Mapping, "a narrative table", required=False),
        "weakness": FieldSpec(one_of(Affinity), "an affinity", required=False, allow_none=True),
    }


EnemyCombatant.validator = EnemyCombatantValidator


@dataclass(slots=True)
class EncounterState:
    """Transient combat snapshot for a single enemy."""

    enemy: EnemyCombatant
    is_defeated: bool = False

    def __post_init__(self) -> None:
        if self.enemy.hp == 0:
            self.is_defeated = True


# ---------------------------------------------------------------------------
# Attack effects and modifiers
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RemoveHP:
    amount: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", _coerce_non_negative_int(self.amount))


@dataclass(frozen=True, slots=True)
class RemoveArmor:
    amount: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", _coerce_non_negative_int(self.amount))


AttackEffect = Union[RemoveHP, RemoveArmor]


@dataclass(frozen=True, slots=True)
class ManaDiscountByEffort:
    """Lower the mana cost by one per ``every`` weekly efforts, never below ``min_cost``."""

    affinity: Affinity
    every: int = 1
    min_cost: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "affinity", Affinity.from_value(self.affinity))
        object.__setattr__(self, "every", max(1, _coerce_non_negative_int(self.every, 1)))
        object.__setattr__(self, "min_cost", _coerce_non_negative_int(self.min_cost))


@dataclass(frozen=True, slots=True)
class AddHPByEffort:
    affinity: Affinity
    per_effort: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "affinity", Affinity.from_value(self.affinity))
        object.__setattr__(self, "per_effort", _coerce_non_negative_int(self.per_effort))


@dataclass(frozen=True, slots=True)
class AddArmorByEffort:
    affinity: Affinity
    per_effort: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "affinity", Affinity.from_value(self.affinity))
        object.__setattr__(self, "per_effort", _coerce_non_negative_int(self.per_effort))


AttackModifier = Union[ManaDiscountByEffort, AddHPByEffort, AddArmorByEffort]


@dataclass(frozen=True, slots=True)
class EffortGate:
    """Requires ``min_count`` retained efforts of ``affinity`` before an attack unlocks."""

    affinity: Affinity
    min_count: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "affinity", Affinity.from_value(self.affinity))
        object.__setattr__(self, "min_count", max(1, _coerce_non_negative_int(self.min_count, 1)))


_MODIFIER_KINDS = {
    "mana_discount": ManaDiscountByEffort,
    "add_hp": AddHPByEffort,
    "add_armor": AddArmorByEffort,
}

_EFFECT_KINDS = {
    "remove_hp": RemoveHP,
    "remove_armor": RemoveArmor,
}


def modifier_from_dict(data: Mapping[str, Any]) -> AttackModifier:
    payload = dict(data)
    kind = str(payload.pop("kind", "")).strip().lower()
    try:
        modifier_cls = _MODIFIER_KINDS[kind]
    except KeyError as exc:
        raise ValueError(f"Unknown attack modifier kind: {kind!r}") from exc
    return modifier_cls(**payload)


def effect_from_dict(data: Mapping[str, Any]) -> AttackEffect:
    payload = dict(data)
    kind = str(payload.pop("kind", "")).strip().lower()
    try:
        effect_cls = _EFFECT_KINDS[kind]
    except KeyError as exc:
        raise ValueError(f"Unknown attack effect kind: {kind!r}") from exc
    return effect_cls(**payload)


@dataclass(slots=True)
class AttackDefinition:
    key: str
    name: str
    base_mana_cost: int
    required_level: int = 1
    modifiers: Tuple[AttackModifier, ...] = ()
    effects: Tuple[AttackEffect, ...] = ()
    requirements: Tuple[EffortGate, ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        self.key = str(self.key)
        self.name = str(self.name)
        self.base_mana_cost = _coerce_non_negative_int(self.base_mana_cost)
        self.required_level = max(1, _coerce_non_negative_int(self.required_level, 1))
        self.modifiers = tuple(
            modifier_from_dict(entry) if isinstance(entry, Mapping) else entry
            for entry in self.modifiers
        )
        self.effects = tuple(
            effect_from_dict(entry) if isinstance(entry, Mapping) else entry
            for entry in self.effects
        )
        self.requirements = tuple(
            EffortGate(**entry) if isinstance(entry, Mapping) else entry
            for entry in self.requirements
        )

    @property
    def flavor_affinities(self) -> List[Affinity]:
        """Affinities referenced by the modifiers, first occurrence first."""

        seen: List[Affinity] = []
        for modifier in self.modifiers:
            if modifier.affinity not in seen:
                seen.append(modifier.affinity)
        return seen

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AttackDefinition":
        payload = dict(data)
        if "key" not in payload and "id" in payload:
            payload["key"] = payload.pop("id")
        if "base_mana_cost" not in payload and "mana_cost" in payload:
            payload["base_mana_cost"] = payload.pop("mana_cost")
        payload = validate_payload(cls, payload)
        return cls(
            key=payload["key"],
            name=payload["name"],
            base_mana_cost=payload["base_mana_cost"],
            required_level=payload.get("required_level", 1),
            modifiers=tuple(payload.get("modifiers") or ()),
            effects=tuple(payload.get("effects") or ()),
            requirements=tuple(payload.get("requirements") or ()),
            description=str(payload.get("description", "")),
        )


class AttackDefinitionValidator(ModelValidator):
    model = AttackDefinition
    fields = {
        "key": FieldSpec(is_non_empty_str, "a non-empty attack key"),
        "name": FieldSpec(is_non_empty_str, "a non-empty attack name"),
        "base_mana_cost": FieldSpec(is_non_negative_int, "a non-negative mana cost"),
        "required_level": FieldSpec(is_non_negative_int, "a level", required=False),
        "modifiers": FieldSpec(SequenceSpec(Mapping), "a list of modifier tables", required=False),
        "effects": FieldSpec(SequenceSpec(Mapping), "a list of effect tables", required=False),
        "requirements": FieldSpec(SequenceSpec(Mapping), "a list of effort gates", required=False),
    }


AttackDefinition.validator = AttackDefinitionValidator


@dataclass(frozen=True, slots=True)
class EffectiveAttack:
    """An attack after effort modifiers have been folded in."""

    mana_cost: int = 0
    hp_removed: int = 0
    armor_removed: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "mana_cost", _coerce_non_negative_int(self.mana_cost))
        object.__setattr__(self, "hp_removed", _coerce_non_negative_int(self.hp_removed))
        object.__setattr__(self, "armor_removed", _coerce_non_negative_int(self.armor_removed))

    @property
    def effects(self) -> Tuple[AttackEffect, ...]:
        collapsed: List[AttackEffect] = []
        if self.armor_removed > 0:
            collapsed.append(RemoveArmor(self.armor_removed))
        if self.hp_removed > 0:
            collapsed.append(RemoveHP(self.hp_removed))
        return tuple(collapsed)


def effect_totals(effects: Sequence[AttackEffect]) -> tuple[int, int]:
    """Return ``(hp, armor)`` summed over ``effects``."""

    hp = 0
    armor = 0
    for effect in effects:
        if isinstance(effect, RemoveHP):
            hp += max(0, effect.amount)
        elif isinstance(effect, RemoveArmor):
            armor += max(0, effect.amount)
        else:
            raise TypeError(f"Unsupported attack effect: {effect!r}")
    return hp, armor


__all__ = [
    "AddArmorByEffort",
    "AddHPByEffort",
    "Affinity",
    "ArmorSegment",
    "ArmorType",
    "AttackDefinition",
    "AttackEffect",
    "AttackModifier",
    "EffectiveAttack",
    "EffortGate",
    "EncounterState",
    "EnemyCombatant",
    "EnemyNarrative",
    "ManaDiscountByEffort",
    "RemoveArmor",
    "RemoveHP",
    "effect_from_dict",
    "effect_totals",
    "modifier_from_dict",
    "normalize_armor",
    "total_armor",
]
