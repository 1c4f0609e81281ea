"""Static game content: level table, thresholds, quest areas and attacks.

The built-in catalog can be overridden section by section from a TOML file
(``config/catalog.toml`` or ``STRIDEQUEST_CATALOG``). Any section the file
omits keeps the built-in content.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import tomllib

from .effort import DEFAULT_THRESHOLDS, EffortClassifier, TierThresholds
from .models._validation import ModelValidationError, one_of
from .models.combat import (
    AddArmorByEffort,
    AddHPByEffort,
    Affinity,
    ArmorSegment,
    ArmorType,
    AttackDefinition,
    EnemyCombatant,
    EnemyNarrative,
    ManaDiscountByEffort,
    RemoveArmor,
    RemoveHP,
)
from .models.players import PlayerClass
from .models.progression import DEFAULT_LEVEL_ROWS, LevelTable
from .models.workout import WorkoutType
from .models.world import QuestArea

log = logging.getLogger(__name__)


@dataclass(slots=True)
class Catalog:
    level_table: LevelTable = field(default_factory=LevelTable)
    quest_areas: List[QuestArea] = field(default_factory=list)
    attacks: Dict[PlayerClass, List[AttackDefinition]] = field(default_factory=dict)
    default_thresholds: TierThresholds = DEFAULT_THRESHOLDS
    threshold_overrides: Dict[WorkoutType, TierThresholds] = field(default_factory=dict)

    def attacks_for(self, player_class: PlayerClass | str) -> List[AttackDefinition]:
        return list(self.attacks.get(PlayerClass.from_value(player_class), ()))

    def attack(self, player_class: PlayerClass | str, attack_key: str) -> Optional[AttackDefinition]:
        for attack in self.attacks_for(player_class):
            if attack.key == attack_key:
                return attack
        return None

    def area(self, area_name: str) -> Optional[QuestArea]:
        for area in self.quest_areas:
            if area.name == area_name:
                return area
        return None

    def classifier(self) -> EffortClassifier:
        return EffortClassifier(self.threshold_overrides, default=self.default_thresholds)


# ---------------------------------------------------------------------------
# Built-in content
# ---------------------------------------------------------------------------


def _enemy(
    key: str,
    name: str,
    hp: int,
    *armor: tuple[ArmorType, int],
    opening: str = "",
    defeat: str = "",
    trophy: str = "",
    weakness: Affinity | None = None,
) -> EnemyCombatant:
    return EnemyCombatant(
        key=key,
        name=name,
        hp=hp,
        armor=[ArmorSegment(kind, value) for kind, value in armor],
        narrative=EnemyNarrative(opening=opening, defeat=defeat, trophy=trophy),
        weakness=weakness,
    )


def _field_enemies() -> List[EnemyCombatant]:
    return [
        _enemy(
            "field_vicious_rat",
            "Vicious Rat",
            5,
            opening="A rat lunges out at you! It keeps chasing you even though you run away.",
            defeat="The rat scurries away back to its nest.",
            trophy="A little rat that enjoyed chasing you.",
        ),
        _enemy(
            "field_coiled_serpent",
            "Coiled Serpent",
            6,
            opening="Basking on a rock, a serpent rears up and hisses menacingly.",
            defeat="The serpent slithers away. Was that a rattle at the end of its tail?",
            trophy="A five foot snake. Most likely venomous.",
        ),
        _enemy(
            "field_angry_goose",
            "Angry Goose",
            6,
            (ArmorType.STABILITY, 2),
            opening="Uh-oh, it's an angry goose! This may be the most dangerous enemy you'll face.",
            defeat="She was only protecting her goslings. You should have been more careful.",
            trophy="A protective mother goose.",
        ),
        _enemy(
            "field_goblin_stonemason",
            "Goblin Stonemason",
            6,
            (ArmorType.STABILITY, 4),
            opening="A goblin with a brick trowel is building something in the middle of the road.",
            defeat="What was he building? Knowing goblins, nothing good.",
            trophy="A skilled craftsgoblin with a penchant for stonework.",
        ),
        _enemy(
            "field_goblin_architect",
            "Goblin Architect",
            7,
            (ArmorType.STABILITY, 5),
            opening="The planner comes by to see why work has stalled, and decides to fight.",
            defeat="Mason and architect both beaten. What other trouble awaits?",
            trophy="An intelligent goblin with a degree in architecture.",
        ),
        _enemy(
            "field_goblin_interior_decorator",
            "Goblin Interior Decorator",
            8,
            (ArmorType.STABILITY, 5),
            opening="A goblin carrying fabric rolls swats at you with a bolt of cloth.",
            defeat="The decorator runs off. Why is nobody stopping this project?",
            trophy="A goblin who works wonders with limited materials.",
        ),
        _enemy(
            "field_goblin_project_manager",
            "Goblin Project Manager",
            8,
            (ArmorType.STABILITY, 6),
            opening="The boss of the project arrives with a clipboard and a mischievous grin.",
            defeat='"You may have beaten me, but I\'m sending our biggest worker!"',
            trophy="Goblin organization is remarkable when left unchecked.",
        ),
        _enemy(
            "field_ogre_grunt",
            "Ogre Grunt",
            8,
            (ArmorType.STABILITY, 10),
            opening='"You stop project. Ogre smash!" A boulder flies towards you.',
            defeat="The ogre bellows. The ground begins to rumble.",
            trophy="An ogre upset about being stopped mid-project. Relatable.",
        ),
        _enemy(
            "field_goblin_horde",
            "Goblin Horde",
            9,
            (ArmorType.STABILITY, 6),
            opening="A huge gathering of goblins approaches. This was to be their headquarters!",
            defeat="The goblins are routed and run off into the distance. The day is saved!",
            trophy="A goblin stronghold nobody was keeping track of.",
        ),
    ]


def _cave_enemies() -> List[EnemyCombatant]:
    return [
        _enemy(
            "cave_bat_colony",
            "Bat Cloud",
            6,
            (ArmorType.STABILITY, 2),
            opening="A cloud of bats engulfs you. You swing wildly to disperse them.",
            defeat="Something scared these bats from their roosts. What invaded the cave?",
            trophy="Bats driven into a frenzy by something else.",
        ),
        _enemy(
            "cave_id_rat_with_a_sword",
            "Rat with a Sword",
            7,
            (ArmorType.STABILITY, 3),
            opening="Is this the rat from earlier? How did it learn to hold a sword?",
            defeat="You scrape by. This rat keeps getting stronger!",
            trophy="A rat that trained and learned to fight with a sword.",
        ),
        _enemy(
            "cave_id_invading_raccoon",
            "Invading Raccoon",
            9,
            (ArmorType.STABILITY, 5),
            opening='"My gang scared off the bats that lived here. You\'re next!"',
            defeat="The raccoon scampers off. What other dangers lurk here?",
            trophy="A raccoon temporarily living in a cave.",
        ),
        _enemy(
            "cave_raccoon_squad_leader",
            "Raccoon Squad Leader",
            10,
            (ArmorType.STABILITY, 5),
            opening='"You think you\'re tougher than us?" the raccoon leader chirps.',
            defeat="The bats can return to their natural habitat.",
            trophy="A very tough raccoon who leads a crew.",
        ),
        _enemy(
            "cave_deep_cave_troll",
            "Deep Cave Troll",
            15,
            (ArmorType.STABILITY, 10),
            opening="A massive troll appears before you. How did you not hear it coming?",
            defeat="That fight took all your strength.",
            trophy="A frightening troll with thick skin and tremendous strength.",
        ),
    ]


def _seaside_enemies() -> List[EnemyCombatant]:
    return [
        _enemy(
            "sea_iron_crab",
            "Iron Crab",
            4,
            (ArmorType.STRUCTURAL, 2),
            weakness=Affinity.FORCE,
            opening="A crab plated in iron scrapes across the rocks.",
            defeat="The iron shell splits and the crab retreats into the surf.",
            trophy="A living shield. Force breaks its shell before anything else matters.",
        ),
        _enemy(
            "sea_merfolk_guard",
            "Merfolk Guard",
            5,
            (ArmorType.STABILITY, 1),
            (ArmorType.PATTERN, 1),
            weakness=Affinity.PRECISION,
            opening="A merfolk guard stands poised, moving with practiced discipline.",
            defeat="The guard salutes solemnly and dissolves back into the tide.",
            trophy="A disciplined opponent protected by layers.",
        ),
        _enemy(
            "sea_leviathan",
            "Leviathan",
            7,
            (ArmorType.STRUCTURAL, 2),
            (ArmorType.STABILITY, 1),
            weakness=Affinity.ENDURANCE,
            opening="The sea darkens. Something immense rises beneath the waves.",
            defeat="The ocean stills as the Leviathan sinks back into the deep.",
            trophy="A force of nature that demands endurance.",
        ),
    ]


def default_quest_areas() -> List[QuestArea]:
    return [
        QuestArea("Field", _field_enemies(), unlock_miles=0, reward_xp=300, reward_name="Field Button"),
        QuestArea("Cave", _cave_enemies(), unlock_miles=20, reward_xp=600, reward_name="Cave Button"),
        QuestArea(
            "Seaside", _seaside_enemies(), unlock_miles=35, reward_xp=1000, reward_name="Seaside Button"
        ),
    ]


def _attack(key: str, name: str, mana: int, modifier: Any, armor: int, hp: int) -> AttackDefinition:
    return AttackDefinition(
        key=key,
        name=name,
        base_mana_cost=mana,
        required_level=1,
        modifiers=(modifier,),
        effects=(RemoveArmor(armor), RemoveHP(hp)),
    )


def default_attacks() -> Dict[PlayerClass, List[AttackDefinition]]:
    return {
        PlayerClass.WIZARD: [
            _attack("wz_sacred_ritual", "Sacred Ritual", 3, ManaDiscountByEffort(Affinity.RHYTHM, 7, 1), 2, 2),
            _attack("wz_arcane_knowledge", "Arcane Knowledge", 3, AddArmorByEffort(Affinity.PRECISION, 3), 2, 1),
            _attack("wz_staff_strike", "Staff Strike", 3, AddHPByEffort(Affinity.FORCE, 3), 1, 2),
            _attack("wz_unleash_energy", "Unleash Energy", 4, ManaDiscountByEffort(Affinity.ENDURANCE, 3, 1), 4, 4),
        ],
        PlayerClass.KNIGHT: [
            _attack("kn_spear_rush", "Spear Rush", 4, ManaDiscountByEffort(Affinity.ENDURANCE, 6, 1), 2, 3),
            _attack("kn_sword_slash", "Sword Slash", 3, AddHPByEffort(Affinity.FORCE, 3), 1, 2),
            _attack("kn_targeted_strike", "Targeted Strike", 3, AddArmorByEffort(Affinity.PRECISION, 3), 2, 1),
            _attack("kn_commend_oneself", "Commend Oneself", 3, ManaDiscountByEffort(Affinity.RHYTHM, 5, 1), 3, 3),
        ],
        PlayerClass.JESTER: [
            _attack("js_taunting_chant", "Taunting Chant", 3, ManaDiscountByEffort(Affinity.RHYTHM, 7, 1), 2, 2),
            _attack("js_running_gag", "Running Gag", 4, ManaDiscountByEffort(Affinity.ENDURANCE, 3, 1), 4, 4),
            _attack("js_cutting_remark", "Cutting Remark", 3, AddArmorByEffort(Affinity.PRECISION, 3), 2, 1),
            _attack("js_scepter_smack", "Scepter Smack", 3, AddHPByEffort(Affinity.FORCE, 3), 1, 2),
        ],
    }


def default_catalog() -> Catalog:
    return Catalog(
        level_table=LevelTable(DEFAULT_LEVEL_ROWS),
        quest_areas=default_quest_areas(),
        attacks=default_attacks(),
    )


# ---------------------------------------------------------------------------
# TOML overrides
# ---------------------------------------------------------------------------


def _reject_unknown_names(section: str, tables: Mapping[str, Any], enum_type: type) -> None:
    known = one_of(enum_type)
    unknown = [str(name) for name in tables if not known(name)]
    if unknown:
        raise ModelValidationError(
            Catalog,
            [f"[{section}] names unknown {enum_type.__name__} '{name}'" for name in unknown],
        )


def catalog_from_mapping(payload: Mapping[str, Any], *, base: Catalog | None = None) -> Catalog:
    """Build a catalog from parsed TOML, falling back to ``base`` per section."""

    catalog = base or default_catalog()

    levels = payload.get("levels")
    if isinstance(levels, Sequence) and levels:
        catalog.level_table = LevelTable.from_rows(levels)

    thresholds = payload.get("thresholds")
    if isinstance(thresholds, Mapping):
        default = thresholds.get("default")
        if isinstance(default, Mapping):
            catalog.default_thresholds = TierThresholds.from_dict(default)
        overrides = thresholds.get("overrides")
        if isinstance(overrides, Mapping):
            catalog.threshold_overrides = {
                WorkoutType.from_value(name): TierThresholds.from_dict(entry)
                for name, entry in overrides.items()
                if isinstance(entry, Mapping)
            }

    areas = payload.get("areas")
    if isinstance(areas, Sequence) and areas:
        catalog.quest_areas = [QuestArea.from_dict(entry) for entry in areas]

    attacks = payload.get("attacks")
    if isinstance(attacks, Mapping) and attacks:
        _reject_unknown_names("attacks", attacks, PlayerClass)
        parsed: Dict[PlayerClass, List[AttackDefinition]] = dict(catalog.attacks)
        for class_name, entries in attacks.items():
            parsed[PlayerClass.from_value(class_name)] = [
                AttackDefinition.from_dict(entry) for entry in entries
            ]
        catalog.attacks = parsed

    return catalog


def load_catalog(path: Path | None = None) -> Catalog:
    """Load the built-in catalog, applying ``path`` as an override if it exists."""

    if path is None or not path.exists():
        return default_catalog()
    try:
        with path.open("rb") as handle:
            payload = tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ModelValidationError(Catalog, [f"unreadable catalog file {path}: {exc}"]) from exc
    catalog = catalog_from_mapping(payload)
    log.info(
        "Loaded catalog override from %s (%d areas, %d levels)",
        path,
        len(catalog.quest_areas),
        catalog.level_table.max_level,
    )
    return catalog


__all__ = [
    "Catalog",
    "catalog_from_mapping",
    "default_attacks",
    "default_catalog",
    "default_quest_areas",
    "load_catalog",
]
