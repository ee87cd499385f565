"""Plain records describing a snapshot of the host's battle state.

Every numeric field carries a defined sentinel instead of ``None`` so the
rendering code only ever has to compare against :data:`UNKNOWN`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple

from plugins import PLUGIN_MANAGER

UNKNOWN = -1
PYRE_ROOM_INDEX = 3
COMBAT_ROOM_INDICES = (0, 1, 2)
DEFAULT_ROOM_CAPACITY = 7

# Lower bound of each band, highest first.
THREAT_BANDS: Tuple[Tuple[int, str], ...] = (
    (12, "extreme"),
    (8, "high"),
    (4, "moderate"),
    (0, "low"),
)


class Team(str, Enum):
    FRIENDLY = "friendly"
    ENEMY = "enemy"


class CardCategory(str, Enum):
    UNIT = "unit"
    SPELL = "spell"
    BLIGHT = "blight"
    OTHER = "other"

    @classmethod
    def from_raw(cls, raw: Optional[str]) -> "CardCategory":
        """Map a host card type name (``Monster``, ``Spell``, ``Blight`` ...)."""

        if not raw:
            return cls.OTHER
        value = str(raw).rsplit(".", 1)[-1].lower()
        if "monster" in value or value == "unit":
            return cls.UNIT
        if "spell" in value:
            return cls.SPELL
        if "blight" in value or "junk" in value or "scourge" in value:
            return cls.BLIGHT
        return cls.OTHER


def threat_band(crystals: int) -> Optional[str]:
    if crystals < 0:
        return None
    for lower, label in THREAT_BANDS:
        if crystals >= lower:
            return label
    return None


def enum_name(value: Any) -> str:
    """Member name of a host enum value, Python or Java."""

    name = getattr(value, "name", None)
    if callable(name):
        # Java enums expose name() as a method.
        name = name()
    return str(name if name is not None else value).rsplit(".", 1)[-1]


def floor_label(index: int) -> str:
    if index == PYRE_ROOM_INDEX:
        return "Pyre room"
    if index in COMBAT_ROOM_INDICES:
        return f"Floor {index + 1}"
    return "Unknown floor"


@dataclass(frozen=True)
class StatusEffect:
    name: str
    stacks: int = UNKNOWN

    def label(self) -> str:
        return f"{self.name} {self.stacks}" if self.stacks > 0 else self.name


@dataclass(frozen=True)
class Unit:
    """One combatant as read from the host."""

    name: str = "Unit"
    hp: int = UNKNOWN
    max_hp: int = UNKNOWN
    attack: int = UNKNOWN
    size: int = 1
    team: Team = Team.FRIENDLY
    status_effects: Tuple[StatusEffect, ...] = ()
    abilities: Tuple[str, ...] = ()
    intent: Optional[str] = None
    floor_index: int = UNKNOWN
    handle: Any = field(default=None, compare=False, repr=False)

    @property
    def is_enemy(self) -> bool:
        return self.team is Team.ENEMY

    def status_summary(self) -> str:
        return ", ".join(effect.label() for effect in self.status_effects)


@dataclass(frozen=True)
class Corruption:
    current: int = UNKNOWN
    maximum: int = UNKNOWN
    permanent: int = UNKNOWN


@dataclass(frozen=True)
class Floor:
    """A combat lane (indices 0-2) or the pyre room (index 3)."""

    index: int
    used_capacity: int = 0
    max_capacity: int = DEFAULT_ROOM_CAPACITY
    units: Tuple[Unit, ...] = ()
    corruption: Optional[Corruption] = None
    enchantments: Tuple[str, ...] = ()

    @property
    def is_pyre_room(self) -> bool:
        return self.index == PYRE_ROOM_INDEX

    @property
    def friendly_units(self) -> Tuple[Unit, ...]:
        return tuple(unit for unit in self.units if not unit.is_enemy)

    @property
    def enemy_units(self) -> Tuple[Unit, ...]:
        return tuple(unit for unit in self.units if unit.is_enemy)

    @property
    def label(self) -> str:
        return floor_label(self.index)


@dataclass(frozen=True)
class Card:
    title: str = "Card"
    cost: int = UNKNOWN
    category: CardCategory = CardCategory.OTHER
    clan: Optional[str] = None
    description: str = ""
    keyword_explanations: str = ""
    upgraded: bool = False
    handle: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class ResourceSnapshot:
    energy: int = UNKNOWN
    max_energy: int = UNKNOWN
    gold: int = UNKNOWN
    pyre_hp: int = UNKNOWN
    pyre_max_hp: int = UNKNOWN
    hand_size: int = UNKNOWN
    crystals: int = UNKNOWN
    wave: int = UNKNOWN
    total_waves: int = UNKNOWN

    @property
    def threat(self) -> Optional[str]:
        return threat_band(self.crystals)


__all__ = [
    "COMBAT_ROOM_INDICES",
    "Card",
    "CardCategory",
    "Corruption",
    "DEFAULT_ROOM_CAPACITY",
    "Floor",
    "PYRE_ROOM_INDEX",
    "ResourceSnapshot",
    "StatusEffect",
    "THREAT_BANDS",
    "Team",
    "UNKNOWN",
    "Unit",
    "enum_name",
    "floor_label",
    "threat_band",
]

PLUGIN_MANAGER.expose_module("modules.pyre_narrator.models")
