"""Typed read interface over the host's battle state.

:class:`GameStateProvider` has one method per logical read.  Each method either
returns a fully read value or raises one of the
:class:`~modules.pyre_narrator.exceptions.ExternalReadError` subclasses; it
never hands back half-read data.

:class:`ReflectiveProvider` implements the interface against a live host by
combining a :class:`~modules.pyre_narrator.locator.HandleLocator`, an
:class:`~modules.pyre_narrator.resolver.AccessorResolver` and a frozen
:class:`Schema`.  A schema maps operation identifiers to the ordered accessor
names one host release is known to expose:

``v1``
    The launch build.  Rooms report the player's selection through
    ``GetSelectedRoom`` and there are no corruption or crystal counters.
``v2``
    Later builds.  The selection moved to ``GetActiveRoom``/``GetCurrentRoom``
    and rooms and the save state gained corruption and crystal getters.
``auto``
    ``v2`` candidates followed by the ``v1`` ones, for builds of unknown vintage.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from plugins import PLUGIN_MANAGER

from .exceptions import ConfigurationError, ExternalReadError, LookupFailure, TypeMismatch
from .locator import HandleLocator
from .models import Team, enum_name
from .resolver import AccessorCandidate, AccessorResolver, attribute, method

logger = logging.getLogger(__name__)

Candidates = Tuple[AccessorCandidate, ...]


class GameStateProvider(ABC):
    """One method per logical read of the host's state."""

    # ------------------------------------------------------------------
    # cards
    # ------------------------------------------------------------------
    @abstractmethod
    def hand_cards(self) -> List[Any]:
        """Card handles currently in the player's hand, in hand order."""

    @abstractmethod
    def card_title(self, card: Any) -> str: ...

    @abstractmethod
    def card_cost(self, card: Any) -> int: ...

    @abstractmethod
    def card_type(self, card: Any) -> str:
        """Raw type name such as ``Monster`` or ``Spell``."""

    @abstractmethod
    def card_clan(self, card: Any) -> str: ...

    @abstractmethod
    def card_body_text(self, card: Any) -> str:
        """Description text as the host stores it, markup included."""

    @abstractmethod
    def card_is_upgraded(self, card: Any) -> bool: ...

    @abstractmethod
    def card_text_values(self, card: Any) -> Dict[str, Any]:
        """Values for ``{[...]}`` placeholders keyed by their inner name."""

    # ------------------------------------------------------------------
    # units
    # ------------------------------------------------------------------
    @abstractmethod
    def unit_name(self, unit: Any) -> str: ...

    @abstractmethod
    def unit_hp(self, unit: Any) -> int: ...

    @abstractmethod
    def unit_max_hp(self, unit: Any) -> int: ...

    @abstractmethod
    def unit_attack(self, unit: Any) -> int: ...

    @abstractmethod
    def unit_size(self, unit: Any) -> int: ...

    @abstractmethod
    def unit_team(self, unit: Any) -> Team: ...

    @abstractmethod
    def unit_status_effects(self, unit: Any) -> List[Tuple[str, int]]:
        """``(status id, stacks)`` pairs in host order."""

    @abstractmethod
    def unit_abilities(self, unit: Any) -> List[str]: ...

    @abstractmethod
    def unit_intent(self, unit: Any) -> str: ...

    @abstractmethod
    def unit_can_attack(self, unit: Any) -> bool: ...

    @abstractmethod
    def unit_room_index(self, unit: Any) -> int: ...

    # ------------------------------------------------------------------
    # rooms
    # ------------------------------------------------------------------
    @abstractmethod
    def room(self, index: int) -> Any: ...

    @abstractmethod
    def room_capacity(self, room: Any) -> int: ...

    @abstractmethod
    def room_units(self, room: Any, team: Team) -> List[Any]: ...

    @abstractmethod
    def room_corruption(self, room: Any) -> Tuple[int, int]:
        """``(current, maximum)`` corruption of a room."""

    @abstractmethod
    def room_permanent_corruption(self, room: Any) -> int: ...

    @abstractmethod
    def room_enchantments(self, room: Any) -> List[str]: ...

    @abstractmethod
    def selected_room_index(self) -> int: ...

    # ------------------------------------------------------------------
    # resources
    # ------------------------------------------------------------------
    @abstractmethod
    def energy(self) -> int: ...

    @abstractmethod
    def max_energy(self) -> int: ...

    @abstractmethod
    def gold(self) -> int: ...

    @abstractmethod
    def pyre_hp(self) -> int: ...

    @abstractmethod
    def pyre_max_hp(self) -> int: ...

    @abstractmethod
    def crystals(self) -> int: ...

    @abstractmethod
    def wave(self) -> Tuple[int, int]:
        """``(current, total)`` wave counter."""

    # ------------------------------------------------------------------
    # localisation
    # ------------------------------------------------------------------
    @abstractmethod
    def localize(self, key: str) -> str: ...

    @abstractmethod
    def status_localization_table(self) -> Dict[str, str]:
        """Status id to localisation key prefix."""

    @abstractmethod
    def trigger_localization_table(self) -> Dict[str, str]:
        """Trigger name to localisation key prefix."""

    # ------------------------------------------------------------------
    # actions
    # ------------------------------------------------------------------
    @abstractmethod
    def end_turn(self) -> bool:
        """Ask the host to end the player's turn."""

    def rediscover(self) -> None:
        """Forget everything tied to the previous battle's host objects."""


# ----------------------------------------------------------------------
# operation identifiers
# ----------------------------------------------------------------------
HAND = "card_manager.hand"
CARD_TITLE = "card.title"
CARD_COST = "card.cost"
CARD_TYPE = "card.type"
CARD_CLAN = "card.clan"
CARD_BODY = "card.body_text"
CARD_UPGRADED = "card.is_upgraded"
CARD_CODE_INTS = "card.code_ints"
CARD_EFFECTS = "card.effects"
EFFECT_POWER = "effect.power"
EFFECT_STATUSES = "effect.status_effects"
STATUS_STACK_COUNT = "status_stack.count"
UNIT_NAME = "character.name"
UNIT_DATA = "character.data"
DATA_NAME = "character_data.name"
DATA_NAME_KEY = "character_data.name_key"
UNIT_HP = "character.hp"
UNIT_MAX_HP = "character.max_hp"
UNIT_ATTACK = "character.attack"
UNIT_SIZE = "character.size"
UNIT_TEAM = "character.team"
UNIT_STATUSES = "character.status_effects"
STATUS_ID = "status.id"
STATUS_STACKS = "status.stacks"
UNIT_TRIGGERS = "character.triggers"
TRIGGER_DESCRIPTION = "trigger.description"
UNIT_INTENT = "character.intent"
UNIT_CAN_ATTACK = "character.can_attack"
UNIT_ROOM_INDEX = "character.room_index"
ROOM = "room_manager.room"
SELECTED_ROOM = "room_manager.selected_room"
ROOM_INDEX = "room.index"
ROOM_CAPACITY = "room.capacity"
ROOM_POPULATE = "room.populate"
ROOM_UNITS_FOR_TEAM = "room.units_for_team"
ROOM_UNIT_FIELD = "room.unit_field"
ROOM_CORRUPTION = "room.corruption"
ROOM_MAX_CORRUPTION = "room.max_corruption"
ROOM_PERMANENT_CORRUPTION = "room.permanent_corruption"
ROOM_ENCHANTMENTS = "room.enchantments"
ENCHANTMENT_NAME = "enchantment.name"
ENERGY = "player_manager.energy"
MAX_ENERGY = "player_manager.max_energy"
GOLD = "save_manager.gold"
PYRE_HP = "save_manager.pyre_hp"
PYRE_MAX_HP = "save_manager.pyre_max_hp"
CRYSTALS = "save_manager.crystals"
WAVE = "combat_manager.wave"
TOTAL_WAVES = "combat_manager.total_waves"
END_TURN = "combat_manager.end_turn"
END_TURN_CLICK = "end_turn_button.click"
LOCALIZE = "localization.localize"
STATUS_TABLE = "status_effect_manager.localization_table"
TRIGGER_TABLE = "character_trigger_data.localization_table"


@dataclass(frozen=True)
class Schema:
    """Frozen candidate table for one host release."""

    version: str
    description: str
    candidates: Mapping[str, Candidates]

    def __post_init__(self) -> None:
        object.__setattr__(self, "candidates", MappingProxyType(dict(self.candidates)))

    def lookup(self, operation: str) -> Candidates:
        return self.candidates.get(operation, ())

    def supports(self, operation: str) -> bool:
        return bool(self.candidates.get(operation))


_COMMON: Dict[str, Candidates] = {
    HAND: (method("GetHand"), attribute("hand")),
    CARD_TITLE: (method("GetTitle"), method("GetName"), attribute("title")),
    CARD_COST: (method("GetCostWithoutAnyModifications"), method("GetCost"), attribute("cost")),
    CARD_TYPE: (method("GetCardType"), attribute("cardType")),
    CARD_CLAN: (method("GetClanName"), method("GetLinkedClassName"), attribute("clan")),
    CARD_BODY: (method("GetCardBodyText"), method("GetDescription"), attribute("description")),
    CARD_UPGRADED: (method("IsUpgraded"), method("HasUpgrades"), attribute("upgraded")),
    CARD_CODE_INTS: (attribute("codeInts"), attribute("_codeInts")),
    CARD_EFFECTS: (method("GetEffects"), attribute("effects")),
    EFFECT_POWER: (method("GetParamInt"), attribute("paramInt"), attribute("paramPower")),
    EFFECT_STATUSES: (attribute("paramStatusEffects"),),
    STATUS_STACK_COUNT: (attribute("count"),),
    UNIT_NAME: (method("GetName"), attribute("name")),
    UNIT_DATA: (method("GetCharacterDataRead"), method("GetCharacterData")),
    DATA_NAME: (method("GetName"),),
    DATA_NAME_KEY: (method("GetNameKey"),),
    UNIT_HP: (method("GetHP"), attribute("hp")),
    UNIT_MAX_HP: (method("GetMaxHP"), attribute("max_hp")),
    UNIT_ATTACK: (method("GetAttackDamage"), attribute("attack")),
    UNIT_SIZE: (method("GetSize"), attribute("size")),
    UNIT_TEAM: (method("GetTeamType"), attribute("team")),
    UNIT_STATUSES: (method("GetStatusEffects"), attribute("statusEffects")),
    STATUS_ID: (method("GetStatusId"), attribute("statusId"), attribute("id")),
    STATUS_STACKS: (method("GetStacks"), attribute("count"), attribute("stacks")),
    UNIT_TRIGGERS: (method("GetTriggers"), method("GetCharacterTriggers"), attribute("triggers")),
    TRIGGER_DESCRIPTION: (method("GetDescription"), method("GetTriggerDescription"), attribute("description")),
    UNIT_INTENT: (method("GetIntentDescription"), attribute("intent")),
    UNIT_CAN_ATTACK: (method("CanAttack"),),
    UNIT_ROOM_INDEX: (method("GetCurrentRoomIndex"), attribute("roomIndex")),
    ROOM: (method("GetRoom", 1),),
    ROOM_INDEX: (method("GetRoomIndex"), attribute("roomIndex")),
    ROOM_POPULATE: (method("AddCharactersToList", 2),),
    ROOM_UNITS_FOR_TEAM: (method("GetCharactersInRoom", 1),),
    ROOM_UNIT_FIELD: (attribute("characters"), attribute("_characters"), attribute("charactersInRoom")),
    ROOM_ENCHANTMENTS: (method("GetEnchantments"), attribute("enchantments")),
    ENCHANTMENT_NAME: (method("GetName"), attribute("name")),
    ENERGY: (method("GetEnergy"), attribute("energy")),
    MAX_ENERGY: (method("GetMaxEnergy"), method("GetEnergyPerTurn"), attribute("maxEnergy")),
    GOLD: (method("GetGold"), attribute("gold")),
    PYRE_HP: (method("GetTowerHP"), attribute("towerHP")),
    PYRE_MAX_HP: (method("GetMaxTowerHP"), attribute("maxTowerHP")),
    WAVE: (method("GetCurrentWave"), method("GetCurrentWaveIndex")),
    TOTAL_WAVES: (method("GetTotalWaves"), method("GetNumWaves")),
    END_TURN: (method("EndPlayerTurn"), method("PlayerEndTurn"), method("EndTurn")),
    END_TURN_CLICK: (method("OnClick"), method("Click")),
    LOCALIZE: (method("Localize", 1), method("GetTranslation", 1)),
    STATUS_TABLE: (attribute("StatusIdToLocalizationExpression"),),
    TRIGGER_TABLE: (attribute("TriggerToLocalizationExpression"),),
}

V1 = Schema(
    version="v1",
    description="Launch build: GetSelectedRoom, no corruption or crystals.",
    candidates={
        **_COMMON,
        ROOM_CAPACITY: (method("GetCapacity"),),
        SELECTED_ROOM: (method("GetSelectedRoom"),),
    },
)

V2 = Schema(
    version="v2",
    description="Later builds: GetActiveRoom/GetCurrentRoom, corruption and crystal counters.",
    candidates={
        **_COMMON,
        ROOM_CAPACITY: (method("GetMaxCapacity"), method("GetCapacity")),
        SELECTED_ROOM: (method("GetActiveRoom"), method("GetCurrentRoom"), method("GetSelectedRoomIndex")),
        ROOM_CORRUPTION: (method("GetCorruption"), method("GetCurrentCorruption")),
        ROOM_MAX_CORRUPTION: (method("GetMaxCorruption"),),
        ROOM_PERMANENT_CORRUPTION: (method("GetPermanentCorruption"),),
        CRYSTALS: (method("GetCrystals"), method("GetPactCrystals")),
    },
)


def merge_schemas(version: str, description: str, *schemas: Schema) -> Schema:
    """Concatenate the candidate lists of ``schemas`` in order, dropping repeats."""

    merged: Dict[str, List[AccessorCandidate]] = {}
    for schema in schemas:
        for operation, candidates in schema.candidates.items():
            bucket = merged.setdefault(operation, [])
            for candidate in candidates:
                if candidate not in bucket:
                    bucket.append(candidate)
    return Schema(version, description, {op: tuple(values) for op, values in merged.items()})


AUTO = merge_schemas("auto", "Unknown build: v2 names first, then v1.", V2, V1)

SCHEMAS: Dict[str, Schema] = {schema.version: schema for schema in (V1, V2, AUTO)}

# Which singleton answers each manager level read.
_MANAGER_FOR: Dict[str, str] = {
    HAND: "CardManager",
    ROOM: "RoomManager",
    SELECTED_ROOM: "RoomManager",
    ENERGY: "PlayerManager",
    MAX_ENERGY: "PlayerManager",
    GOLD: "SaveManager",
    PYRE_HP: "SaveManager",
    PYRE_MAX_HP: "SaveManager",
    CRYSTALS: "SaveManager",
    WAVE: "CombatManager",
    TOTAL_WAVES: "CombatManager",
    END_TURN: "CombatManager",
}

_TEAM_TYPE_NAME = "Team.Type"
_HOST_TEAM_NAMES = {Team.FRIENDLY: "Monsters", Team.ENEMY: "Heroes"}


def _type_name(target: Any) -> str:
    if isinstance(target, str):
        return target
    return target.__name__ if isinstance(target, type) else type(target).__name__


def _as_int(value: Any, operation: str, target: Any) -> int:
    if isinstance(value, bool):
        raise TypeMismatch(operation, _type_name(target), "expected an integer, got a boolean")
    if isinstance(value, int):
        return int(value)
    if isinstance(value, float) and value.is_integer():
        return int(value)
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise TypeMismatch(operation, _type_name(target), f"expected an integer, got {value!r}") from None


def _as_text(value: Any, operation: str, target: Any) -> str:
    if value is None:
        raise TypeMismatch(operation, _type_name(target), "expected text, got None")
    return str(value)


def _as_bool(value: Any, operation: str, target: Any) -> bool:
    if value is None:
        raise TypeMismatch(operation, _type_name(target), "expected a boolean, got None")
    return bool(value)


def _as_list(value: Any, operation: str, target: Any) -> List[Any]:
    if value is None or isinstance(value, (str, bytes)):
        raise TypeMismatch(operation, _type_name(target), f"expected a sequence, got {value!r}")
    try:
        return list(value)
    except TypeError:
        raise TypeMismatch(operation, _type_name(target), f"expected a sequence, got {type(value).__name__}") from None


def _as_mapping(value: Any, operation: str, target: Any) -> Dict[str, str]:
    if hasattr(value, "items"):
        return {str(key): str(item) for key, item in value.items()}
    raise TypeMismatch(operation, _type_name(target), f"expected a mapping, got {type(value).__name__}")



class TeamAdapter:
    """Converts between :class:`Team` and the host's team enumeration.

    The host enum is looked up once and kept until :meth:`reset`.  Hosts that
    do not publish the enum get the member names as plain strings.
    """

    def __init__(self, locator: HandleLocator) -> None:
        self._locator = locator
        self._values: Optional[Dict[Team, Any]] = None

    def reset(self) -> None:
        self._values = None

    def _load(self) -> Dict[Team, Any]:
        enum_type = self._locator.find_type(_TEAM_TYPE_NAME)
        values: Dict[Team, Any] = {}
        for team, host_name in _HOST_TEAM_NAMES.items():
            member = getattr(enum_type, host_name, None) if enum_type is not None else None
            values[team] = member if member is not None else host_name
        return values

    def to_host(self, team: Team) -> Any:
        if self._values is None:
            self._values = self._load()
        return self._values[team]

    @staticmethod
    def from_host(value: Any, operation: str, target: Any) -> Team:
        name = enum_name(value)
        for team, host_name in _HOST_TEAM_NAMES.items():
            if name == host_name:
                return team
        raise TypeMismatch(operation, _type_name(target), f"unknown team {value!r}")


class RoomPopulator:
    """Reads a room's occupants for one team.

    Tried in order: the host's populate-list call into a fresh list, a per-team
    getter, and finally the room's raw character field filtered by team.
    """

    def __init__(self, provider: "ReflectiveProvider", list_factory: Callable[[], Any] = list) -> None:
        self._provider = provider
        self._list_factory = list_factory

    def __call__(self, room: Any, team: Team) -> List[Any]:
        provider = self._provider
        host_team = provider.teams.to_host(team)

        populate = provider.bind(room, ROOM_POPULATE)
        if populate is not None:
            collected = self._list_factory()
            populate(collected, host_team)
            return _as_list(collected, ROOM_POPULATE, room)

        per_team = provider.bind(room, ROOM_UNITS_FOR_TEAM)
        if per_team is not None:
            return _as_list(per_team(host_team), ROOM_UNITS_FOR_TEAM, room)

        field = provider.bind(room, ROOM_UNIT_FIELD)
        if field is None:
            raise LookupFailure(ROOM_POPULATE, _type_name(room), "no populate call or character field")
        selected = []
        for unit in _as_list(field(), ROOM_UNIT_FIELD, room):
            try:
                unit_team = provider.unit_team(unit)
            except ExternalReadError:
                # Unknown side: report under both teams and let identity
                # de-duplication keep the first sighting.
                selected.append(unit)
                continue
            if unit_team is team:
                selected.append(unit)
        return selected


class ReflectiveProvider(GameStateProvider):
    """:class:`GameStateProvider` backed by a schema's candidate table."""

    def __init__(
        self,
        locator: HandleLocator,
        resolver: Optional[AccessorResolver] = None,
        schema_version: str = "auto",
        *,
        list_factory: Callable[[], Any] = list,
    ) -> None:
        try:
            self.schema = SCHEMAS[schema_version]
        except KeyError:
            raise ConfigurationError(
                f"Unknown schema version {schema_version!r}; expected one of {', '.join(SCHEMAS)}"
            ) from None
        self.locator = locator
        self.resolver = resolver or AccessorResolver()
        self.teams = TeamAdapter(locator)
        self.populate_room = RoomPopulator(self, list_factory)
        logger.debug("Reflective provider using schema %s (%s)", self.schema.version, self.schema.description)

    # ------------------------------------------------------------------
    # plumbing
    # ------------------------------------------------------------------
    def bind(self, target: Any, operation: str):
        candidates = self.schema.lookup(operation)
        if target is None or not candidates:
            return None
        return self.resolver.resolve(target, operation, candidates)

    def read(self, target: Any, operation: str, *args: Any) -> Any:
        if not self.schema.supports(operation):
            raise LookupFailure(operation, _type_name(target), f"not part of schema {self.schema.version}")
        if target is None:
            raise LookupFailure(operation, None, "no target")
        accessor = self.bind(target, operation)
        if accessor is None:
            raise LookupFailure(operation, _type_name(target), "no matching accessor")
        return accessor(*args)

    def read_manager(self, operation: str, *args: Any) -> Any:
        """Read ``operation`` from its manager, re-locating the manager once on a lookup failure."""

        manager = _MANAGER_FOR[operation]
        try:
            return self.read(self._manager(manager, operation), operation, *args)
        except LookupFailure:
            if not self.schema.supports(operation):
                raise
            logger.debug("Lookup of %s failed; re-locating %s", operation, manager)
            self.locator.invalidate(manager)
            return self.read(self._manager(manager, operation), operation, *args)

    def _manager(self, name: str, operation: str) -> Any:
        target = self.locator.get(name)
        if target is None:
            raise LookupFailure(operation, name, "manager not located")
        return target

    def _static(self, type_name: str, operation: str) -> Any:
        target = self.locator.find_type(type_name)
        if target is None:
            raise LookupFailure(operation, type_name, "type not located")
        return target

    def rediscover(self) -> None:
        self.locator.rediscover()
        self.teams.reset()

    # ------------------------------------------------------------------
    # cards
    # ------------------------------------------------------------------
    def hand_cards(self) -> List[Any]:
        return _as_list(self.read_manager(HAND), HAND, "CardManager")

    def card_title(self, card: Any) -> str:
        return _as_text(self.read(card, CARD_TITLE), CARD_TITLE, card)

    def card_cost(self, card: Any) -> int:
        return _as_int(self.read(card, CARD_COST), CARD_COST, card)

    def card_type(self, card: Any) -> str:
        value = self.read(card, CARD_TYPE)
        if value is None:
            raise TypeMismatch(CARD_TYPE, _type_name(card), "card type is None")
        return enum_name(value)

    def card_clan(self, card: Any) -> str:
        return _as_text(self.read(card, CARD_CLAN), CARD_CLAN, card)

    def card_body_text(self, card: Any) -> str:
        return _as_text(self.read(card, CARD_BODY), CARD_BODY, card)

    def card_is_upgraded(self, card: Any) -> bool:
        return _as_bool(self.read(card, CARD_UPGRADED), CARD_UPGRADED, card)

    def card_text_values(self, card: Any) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        if self.bind(card, CARD_CODE_INTS) is not None:
            for position, value in enumerate(_as_list(self.read(card, CARD_CODE_INTS), CARD_CODE_INTS, card)):
                values[f"codeint{position}"] = value
        if self.bind(card, CARD_EFFECTS) is not None:
            effects = _as_list(self.read(card, CARD_EFFECTS), CARD_EFFECTS, card)
            for position, effect in enumerate(effects):
                if self.bind(effect, EFFECT_POWER) is not None:
                    values[f"effect{position}.power"] = self.read(effect, EFFECT_POWER)
                if self.bind(effect, EFFECT_STATUSES) is None:
                    continue
                stacks = self.read(effect, EFFECT_STATUSES) or ()
                for status_position, stack in enumerate(_as_list(stacks, EFFECT_STATUSES, effect)):
                    values[f"effect{position}.status{status_position}.power"] = self.read(stack, STATUS_STACK_COUNT)
        return values

    # ------------------------------------------------------------------
    # units
    # ------------------------------------------------------------------
    def unit_name(self, unit: Any) -> str:
        try:
            return _as_text(self.read(unit, UNIT_NAME), UNIT_NAME, unit)
        except LookupFailure:
            data = self.read(unit, UNIT_DATA)
        try:
            return _as_text(self.read(data, DATA_NAME), DATA_NAME, data)
        except LookupFailure:
            key = _as_text(self.read(data, DATA_NAME_KEY), DATA_NAME_KEY, data)
        return self.localize(key)

    def unit_hp(self, unit: Any) -> int:
        return _as_int(self.read(unit, UNIT_HP), UNIT_HP, unit)

    def unit_max_hp(self, unit: Any) -> int:
        return _as_int(self.read(unit, UNIT_MAX_HP), UNIT_MAX_HP, unit)

    def unit_attack(self, unit: Any) -> int:
        return _as_int(self.read(unit, UNIT_ATTACK), UNIT_ATTACK, unit)

    def unit_size(self, unit: Any) -> int:
        return _as_int(self.read(unit, UNIT_SIZE), UNIT_SIZE, unit)

    def unit_team(self, unit: Any) -> Team:
        return self.teams.from_host(self.read(unit, UNIT_TEAM), UNIT_TEAM, unit)

    def unit_status_effects(self, unit: Any) -> List[Tuple[str, int]]:
        effects = []
        for entry in _as_list(self.read(unit, UNIT_STATUSES), UNIT_STATUSES, unit):
            if isinstance(entry, tuple) and len(entry) == 2:
                status_id, stacks = entry
            else:
                status_id = self.read(entry, STATUS_ID)
                stacks = self.read(entry, STATUS_STACKS)
            effects.append(
                (_as_text(status_id, STATUS_ID, entry), _as_int(stacks, STATUS_STACKS, entry))
            )
        return effects

    def unit_abilities(self, unit: Any) -> List[str]:
        abilities = []
        for trigger in _as_list(self.read(unit, UNIT_TRIGGERS), UNIT_TRIGGERS, unit):
            if isinstance(trigger, str):
                abilities.append(trigger)
                continue
            abilities.append(_as_text(self.read(trigger, TRIGGER_DESCRIPTION), TRIGGER_DESCRIPTION, trigger))
        return abilities

    def unit_intent(self, unit: Any) -> str:
        return _as_text(self.read(unit, UNIT_INTENT), UNIT_INTENT, unit)

    def unit_can_attack(self, unit: Any) -> bool:
        return _as_bool(self.read(unit, UNIT_CAN_ATTACK), UNIT_CAN_ATTACK, unit)

    def unit_room_index(self, unit: Any) -> int:
        return _as_int(self.read(unit, UNIT_ROOM_INDEX), UNIT_ROOM_INDEX, unit)

    # ------------------------------------------------------------------
    # rooms
    # ------------------------------------------------------------------
    def room(self, index: int) -> Any:
        room = self.read_manager(ROOM, index)
        if room is None:
            raise TypeMismatch(ROOM, "RoomManager", f"room {index} is None")
        return room

    def room_capacity(self, room: Any) -> int:
        return _as_int(self.read(room, ROOM_CAPACITY), ROOM_CAPACITY, room)

    def room_units(self, room: Any, team: Team) -> List[Any]:
        return self.populate_room(room, team)

    def room_corruption(self, room: Any) -> Tuple[int, int]:
        current = _as_int(self.read(room, ROOM_CORRUPTION), ROOM_CORRUPTION, room)
        maximum = _as_int(self.read(room, ROOM_MAX_CORRUPTION), ROOM_MAX_CORRUPTION, room)
        return current, maximum

    def room_permanent_corruption(self, room: Any) -> int:
        return _as_int(self.read(room, ROOM_PERMANENT_CORRUPTION), ROOM_PERMANENT_CORRUPTION, room)

    def room_enchantments(self, room: Any) -> List[str]:
        names = []
        for enchantment in _as_list(self.read(room, ROOM_ENCHANTMENTS), ROOM_ENCHANTMENTS, room):
            if isinstance(enchantment, str):
                names.append(enchantment)
            else:
                names.append(_as_text(self.read(enchantment, ENCHANTMENT_NAME), ENCHANTMENT_NAME, enchantment))
        return names

    def selected_room_index(self) -> int:
        selected = self.read_manager(SELECTED_ROOM)
        if selected is None:
            raise TypeMismatch(SELECTED_ROOM, "RoomManager", "no room selected")
        if isinstance(selected, int) and not isinstance(selected, bool):
            return int(selected)
        return _as_int(self.read(selected, ROOM_INDEX), ROOM_INDEX, selected)

    # ------------------------------------------------------------------
    # resources
    # ------------------------------------------------------------------
    def energy(self) -> int:
        return _as_int(self.read_manager(ENERGY), ENERGY, "PlayerManager")

    def max_energy(self) -> int:
        return _as_int(self.read_manager(MAX_ENERGY), MAX_ENERGY, "PlayerManager")

    def gold(self) -> int:
        return _as_int(self.read_manager(GOLD), GOLD, "SaveManager")

    def pyre_hp(self) -> int:
        return _as_int(self.read_manager(PYRE_HP), PYRE_HP, "SaveManager")

    def pyre_max_hp(self) -> int:
        return _as_int(self.read_manager(PYRE_MAX_HP), PYRE_MAX_HP, "SaveManager")

    def crystals(self) -> int:
        return _as_int(self.read_manager(CRYSTALS), CRYSTALS, "SaveManager")

    def wave(self) -> Tuple[int, int]:
        current = _as_int(self.read_manager(WAVE), WAVE, "CombatManager")
        total = _as_int(self.read_manager(TOTAL_WAVES), TOTAL_WAVES, "CombatManager")
        return current, total

    # ------------------------------------------------------------------
    # localisation
    # ------------------------------------------------------------------
    def localize(self, key: str) -> str:
        localization = self._static("Localization", LOCALIZE)
        return _as_text(self.read(localization, LOCALIZE, key), LOCALIZE, localization)

    def status_localization_table(self) -> Dict[str, str]:
        manager = self._static("StatusEffectManager", STATUS_TABLE)
        return _as_mapping(self.read(manager, STATUS_TABLE), STATUS_TABLE, manager)

    def trigger_localization_table(self) -> Dict[str, str]:
        trigger_data = self._static("CharacterTriggerData", TRIGGER_TABLE)
        return _as_mapping(self.read(trigger_data, TRIGGER_TABLE), TRIGGER_TABLE, trigger_data)

    # ------------------------------------------------------------------
    # actions
    # ------------------------------------------------------------------
    def end_turn(self) -> bool:
        try:
            self.read_manager(END_TURN)
            return True
        except LookupFailure:
            logger.debug("No end turn call on CombatManager; trying the end turn button")
        button = self.locator.get("EndTurnButton")
        if button is None:
            raise LookupFailure(END_TURN, "CombatManager", "no end turn call and no end turn button")
        self.read(button, END_TURN_CLICK)
        return True


def create_provider(
    locator: HandleLocator,
    schema_version: str = "auto",
    resolver: Optional[AccessorResolver] = None,
) -> ReflectiveProvider:
    return ReflectiveProvider(locator, resolver or AccessorResolver(), schema_version)


__all__ = [
    "AUTO",
    "GameStateProvider",
    "ReflectiveProvider",
    "RoomPopulator",
    "SCHEMAS",
    "Schema",
    "TeamAdapter",
    "V1",
    "V2",
    "create_provider",
    "merge_schemas",
]

PLUGIN_MANAGER.expose_module("modules.pyre_narrator.provider")
