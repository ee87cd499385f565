"""Best-effort snapshots of the host's battle state.

Every field of every record is read on its own.  A failed read is logged at
debug level and replaced by the field's sentinel so one missing accessor never
costs the rest of the snapshot.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, List, Optional, TypeVar

from plugins import PLUGIN_MANAGER

from .exceptions import ExternalReadError
from .keywords import KeywordGlossary
from .models import (
    COMBAT_ROOM_INDICES,
    DEFAULT_ROOM_CAPACITY,
    PYRE_ROOM_INDEX,
    UNKNOWN,
    Card,
    CardCategory,
    Corruption,
    Floor,
    ResourceSnapshot,
    StatusEffect,
    Team,
    Unit,
)
from .provider import GameStateProvider
from .text import normalize

logger = logging.getLogger(__name__)

T = TypeVar("T")

ALL_ROOM_INDICES = COMBAT_ROOM_INDICES + (PYRE_ROOM_INDEX,)


class StateExtractor:
    """Reads :mod:`~modules.pyre_narrator.models` records through a provider."""

    def __init__(self, provider: GameStateProvider, glossary: Optional[KeywordGlossary] = None) -> None:
        self.provider = provider
        self._owns_glossary = glossary is None
        self.glossary = glossary if glossary is not None else KeywordGlossary.with_fallbacks()

    def _field(self, read: Callable[[], T], default: T, label: str) -> T:
        try:
            return read()
        except ExternalReadError as exc:
            logger.debug("Using default for %s: %s", label, exc)
            return default

    def rediscover(self) -> None:
        """Re-locate host singletons and reload the glossary for a new battle."""

        self.provider.rediscover()
        if self._owns_glossary:
            self.glossary = KeywordGlossary.from_provider(self.provider)

    # ------------------------------------------------------------------
    # cards
    # ------------------------------------------------------------------
    def extract_card(self, handle: Any) -> Card:
        provider = self.provider
        values = self._field(lambda: provider.card_text_values(handle), {}, "card text values")
        description = normalize(self._field(lambda: provider.card_body_text(handle), "", "card body"), values)
        clan = normalize(self._field(lambda: provider.card_clan(handle), "", "card clan"))
        return Card(
            title=normalize(self._field(lambda: provider.card_title(handle), "", "card title")) or "Card",
            cost=self._field(lambda: provider.card_cost(handle), UNKNOWN, "card cost"),
            category=CardCategory.from_raw(self._field(lambda: provider.card_type(handle), None, "card type")),
            clan=clan or None,
            description=description,
            keyword_explanations=self.glossary.annotate(description),
            upgraded=self._field(lambda: provider.card_is_upgraded(handle), False, "card upgraded"),
            handle=handle,
        )

    def extract_hand(self) -> Optional[List[Card]]:
        """Cards in hand, or ``None`` when the hand itself cannot be read."""

        try:
            handles = self.provider.hand_cards()
        except ExternalReadError as exc:
            logger.debug("Hand unavailable: %s", exc)
            return None
        return [self.extract_card(handle) for handle in handles]

    # ------------------------------------------------------------------
    # units
    # ------------------------------------------------------------------
    def extract_unit(self, handle: Any, floor_index: Optional[int] = None, team: Team = Team.FRIENDLY) -> Unit:
        provider = self.provider
        glossary = self.glossary
        statuses = self._field(lambda: provider.unit_status_effects(handle), [], "unit status effects")
        abilities = self._field(lambda: provider.unit_abilities(handle), [], "unit abilities")
        unit_team = self._field(lambda: provider.unit_team(handle), team, "unit team")
        attack = self._field(lambda: provider.unit_attack(handle), UNKNOWN, "unit attack")

        intent = None
        if unit_team is Team.ENEMY:
            intent = normalize(self._field(lambda: provider.unit_intent(handle), "", "unit intent")) or None
            if intent is None and attack >= 0 and self._field(
                lambda: provider.unit_can_attack(handle), False, "unit can attack"
            ):
                intent = f"will attack for {attack}"

        if floor_index is None:
            floor_index = self._field(lambda: provider.unit_room_index(handle), UNKNOWN, "unit room index")

        size = self._field(lambda: provider.unit_size(handle), 1, "unit size")
        return Unit(
            name=normalize(self._field(lambda: provider.unit_name(handle), "", "unit name")) or "Unit",
            hp=self._field(lambda: provider.unit_hp(handle), UNKNOWN, "unit hp"),
            max_hp=self._field(lambda: provider.unit_max_hp(handle), UNKNOWN, "unit max hp"),
            attack=attack,
            size=size if size > 0 else 1,
            team=unit_team,
            status_effects=tuple(
                StatusEffect(glossary.status_name(status_id), stacks) for status_id, stacks in statuses
            ),
            abilities=tuple(text for text in (normalize(ability) for ability in abilities) if text),
            intent=intent,
            floor_index=floor_index,
            handle=handle,
        )

    # ------------------------------------------------------------------
    # floors
    # ------------------------------------------------------------------
    def _occupants(self, room: Any) -> List[tuple]:
        seen = set()
        occupants = []
        for team in (Team.FRIENDLY, Team.ENEMY):
            for handle in self._field(lambda: self.provider.room_units(room, team), [], f"{team.value} occupants"):
                if handle is None or id(handle) in seen:
                    continue
                seen.add(id(handle))
                occupants.append((handle, team))
        return occupants

    def extract_floor(self, index: int) -> Optional[Floor]:
        """Snapshot of room ``index``, or ``None`` when the room cannot be read."""

        if index not in ALL_ROOM_INDICES:
            return None
        provider = self.provider
        try:
            room = provider.room(index)
        except ExternalReadError as exc:
            logger.debug("Room %d unavailable: %s", index, exc)
            return None

        units = [self.extract_unit(handle, index, team) for handle, team in self._occupants(room)]
        # Friendly before enemy regardless of how the host ordered them.
        units.sort(key=lambda unit: unit.is_enemy)

        corruption = None
        levels = self._field(lambda: provider.room_corruption(room), None, "room corruption")
        if levels is not None:
            permanent = self._field(lambda: provider.room_permanent_corruption(room), UNKNOWN, "permanent corruption")
            corruption = Corruption(levels[0], levels[1], permanent)

        enchantments = self._field(lambda: provider.room_enchantments(room), [], "room enchantments")
        return Floor(
            index=index,
            used_capacity=sum(unit.size for unit in units if not unit.is_enemy),
            max_capacity=self._field(lambda: provider.room_capacity(room), DEFAULT_ROOM_CAPACITY, "room capacity"),
            units=tuple(units),
            corruption=corruption,
            enchantments=tuple(name for name in (normalize(item) for item in enchantments) if name),
        )

    def extract_floors(self, indices: Iterable[int] = ALL_ROOM_INDICES) -> List[Floor]:
        floors = []
        for index in indices:
            floor = self.extract_floor(index)
            if floor is not None:
                floors.append(floor)
        return floors

    def units(self, team: Optional[Team] = None) -> List[Unit]:
        """Units on the combat floors, bottom to top, friendly before enemy.

        The pyre room is never part of these rosters.
        """

        roster = []
        for floor in self.extract_floors(COMBAT_ROOM_INDICES):
            roster.extend(unit for unit in floor.units if team is None or unit.team is team)
        return roster

    def selected_floor(self) -> int:
        index = self._field(self.provider.selected_room_index, UNKNOWN, "selected room")
        return index if index in ALL_ROOM_INDICES else UNKNOWN

    # ------------------------------------------------------------------
    # resources
    # ------------------------------------------------------------------
    def current_energy(self) -> int:
        return self._field(self.provider.energy, UNKNOWN, "energy")

    def current_max_energy(self) -> int:
        return self._field(self.provider.max_energy, UNKNOWN, "max energy")

    def extract_resources(self) -> ResourceSnapshot:
        provider = self.provider
        wave, total_waves = self._field(provider.wave, (UNKNOWN, UNKNOWN), "wave")
        return ResourceSnapshot(
            energy=self._field(provider.energy, UNKNOWN, "energy"),
            max_energy=self._field(provider.max_energy, UNKNOWN, "max energy"),
            gold=self._field(provider.gold, UNKNOWN, "gold"),
            pyre_hp=self._field(provider.pyre_hp, UNKNOWN, "pyre hp"),
            pyre_max_hp=self._field(provider.pyre_max_hp, UNKNOWN, "pyre max hp"),
            hand_size=self._field(lambda: len(provider.hand_cards()), UNKNOWN, "hand size"),
            crystals=self._field(provider.crystals, UNKNOWN, "crystals"),
            wave=wave,
            total_waves=total_waves,
        )


__all__ = ["ALL_ROOM_INDICES", "StateExtractor"]

PLUGIN_MANAGER.expose_module("modules.pyre_narrator.extractor")
