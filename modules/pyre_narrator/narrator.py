"""Battle narration: sentences, the battle state machine and event dispatch.

:class:`BattleNarrator` is the only entry point the host talks to.  Lifecycle
events arrive through :meth:`BattleNarrator.handle` (or the matching ``on_*``
method), queries such as :meth:`BattleNarrator.get_floor_summary` return text,
and every spoken line goes through an
:class:`~modules.pyre_narrator.output.OutputSink`.  No exception leaves a
public method: failures are logged and replaced by a fixed fallback phrase.
"""

from __future__ import annotations

from enum import Enum
import functools
import logging
from typing import Any, Callable, List, Optional, Sequence, Union

from plugins import PLUGIN_MANAGER

from .config import NarratorConfig, Verbosity
from .extractor import StateExtractor
from .models import (
    COMBAT_ROOM_INDICES,
    PYRE_ROOM_INDEX,
    UNKNOWN,
    Card,
    CardCategory,
    Floor,
    ResourceSnapshot,
    Team,
    Unit,
    enum_name,
    floor_label,
)
from .output import Channel, NarrationCue, OutputSink

logger = logging.getLogger(__name__)

HAND_EMPTY = "Hand is empty"
HAND_UNREADABLE = "Could not read hand"
FLOOR_UNKNOWN = "Unknown floor"
RESOURCES_UNREADABLE = "Could not read resources"
FLOORS_UNREADABLE = "Could not read floors"
ENEMIES_UNREADABLE = "Could not read enemies"
UNIT_UNKNOWN = "Unknown unit"
END_TURN_FAILED = "Could not end turn"

_CATEGORY_WORDS = {
    CardCategory.UNIT: "Unit",
    CardCategory.SPELL: "Spell",
    CardCategory.BLIGHT: "Blight",
}


class NarrationEventType(str, Enum):
    """Host lifecycle events the narrator reacts to."""

    BATTLE_ENTERED = "battle_entered"
    BATTLE_EXITED = "battle_exited"
    BATTLE_WON = "battle_won"
    BATTLE_LOST = "battle_lost"
    TURN_STARTED = "turn_started"
    TURN_ENDED = "turn_ended"
    CARDS_DRAWN = "cards_drawn"
    UNIT_SPAWNED = "unit_spawned"
    UNIT_DIED = "unit_died"
    DAMAGE_DEALT = "damage_dealt"
    STATUS_EFFECT_APPLIED = "status_effect_applied"
    STATUS_EFFECT_REMOVED = "status_effect_removed"
    PYRE_DAMAGED = "pyre_damaged"
    PYRE_HEALED = "pyre_healed"
    ENEMIES_ASCENDED = "enemies_ascended"
    ENEMIES_DESCENDED = "enemies_descended"
    PHASE_CHANGED = "phase_changed"
    WAVE_COMPLETE = "wave_complete"
    CARD_DRAFT_ENTERED = "card_draft_entered"


class BattleState(str, Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"


def guarded(fallback: Any = None, *, announce: bool = False):
    """Log any exception raised by the wrapped method and degrade to ``fallback``.

    With ``announce`` the fallback phrase is queued to the sink and the method
    returns ``None``; otherwise the fallback (or the result of calling it) is
    returned.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(func)
        def wrapper(self: "BattleNarrator", *args: Any, **kwargs: Any) -> Any:
            try:
                return func(self, *args, **kwargs)
            except Exception:
                logger.exception("%s failed", func.__name__)
                if announce:
                    self._emit(Channel.QUEUE, fallback)
                    return None
                return fallback() if callable(fallback) else fallback

        return wrapper

    return decorator


def _append(text: str, addition: Optional[str]) -> str:
    """Add a sentence to ``text`` so the original stays an exact prefix."""

    if not addition:
        return text
    if not text:
        return addition
    if text[-1] in ".!?:":
        return f"{text} {addition}"
    return f"{text}. {addition}"


def _terminate(text: str) -> str:
    return text if not text or text[-1] in ".!?" else text + "."


def _number(value: int) -> str:
    return str(value) if value >= 0 else "?"


def _floor_phrase(index: int) -> Optional[str]:
    if index == PYRE_ROOM_INDEX:
        return "the pyre room"
    if index in COMBAT_ROOM_INDICES:
        return f"floor {index + 1}"
    return None


def _cap(level: Verbosity, ceiling: Verbosity) -> Verbosity:
    return level if ceiling.includes(level) else ceiling


class BattleNarrator:
    """Turns host events and state into spoken sentences."""

    def __init__(
        self,
        extractor: StateExtractor,
        sink: OutputSink,
        config: Optional[NarratorConfig] = None,
    ) -> None:
        self.extractor = extractor
        self.sink = sink
        self.config = config or NarratorConfig()
        self._state = BattleState.INACTIVE
        self._listeners: List[Callable[[NarrationCue], None]] = []

    # ------------------------------------------------------------------
    # state
    # ------------------------------------------------------------------
    @property
    def state(self) -> BattleState:
        return self._state

    @property
    def in_battle(self) -> bool:
        return self._state is BattleState.ACTIVE

    @property
    def verbosity(self) -> Verbosity:
        return self.config.verbosity

    # ------------------------------------------------------------------
    # output
    # ------------------------------------------------------------------
    def subscribe(self, listener: Callable[[NarrationCue], None]) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Callable[[NarrationCue], None]) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _emit(self, channel: Channel, text: Optional[str], interrupt: bool = False) -> None:
        if not text:
            return
        try:
            if channel is Channel.SPEAK:
                self.sink.speak(text, interrupt)
            elif channel is Channel.SCREEN:
                self.sink.announce_screen(text)
            else:
                self.sink.queue(text)
        except Exception:
            logger.exception("Output sink rejected %r", text)
        cue = NarrationCue(text, channel, interrupt)
        for listener in list(self._listeners):
            try:
                listener(cue)
            except Exception:
                logger.exception("Narration listener %r failed", listener)
        PLUGIN_MANAGER.notify("on_narration", text, channel.value)

    def _speak(self, text: Optional[str], interrupt: bool = True) -> None:
        self._emit(Channel.SPEAK, text, interrupt)

    def _queue(self, text: Optional[str]) -> None:
        self._emit(Channel.QUEUE, text)

    def _focus_interrupt(self) -> bool:
        return self.config.interrupt_on_focus_change

    # ------------------------------------------------------------------
    # rendering
    # ------------------------------------------------------------------
    def describe_card(self, card: Card, energy: int = UNKNOWN, verbosity: Optional[Verbosity] = None) -> str:
        """One card as a sentence; each verbosity level extends the previous one."""

        level = verbosity or self.verbosity
        text = card.title
        if card.cost >= 0:
            text += f", {card.cost} ember"
        if energy >= 0 and card.cost > energy:
            text += ", unplayable"
        if level.includes(Verbosity.NORMAL):
            details = [_CATEGORY_WORDS.get(card.category, "")]
            if card.clan:
                details.append(card.clan)
            if card.upgraded:
                details.append("upgraded")
            text = _append(text, ", ".join(detail for detail in details if detail))
            text = _append(text, card.description)
        if level.includes(Verbosity.VERBOSE):
            text = _append(text, card.keyword_explanations)
        return text

    def describe_unit(self, unit: Unit, verbosity: Optional[Verbosity] = None) -> str:
        level = verbosity or self.verbosity
        text = f"{unit.name} {_number(unit.attack)}/{_number(unit.hp)}"
        if level.includes(Verbosity.NORMAL) and unit.status_effects:
            text += f" ({unit.status_summary()})"
        if level.includes(Verbosity.VERBOSE):
            if unit.intent:
                text = _append(text, f"Intent: {unit.intent}")
            if unit.abilities:
                text = _append(text, "Abilities: " + "; ".join(unit.abilities))
            text = _append(text, self.extractor.glossary.annotate(unit.status_summary(), *unit.abilities))
        return text

    def _unit_list(self, units: Sequence[Unit]) -> str:
        level = _cap(self.verbosity, Verbosity.NORMAL)
        return ", ".join(self.describe_unit(unit, level) for unit in units)

    def describe_floor(self, floor: Floor, resources: Optional[ResourceSnapshot] = None) -> str:
        if floor.is_pyre_room:
            resources = resources or self.extractor.extract_resources()
            text = f"{floor.label}. Pyre: {_number(resources.pyre_hp)} of {_number(resources.pyre_max_hp)} health"
        else:
            text = f"{floor.label}, {floor.used_capacity} of {floor.max_capacity} capacity"
        if floor.friendly_units:
            text += f". Your units: {self._unit_list(floor.friendly_units)}"
        if floor.enemy_units:
            text += f". Enemies: {self._unit_list(floor.enemy_units)}"
        if not floor.units and not floor.is_pyre_room:
            text += ". Empty"
        corruption = floor.corruption
        if corruption is not None and corruption.current >= 0:
            text += f". Corruption {corruption.current} of {_number(corruption.maximum)}"
            if corruption.permanent > 0:
                text += f", {corruption.permanent} permanent"
        if floor.enchantments:
            text += f". Enchantments: {', '.join(floor.enchantments)}"
        return text

    def describe_resources(self, resources: ResourceSnapshot) -> Optional[str]:
        parts = []
        if resources.energy >= 0:
            parts.append(f"Ember: {resources.energy} of {_number(resources.max_energy)}")
        if resources.pyre_hp >= 0:
            parts.append(f"Pyre health: {resources.pyre_hp} of {_number(resources.pyre_max_hp)}")
        if resources.gold >= 0:
            parts.append(f"Gold: {resources.gold}")
        if resources.hand_size >= 0:
            parts.append(f"Cards in hand: {resources.hand_size}")
        if resources.wave >= 0:
            parts.append(f"Wave {resources.wave} of {_number(resources.total_waves)}")
        if resources.threat is not None:
            parts.append(f"Pact crystals: {resources.crystals}, {resources.threat} threat")
        if not parts:
            return None
        return ". ".join(parts) + "."

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------
    @guarded(FLOOR_UNKNOWN)
    def get_floor_summary(self, index: int) -> str:
        floor = self.extractor.extract_floor(index)
        if floor is None:
            return FLOOR_UNKNOWN
        return self.describe_floor(floor)

    def _roster(self, team: Optional[Team]) -> List[str]:
        return [
            f"{floor_label(unit.floor_index)}: {self.describe_unit(unit)}"
            for unit in self.extractor.units(team)
        ]

    @guarded(lambda: [ENEMIES_UNREADABLE])
    def get_all_enemies(self) -> List[str]:
        return self._roster(Team.ENEMY)

    @guarded(lambda: [UNIT_UNKNOWN])
    def get_all_friendly_units(self) -> List[str]:
        return self._roster(Team.FRIENDLY)

    @guarded(lambda: [UNIT_UNKNOWN])
    def get_all_units(self) -> List[str]:
        return self._roster(None)

    @guarded(UNKNOWN)
    def get_selected_floor(self) -> int:
        return self.extractor.selected_floor()

    @guarded(UNIT_UNKNOWN)
    def get_target_unit_description(self, unit: Any) -> str:
        if unit is None:
            return UNIT_UNKNOWN
        if not isinstance(unit, Unit):
            unit = self.extractor.extract_unit(unit)
        text = self.describe_unit(unit)
        phrase = _floor_phrase(unit.floor_index)
        if phrase:
            text = _append(text, f"On {phrase}")
        return text

    # ------------------------------------------------------------------
    # announcements
    # ------------------------------------------------------------------
    @guarded(HAND_UNREADABLE, announce=True)
    def announce_hand(self) -> None:
        cards = self.extractor.extract_hand()
        if cards is None:
            self._speak(HAND_UNREADABLE, self._focus_interrupt())
            return
        if not cards:
            self._speak(HAND_EMPTY, self._focus_interrupt())
            return
        energy = self.extractor.current_energy()
        noun = "card" if len(cards) == 1 else "cards"
        parts = [f"Hand contains {len(cards)} {noun}."]
        for position, card in enumerate(cards, start=1):
            parts.append(_terminate(f"{position}: {self.describe_card(card, energy)}"))
        self._speak(" ".join(parts), self._focus_interrupt())

    @guarded(RESOURCES_UNREADABLE, announce=True)
    def announce_resources(self) -> None:
        text = self.describe_resources(self.extractor.extract_resources())
        self._speak(text or RESOURCES_UNREADABLE, self._focus_interrupt())

    @guarded(FLOORS_UNREADABLE, announce=True)
    def announce_floors(self) -> None:
        floors = {floor.index: floor for floor in self.extractor.extract_floors()}
        if not floors:
            self._speak(FLOORS_UNREADABLE, self._focus_interrupt())
            return
        self._speak("Tower status:", self._focus_interrupt())
        for index in COMBAT_ROOM_INDICES:
            floor = floors.get(index)
            self._queue(self.describe_floor(floor) if floor is not None else f"{floor_label(index)}: {FLOOR_UNKNOWN}")
        pyre = floors.get(PYRE_ROOM_INDEX)
        if pyre is not None:
            self._queue(self.describe_floor(pyre))
        else:
            resources = self.extractor.extract_resources()
            self._queue(f"Pyre: {_number(resources.pyre_hp)} of {_number(resources.pyre_max_hp)} health")

    @guarded(ENEMIES_UNREADABLE, announce=True)
    def announce_enemies(self) -> None:
        self._speak("Enemy summary:", self._focus_interrupt())
        any_enemies = False
        for floor in self.extractor.extract_floors(COMBAT_ROOM_INDICES):
            if floor.enemy_units:
                any_enemies = True
                self._queue(f"{floor.label}: {self._unit_list(floor.enemy_units)}")
        if not any_enemies:
            self._queue("No enemies on the tower")

    @guarded(None)
    def cycle_verbosity(self) -> Verbosity:
        level = self.config.cycle_verbosity()
        self._speak(f"Verbosity: {level.value.capitalize()}")
        return level

    def end_turn(self) -> bool:
        try:
            ended = bool(self.extractor.provider.end_turn())
        except Exception:
            logger.exception("End turn failed")
            ended = False
        if not ended:
            self._queue(END_TURN_FAILED)
        return ended

    # ------------------------------------------------------------------
    # event dispatch
    # ------------------------------------------------------------------
    def handle(self, event_type: Union[NarrationEventType, str], **payload: Any) -> bool:
        """Route ``event_type`` to its ``on_*`` handler; ``False`` for unknown events."""

        try:
            event = NarrationEventType(event_type)
        except ValueError:
            logger.warning("Ignoring unknown narration event %r", event_type)
            return False
        getattr(self, f"on_{event.value}")(**payload)
        return True

    @guarded(None)
    def on_battle_entered(self) -> None:
        self._state = BattleState.ACTIVE
        try:
            self.extractor.rediscover()
        except Exception:
            logger.exception("Rediscovery on battle entry failed")
        self._emit(Channel.SCREEN, "Battle started")
        resources = self.extractor.extract_resources()
        if resources.energy >= 0:
            self._queue(f"Ember: {resources.energy} of {_number(resources.max_energy)}")
        if resources.hand_size >= 0:
            self._queue(f"Cards in hand: {resources.hand_size}")
        enemies = len(self.extractor.units(Team.ENEMY))
        if enemies:
            self._queue(f"{enemies} {'enemy' if enemies == 1 else 'enemies'} approaching")

    @guarded(None)
    def on_battle_exited(self) -> None:
        self._state = BattleState.INACTIVE
        self._queue("Battle ended")

    @guarded(None)
    def on_battle_won(self) -> None:
        self._state = BattleState.INACTIVE
        self._speak("Victory! Battle won.")

    @guarded(None)
    def on_battle_lost(self) -> None:
        self._state = BattleState.INACTIVE
        self._speak("Defeat. The pyre has been destroyed.")

    @guarded(None)
    def on_turn_started(
        self,
        energy: Optional[int] = None,
        max_energy: Optional[int] = None,
        cards_drawn: int = 0,
    ) -> None:
        self._speak("Your turn")
        if energy is None:
            energy = self.extractor.current_energy()
        if max_energy is None:
            max_energy = self.extractor.current_max_energy()
        if energy >= 0:
            self._queue(f"{energy} of {_number(max_energy)} ember")
        if cards_drawn and cards_drawn > 0 and self.config.announce_card_draws:
            self._queue(f"Drew {cards_drawn} {'card' if cards_drawn == 1 else 'cards'}")

    @guarded(None)
    def on_turn_ended(self) -> None:
        self._speak("End turn. Combat phase.")

    @guarded(None)
    def on_cards_drawn(self, cards: Union[int, Sequence[Any], None] = None) -> None:
        if not self.config.announce_card_draws or not cards:
            return
        if isinstance(cards, int):
            self._queue(f"Drew {cards} {'card' if cards == 1 else 'cards'}")
            return
        names = [
            card if isinstance(card, str) else self.extractor.extract_card(card).title
            for card in cards
        ]
        if len(names) == 1:
            self._queue(f"Drew {names[0]}")
        else:
            self._queue(f"Drew: {', '.join(names)}")

    @guarded(None)
    def on_unit_spawned(self, name: str, is_enemy: bool = False, floor_index: int = UNKNOWN) -> None:
        if not self.in_battle or not self.config.announce_spawns:
            return
        phrase = _floor_phrase(floor_index)
        if is_enemy:
            text = f"Enemy {name} appears" + (f" on {phrase}" if phrase else "")
        else:
            text = f"{name} deployed" + (f" to {phrase}" if phrase else "")
        self._queue(text)

    @guarded(None)
    def on_unit_died(self, name: str, is_enemy: bool = False) -> None:
        if not self.config.announce_deaths:
            return
        self._queue(f"{'Enemy' if is_enemy else 'Your'} {name} died")

    @guarded(None)
    def on_damage_dealt(self, source: str, target: str, amount: int) -> None:
        if not self.config.announce_damage:
            return
        self._queue(f"{source} deals {amount} to {target}")

    @guarded(None)
    def on_status_effect_applied(self, unit: str, effect: str, stacks: int = UNKNOWN) -> None:
        if not self.config.announce_status_effects:
            return
        self._queue(f"{unit} gains {effect} {stacks}" if stacks > 0 else f"{unit} gains {effect}")

    @guarded(None)
    def on_status_effect_removed(self, unit: str, effect: str, stacks: int = UNKNOWN) -> None:
        if not self.config.announce_status_effects:
            return
        self._queue(f"{unit} loses {effect} {stacks}" if stacks > 0 else f"{unit} loses {effect}")

    @guarded(None)
    def on_pyre_damaged(self, amount: int, resulting: int = UNKNOWN) -> None:
        text = f"Pyre takes {amount} damage"
        if resulting >= 0:
            text += f". {resulting} health remaining"
        self._queue(text)

    @guarded(None)
    def on_pyre_healed(self, amount: int, resulting: int = UNKNOWN) -> None:
        text = f"Pyre healed for {amount}"
        if resulting >= 0:
            text += f". {resulting} health"
        self._queue(text)

    @guarded(None)
    def on_enemies_ascended(self) -> None:
        if self.in_battle:
            self._queue("Enemies ascend")

    @guarded(None)
    def on_enemies_descended(self) -> None:
        if self.in_battle:
            self._queue("Enemies descend")

    @guarded(None)
    def on_phase_changed(self, phase: Any) -> None:
        if not self.in_battle:
            return
        name = enum_name(phase)
        self._queue(f"{name.replace('_', ' ').capitalize()} phase")

    @guarded(None)
    def on_wave_complete(self) -> None:
        self._speak("Wave complete!")

    @guarded(None)
    def on_card_draft_entered(self, cards: Sequence[Any] = (), draft_type: str = "Card draft") -> None:
        cards = list(cards or ())
        self._emit(Channel.SCREEN, f"{draft_type}. Choose 1 of {len(cards)} cards.")
        for position, handle in enumerate(cards, start=1):
            card = handle if isinstance(handle, Card) else self.extractor.extract_card(handle)
            self._queue(f"{position}: {self.describe_card(card)}")


__all__ = [
    "BattleNarrator",
    "BattleState",
    "NarrationEventType",
    "guarded",
]

PLUGIN_MANAGER.expose_module("modules.pyre_narrator.narrator")
