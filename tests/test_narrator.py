import re
from types import SimpleNamespace

import pytest

from modules.pyre_narrator.config import NarratorConfig, Verbosity
from modules.pyre_narrator.narrator import BattleNarrator, BattleState, NarrationEventType
from modules.pyre_narrator.output import Channel, OutputSink, RecordingSink
from plugins import PLUGIN_MANAGER


class BrokenSink(OutputSink):
    def speak(self, text, interrupt=False):
        raise RuntimeError("speech engine gone")

    def queue(self, text):
        raise RuntimeError("speech engine gone")

    def announce_screen(self, title):
        raise RuntimeError("speech engine gone")


@pytest.fixture()
def narration_plugin():
    module_name = "tests.sample_plugins.narration_listener"
    record = PLUGIN_MANAGER.register_plugin(module_name)
    yield record.obj
    PLUGIN_MANAGER.unregister_plugin(module_name)


# ----------------------------------------------------------------------
# queries
# ----------------------------------------------------------------------
def test_floor_summary(host, narrator):
    assert narrator.get_floor_summary(0) == (
        "Floor 1, 5 of 7 capacity. Your units: Hornbreaker Prince 10/20 (Armor 5), Train Steward 2/6. "
        "Enemies: Imp 3/10 (Rage 2). Enchantments: Rally"
    )


def test_empty_floor_summary(host, narrator):
    assert narrator.get_floor_summary(1) == "Floor 2, 0 of 7 capacity. Empty"


def test_pyre_room_summary(host, narrator):
    assert narrator.get_floor_summary(3) == "Pyre room. Pyre: 40 of 60 health. Enemies: Seraph 8/40"


def test_unknown_floor_summary(empty_host, narrator):
    assert narrator.get_floor_summary(5) == "Unknown floor"
    assert narrator.get_floor_summary(0) == "Unknown floor"


def test_rosters(host, narrator):
    assert narrator.get_all_enemies() == ["Floor 1: Imp 3/10 (Rage 2)", "Floor 3: Guard 5/12"]
    assert narrator.get_all_friendly_units() == [
        "Floor 1: Hornbreaker Prince 10/20 (Armor 5)",
        "Floor 1: Train Steward 2/6",
    ]
    assert len(narrator.get_all_units()) == 4


def test_selected_floor(host, narrator):
    assert narrator.get_selected_floor() == 0


def test_target_unit_description(host, narrator):
    assert narrator.get_target_unit_description(host.units.guard) == "Guard 5/12. On floor 3"
    assert narrator.get_target_unit_description(None) == "Unknown unit"


def test_queries_degrade_when_extraction_raises(host, narrator, monkeypatch):
    def explode(*args, **kwargs):
        raise RuntimeError("host crashed")

    monkeypatch.setattr(narrator.extractor, "extract_floor", explode)
    monkeypatch.setattr(narrator.extractor, "units", explode)
    monkeypatch.setattr(narrator.extractor, "selected_floor", explode)

    assert narrator.get_floor_summary(0) == "Unknown floor"
    assert narrator.get_all_enemies() == ["Could not read enemies"]
    assert narrator.get_all_units() == ["Unknown unit"]
    assert narrator.get_selected_floor() == -1


# ----------------------------------------------------------------------
# rendering
# ----------------------------------------------------------------------
def test_card_verbosity_levels_extend_each_other(host, narrator):
    torch = narrator.extractor.extract_hand()[0]

    minimal = narrator.describe_card(torch, 3, Verbosity.MINIMAL)
    normal = narrator.describe_card(torch, 3, Verbosity.NORMAL)
    verbose = narrator.describe_card(torch, 3, Verbosity.VERBOSE)

    assert minimal == "Torch, 1 ember"
    assert normal == "Torch, 1 ember. Spell, Hellhorned. Deal 6 damage. Piercing."
    assert verbose == normal + " Piercing: Damage ignores Armor and shields"


def test_unit_verbosity_levels_extend_each_other(host, narrator):
    imp = narrator.extractor.extract_floor(0).enemy_units[0]

    levels = [narrator.describe_unit(imp, level) for level in Verbosity]

    assert levels[0] == "Imp 3/10"
    assert levels[1] == "Imp 3/10 (Rage 2)"
    assert levels[2] == "Imp 3/10 (Rage 2). Intent: will attack for 3"
    assert all(later.startswith(earlier) for earlier, later in zip(levels, levels[1:]))


def test_hand_verbosity_levels_extend_each_other(host, narrator, sink):
    hands = []
    for level in Verbosity:
        narrator.config.verbosity = level
        narrator.announce_hand()
        hands.append(re.split(r" (?=\d+: )", sink.texts()[-1]))

    assert hands[0] == [
        "Hand contains 3 cards.",
        "1: Torch, 1 ember.",
        "2: Hornbreaker Prince, 2 ember.",
        "3: Inferno, 5 ember, unplayable.",
    ]
    for fewer, more in zip(hands, hands[1:]):
        assert len(more) == len(fewer)
        assert more[0] == fewer[0]
        for short, longer in zip(fewer[1:], more[1:]):
            assert longer.startswith(short.rstrip("."))
    assert "Piercing: Damage ignores Armor and shields" in hands[2][1]


def test_unaffordable_card_is_unplayable(host, narrator):
    inferno = narrator.extractor.extract_hand()[2]

    assert narrator.describe_card(inferno, 3, Verbosity.MINIMAL) == "Inferno, 5 ember, unplayable"
    assert narrator.describe_card(inferno, -1, Verbosity.MINIMAL) == "Inferno, 5 ember"


# ----------------------------------------------------------------------
# announcements
# ----------------------------------------------------------------------
def test_announce_hand(host, narrator, sink):
    narrator.announce_hand()

    (cue,) = sink.cues
    assert cue.channel is Channel.SPEAK
    assert cue.interrupt is True
    assert cue.text.startswith("Hand contains 3 cards. 1: Torch, 1 ember. Spell, Hellhorned.")
    assert "2: Hornbreaker Prince, 2 ember. Unit, Hellhorned, upgraded." in cue.text
    assert "3: Inferno, 5 ember, unplayable. Spell. Deal 20 damage to all units." in cue.text


def test_announce_empty_hand(host, narrator, sink):
    host.CardManager.hand = []

    narrator.announce_hand()

    assert sink.texts() == ("Hand is empty",)


def test_announce_unreadable_hand(empty_host, narrator, sink):
    narrator.announce_hand()

    assert sink.texts() == ("Could not read hand",)


def test_announce_hand_failure_is_queued(host, narrator, sink, monkeypatch):
    def explode():
        raise RuntimeError("host crashed")

    monkeypatch.setattr(narrator.extractor, "extract_hand", explode)

    assert narrator.announce_hand() is None
    assert sink.last().text == "Could not read hand"
    assert sink.last().channel is Channel.QUEUE


def test_focus_interrupt_follows_config(host, extractor, sink):
    narrator = BattleNarrator(extractor, sink, NarratorConfig(interrupt_on_focus_change=False))

    narrator.announce_hand()

    assert sink.last().interrupt is False


def test_announce_resources(host, narrator, sink):
    narrator.announce_resources()

    assert sink.texts() == (
        "Ember: 3 of 4. Pyre health: 40 of 60. Gold: 120. Cards in hand: 3. Wave 2 of 5. "
        "Pact crystals: 5, moderate threat.",
    )


def test_announce_resources_without_host(empty_host, narrator, sink):
    narrator.announce_resources()

    assert sink.texts() == ("Could not read resources",)


def test_announce_floors(host, narrator, sink):
    narrator.announce_floors()

    texts = sink.texts()
    assert texts[0] == "Tower status:"
    assert texts[1].startswith("Floor 1, 5 of 7 capacity")
    assert texts[2] == "Floor 2, 0 of 7 capacity. Empty"
    assert texts[3] == "Floor 3, 0 of 6 capacity. Enemies: Guard 5/12"
    assert texts[4].startswith("Pyre room. Pyre: 40 of 60 health")
    assert sink.texts(Channel.SPEAK) == ("Tower status:",)


def test_announce_floors_without_host(empty_host, narrator, sink):
    narrator.announce_floors()

    assert sink.texts() == ("Could not read floors",)


def test_announce_enemies(host, narrator, sink):
    narrator.announce_enemies()

    assert sink.texts() == ("Enemy summary:", "Floor 1: Imp 3/10 (Rage 2)", "Floor 3: Guard 5/12")


def test_announce_enemies_on_a_clear_tower(host, narrator, sink):
    host.rooms[0].units.remove(host.units.imp)
    host.rooms[2].units.clear()

    narrator.announce_enemies()

    assert sink.texts() == ("Enemy summary:", "No enemies on the tower")


def test_cycle_verbosity(narrator, sink):
    assert narrator.cycle_verbosity() is Verbosity.VERBOSE
    assert narrator.verbosity is Verbosity.VERBOSE
    assert sink.texts() == ("Verbosity: Verbose",)
    assert narrator.cycle_verbosity() is Verbosity.MINIMAL


def test_end_turn(host, narrator, sink):
    assert narrator.end_turn() is True
    assert host.CombatManager.end_turn_calls == 1
    assert sink.texts() == ()


def test_end_turn_failure_is_announced(empty_host, narrator, sink):
    assert narrator.end_turn() is False
    assert sink.texts() == ("Could not end turn",)


# ----------------------------------------------------------------------
# events
# ----------------------------------------------------------------------
def test_battle_entered(host, narrator, sink):
    assert narrator.handle("battle_entered") is True

    assert narrator.state is BattleState.ACTIVE
    assert sink.texts() == ("Battle started", "Ember: 3 of 4", "Cards in hand: 3", "2 enemies approaching")
    assert sink.cues[0].channel is Channel.SCREEN
    assert "Armor" in narrator.extractor.glossary


def test_battle_entered_without_host(empty_host, narrator, sink):
    narrator.on_battle_entered()

    assert narrator.in_battle
    assert sink.texts() == ("Battle started",)


def test_spawns_are_ignored_outside_battle(host, narrator, sink):
    narrator.handle(NarrationEventType.UNIT_SPAWNED, name="Imp", is_enemy=True, floor_index=0)

    assert sink.texts() == ()


def test_spawns_during_battle(host, narrator, sink):
    narrator.on_battle_entered()
    sink.clear()

    narrator.on_unit_spawned("Imp", is_enemy=True, floor_index=0)
    narrator.on_unit_spawned("Train Steward", floor_index=3)
    narrator.on_unit_spawned("Wisp")

    assert sink.texts() == (
        "Enemy Imp appears on floor 1",
        "Train Steward deployed to the pyre room",
        "Wisp deployed",
    )


def test_spawn_setting_silences_spawns(host, extractor, sink):
    narrator = BattleNarrator(extractor, sink, NarratorConfig(announce_spawns=False))
    narrator.on_battle_entered()
    sink.clear()

    narrator.on_unit_spawned("Imp", is_enemy=True, floor_index=0)

    assert sink.texts() == ()


def test_battle_end_events_leave_battle(host, narrator, sink):
    for event, line in (
        ("battle_won", "Victory! Battle won."),
        ("battle_lost", "Defeat. The pyre has been destroyed."),
        ("battle_exited", "Battle ended"),
    ):
        narrator.on_battle_entered()
        sink.clear()
        narrator.handle(event)
        assert narrator.state is BattleState.INACTIVE
        assert sink.texts() == (line,)


def test_turn_events(host, narrator, sink):
    narrator.handle("turn_started", cards_drawn=1)
    narrator.handle("turn_ended")

    assert sink.texts() == ("Your turn", "3 of 4 ember", "Drew 1 card", "End turn. Combat phase.")


def test_turn_started_uses_payload_energy(host, narrator, sink):
    narrator.on_turn_started(energy=2, max_energy=5)

    assert sink.texts() == ("Your turn", "2 of 5 ember")


def test_cards_drawn(host, narrator, sink):
    narrator.handle(NarrationEventType.CARDS_DRAWN, cards=2)
    narrator.on_cards_drawn(["Torch"])
    narrator.on_cards_drawn(host.CardManager.hand[:2])
    narrator.on_cards_drawn([])

    assert sink.texts() == ("Drew 2 cards", "Drew Torch", "Drew: Torch, Hornbreaker Prince")


def test_combat_events(narrator, sink):
    narrator.on_unit_died("Imp", is_enemy=True)
    narrator.on_unit_died("Train Steward")
    narrator.on_damage_dealt("Hornbreaker Prince", "Imp", 10)
    narrator.on_status_effect_applied("Imp", "Frostbite", 2)
    narrator.on_status_effect_removed("Imp", "Rage")
    narrator.on_pyre_damaged(5, 35)
    narrator.on_pyre_healed(3)
    narrator.on_wave_complete()

    assert sink.texts() == (
        "Enemy Imp died",
        "Your Train Steward died",
        "Hornbreaker Prince deals 10 to Imp",
        "Imp gains Frostbite 2",
        "Imp loses Rage",
        "Pyre takes 5 damage. 35 health remaining",
        "Pyre healed for 3",
        "Wave complete!",
    )


def test_event_settings(extractor, sink):
    config = NarratorConfig(
        announce_deaths=False,
        announce_damage=False,
        announce_status_effects=False,
        announce_card_draws=False,
    )
    narrator = BattleNarrator(extractor, sink, config)

    narrator.on_unit_died("Imp", is_enemy=True)
    narrator.on_damage_dealt("Hornbreaker Prince", "Imp", 10)
    narrator.on_status_effect_applied("Imp", "Frostbite", 2)
    narrator.on_cards_drawn(2)
    narrator.on_turn_started(energy=3, max_energy=3, cards_drawn=2)

    assert sink.texts() == ("Your turn", "3 of 3 ember")


def test_movement_and_phase_events_need_a_battle(host, narrator, sink):
    narrator.on_enemies_ascended()
    narrator.on_phase_changed("combat")
    assert sink.texts() == ()

    narrator.on_battle_entered()
    sink.clear()
    narrator.on_enemies_ascended()
    narrator.on_enemies_descended()
    narrator.on_phase_changed(SimpleNamespace(name="MONSTER_TURN"))

    assert sink.texts() == ("Enemies ascend", "Enemies descend", "Monster turn phase")


class JavaPhase:
    """Java enum constants expose name() as a method."""

    def name(self):
        return "MONSTER_TURN"


def test_phase_names_from_java_enums(host, narrator, sink):
    narrator.on_battle_entered()
    sink.clear()

    narrator.on_phase_changed(JavaPhase())

    assert sink.texts() == ("Monster turn phase",)


def test_card_draft(host, narrator, sink):
    narrator.handle("card_draft_entered", cards=host.CardManager.hand[:2], draft_type="Card draft")

    assert sink.texts() == (
        "Card draft. Choose 1 of 2 cards.",
        "1: Torch, 1 ember. Spell, Hellhorned. Deal 6 damage. Piercing.",
        "2: Hornbreaker Prince, 2 ember. Unit, Hellhorned, upgraded. capacity 3. Gains Armor when hit.",
    )


def test_unknown_event_is_rejected(narrator, sink):
    assert narrator.handle("tea_time") is False
    assert sink.texts() == ()


def test_bad_payload_is_logged_not_raised(narrator, sink):
    narrator.on_pyre_damaged(5, resulting="lots")

    assert sink.texts() == ()


# ----------------------------------------------------------------------
# output fan-out
# ----------------------------------------------------------------------
def test_listeners_receive_every_cue(narrator):
    received = []
    narrator.subscribe(received.append)
    narrator.subscribe(received.append)

    narrator.on_wave_complete()
    narrator.unsubscribe(received.append)
    narrator.unsubscribe(received.append)
    narrator.on_wave_complete()

    assert [cue.text for cue in received] == ["Wave complete!"]


def test_broken_sink_and_listener_do_not_escape(extractor):
    received = []

    def broken_listener(cue):
        raise ValueError("listener bug")

    narrator = BattleNarrator(extractor, BrokenSink())
    narrator.subscribe(broken_listener)
    narrator.subscribe(received.append)

    narrator.on_wave_complete()

    assert [cue.text for cue in received] == ["Wave complete!"]


def test_plugins_hear_narration(narrator, narration_plugin):
    narrator.on_wave_complete()
    narrator.on_pyre_healed(2)

    assert narration_plugin.lines == [("Wave complete!", "speak"), ("Pyre healed for 2", "queue")]


def test_recording_sink_limit():
    sink = RecordingSink(limit=2)
    for text in ("one", "two", "three"):
        sink.queue(text)

    assert sink.texts() == ("two", "three")
    with pytest.raises(ValueError):
        RecordingSink(limit=0)
