from __future__ import annotations

from types import ModuleType, SimpleNamespace
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from modules.pyre_narrator.config import NarratorConfig
from modules.pyre_narrator.extractor import StateExtractor
from modules.pyre_narrator.locator import HandleLocator
from modules.pyre_narrator.narrator import BattleNarrator
from modules.pyre_narrator.output import RecordingSink
from modules.pyre_narrator.provider import ReflectiveProvider
from modules.pyre_narrator.resolver import AccessorResolver
from modules.pyre_narrator.runtime_backend import PythonRuntimeBackend
from tests.stubs import (
    HOST_MODULE,
    StubCardEffect,
    StubCardManager,
    StubCardState,
    StubCardType,
    StubCharacterState,
    StubCharacterTriggerData,
    StubCombatManager,
    StubLocalization,
    StubPlayerManager,
    StubRoomManager,
    StubRoomState,
    StubSaveManager,
    StubStatusEffectManager,
    StubTeam,
    StubTeamType,
)


def build_host_module() -> ModuleType:
    """A small battle: two friendlies and an Imp on floor 1, a Guard on floor 3."""

    prince = StubCharacterState(
        "Hornbreaker Prince", 10, 20, size=3, statuses=[("armor", 5)], triggers=["Slay: gain 2 Rage"]
    )
    steward = StubCharacterState("Train Steward", 2, 6, size=2)
    imp = StubCharacterState(
        "Imp", 3, 10, team=StubTeamType.Heroes, statuses=[("rage", 2)], intent=None
    )
    guard = StubCharacterState(
        "Guard", 5, 12, team=StubTeamType.Heroes, intent="Attacks the front unit", room_index=2
    )
    seraph = StubCharacterState("Seraph", 8, 40, size=2, team=StubTeamType.Heroes, room_index=3)
    rooms = [
        StubRoomState(0, [prince, imp, steward], enchantments=["<b>Rally</b>"]),
        StubRoomState(1),
        StubRoomState(2, [guard], capacity=6),
        StubRoomState(3, [seraph]),
    ]
    hand = [
        StubCardState(
            "Torch",
            1,
            StubCardType.Spell,
            clan="Hellhorned",
            body="Deal <b>{[effect0.power]}</b> damage. Piercing.",
            effects=[StubCardEffect(6)],
        ),
        StubCardState(
            "Hornbreaker Prince",
            2,
            StubCardType.Monster,
            clan="Hellhorned",
            body="<sprite name=Capacity> 3. Gains <b>Armor</b> when hit.",
            upgraded=True,
        ),
        StubCardState("Inferno", 5, StubCardType.Spell, body="Deal 20 damage to all units."),
    ]

    module = ModuleType(HOST_MODULE)
    module.CardManager = StubCardManager(hand)
    module.RoomManager = StubRoomManager(rooms, selected=0)
    module.PlayerManager = StubPlayerManager(3, 4)
    module.SaveManager = StubSaveManager(120, 40, 60, crystals=5)
    module.CombatManager = StubCombatManager(2, 5)
    module.Team = StubTeam
    module.Localization = StubLocalization
    module.StatusEffectManager = StubStatusEffectManager
    module.CharacterTriggerData = StubCharacterTriggerData
    module.units = SimpleNamespace(prince=prince, steward=steward, imp=imp, guard=guard, seraph=seraph)
    module.rooms = rooms
    return module


@pytest.fixture()
def host(monkeypatch):
    module = build_host_module()
    monkeypatch.setitem(sys.modules, HOST_MODULE, module)
    return module


@pytest.fixture()
def empty_host(monkeypatch):
    """A host that has not created any of its managers yet."""

    module = ModuleType(HOST_MODULE)
    monkeypatch.setitem(sys.modules, HOST_MODULE, module)
    return module


@pytest.fixture()
def backend():
    return PythonRuntimeBackend(module_prefixes=(HOST_MODULE,))


@pytest.fixture()
def locator(backend):
    return HandleLocator([backend])


@pytest.fixture()
def resolver():
    return AccessorResolver()


@pytest.fixture()
def provider(locator, resolver):
    return ReflectiveProvider(locator, resolver, "auto")


@pytest.fixture()
def extractor(provider):
    return StateExtractor(provider)


@pytest.fixture()
def sink():
    return RecordingSink()


@pytest.fixture()
def config():
    return NarratorConfig()


@pytest.fixture()
def narrator(extractor, sink, config):
    return BattleNarrator(extractor, sink, config)
