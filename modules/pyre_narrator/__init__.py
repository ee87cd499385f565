"""Screen reader narration for Monster Train battles.

The package reads the game's battle state through a version tolerant provider
and turns it into short sentences for an assistive output channel.  The usual
entry point is :func:`create_narrator`::

    from modules.pyre_narrator import create_narrator

    narrator = create_narrator(sink=my_screen_reader)
    narrator.handle("battle_entered")
    narrator.announce_hand()
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .config import DEFAULT_CONFIG_FILE, NarratorConfig, Verbosity
from .exceptions import (
    ConfigurationError,
    ExternalReadError,
    InvocationFailure,
    LookupFailure,
    NarratorError,
    TypeMismatch,
)
from .extractor import StateExtractor
from .keywords import FALLBACK_KEYWORDS, KeywordGlossary
from .locator import DEFAULT_MANAGER_NAMES, HandleLocator, ManagerHandle
from .models import (
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
from .narrator import BattleNarrator, BattleState, NarrationEventType
from .output import Channel, LoggingSink, NarrationCue, OutputSink, RecordingSink
from .provider import SCHEMAS, GameStateProvider, ReflectiveProvider, Schema
from .resolver import AccessorCandidate, AccessorDescriptor, AccessorResolver
from .runtime_backend import JPypeRuntimeBackend, PythonRuntimeBackend, RuntimeBackend, default_backends
from .text import normalize, strip_tags
from plugins import PLUGIN_MANAGER

logging.getLogger(__name__).addHandler(logging.NullHandler())


def load_config(path: Optional[Path] = None) -> NarratorConfig:
    """Configuration from ``path`` (or the default file) layered under the environment.

    Missing files are not an error: the defaults and ``PYRE_NARRATOR_*``
    variables apply.
    """

    try:
        base = NarratorConfig.load(path or DEFAULT_CONFIG_FILE).to_mapping()
    except FileNotFoundError:
        base = NarratorConfig().to_mapping()
    base.update(NarratorConfig.env_overrides())
    return NarratorConfig.from_mapping(base)


def create_narrator(
    sink: Optional[OutputSink] = None,
    config: Optional[NarratorConfig] = None,
    *,
    backends: Optional[list] = None,
) -> BattleNarrator:
    """Wire locator, resolver, provider and extractor into a :class:`BattleNarrator`."""

    config = config or load_config()
    if backends is None:
        backends = default_backends(config.module_prefixes, config.java_packages)
    locator = HandleLocator(backends)
    provider = ReflectiveProvider(locator, AccessorResolver(), config.schema_version)
    extractor = StateExtractor(provider)
    return BattleNarrator(extractor, sink or LoggingSink(), config)


PLUGIN_MANAGER.expose("create_narrator", create_narrator)
PLUGIN_MANAGER.expose("load_narrator_config", load_config)
PLUGIN_MANAGER.expose("NarratorConfig", NarratorConfig)
PLUGIN_MANAGER.expose("NarrationEventType", NarrationEventType)
PLUGIN_MANAGER.expose_module("modules.pyre_narrator", alias="pyre_narrator")

__all__ = [
    "AccessorCandidate",
    "AccessorDescriptor",
    "AccessorResolver",
    "BattleNarrator",
    "BattleState",
    "Card",
    "CardCategory",
    "Channel",
    "ConfigurationError",
    "Corruption",
    "DEFAULT_MANAGER_NAMES",
    "ExternalReadError",
    "FALLBACK_KEYWORDS",
    "Floor",
    "GameStateProvider",
    "HandleLocator",
    "InvocationFailure",
    "JPypeRuntimeBackend",
    "KeywordGlossary",
    "LoggingSink",
    "LookupFailure",
    "ManagerHandle",
    "NarrationCue",
    "NarrationEventType",
    "NarratorConfig",
    "NarratorError",
    "OutputSink",
    "PythonRuntimeBackend",
    "RecordingSink",
    "ReflectiveProvider",
    "ResourceSnapshot",
    "RuntimeBackend",
    "SCHEMAS",
    "Schema",
    "StateExtractor",
    "StatusEffect",
    "Team",
    "TypeMismatch",
    "UNKNOWN",
    "Unit",
    "Verbosity",
    "create_narrator",
    "default_backends",
    "load_config",
    "normalize",
    "strip_tags",
]
