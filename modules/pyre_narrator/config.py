"""Configuration helpers for the narrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import json
import os
from pathlib import Path
from typing import Any, List, Mapping, MutableMapping, Optional

from plugins import PLUGIN_MANAGER

from .exceptions import ConfigurationError

DEFAULT_CONFIG_FILE = Path.home() / ".pyre_narrator" / "config.json"
ENV_PREFIX = "PYRE_NARRATOR_"
SCHEMA_VERSIONS = ("auto", "v1", "v2")

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


class Verbosity(str, Enum):
    """How much detail announcements carry."""

    MINIMAL = "minimal"
    NORMAL = "normal"
    VERBOSE = "verbose"

    @classmethod
    def parse(cls, value: "Verbosity | str") -> "Verbosity":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise ConfigurationError(f"Unknown verbosity level: {value!r}") from exc

    def next(self) -> "Verbosity":
        order = list(Verbosity)
        return order[(order.index(self) + 1) % len(order)]

    def includes(self, level: "Verbosity") -> bool:
        order = list(Verbosity)
        return order.index(self) >= order.index(level)


def _parse_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUTHY:
        return True
    if text in _FALSY:
        return False
    raise ConfigurationError(f"Setting '{name}' expects a boolean, got {value!r}")


def _parse_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(part) for part in value]


@dataclass(slots=True)
class NarratorConfig:
    """Runtime configuration for the narration pipeline."""

    verbosity: Verbosity = Verbosity.NORMAL
    announce_card_draws: bool = True
    announce_status_effects: bool = True
    announce_damage: bool = True
    announce_deaths: bool = True
    announce_spawns: bool = True
    interrupt_on_focus_change: bool = True
    schema_version: str = "auto"
    module_prefixes: List[str] = field(default_factory=list)
    java_packages: List[str] = field(default_factory=list)

    _FLAGS = (
        "announce_card_draws",
        "announce_status_effects",
        "announce_damage",
        "announce_deaths",
        "announce_spawns",
        "interrupt_on_focus_change",
    )

    def __post_init__(self) -> None:
        self.verbosity = Verbosity.parse(self.verbosity)
        if self.schema_version not in SCHEMA_VERSIONS:
            raise ConfigurationError(
                f"Unknown schema version {self.schema_version!r}; expected one of {', '.join(SCHEMA_VERSIONS)}"
            )

    @classmethod
    def env_overrides(cls, env: Optional[Mapping[str, str]] = None) -> dict[str, str]:
        """The ``PYRE_NARRATOR_*`` variables that are set, keyed by setting name."""

        env = env if env is not None else os.environ
        data: dict[str, str] = {}
        for key, value in env.items():
            if key.startswith(ENV_PREFIX):
                data[key[len(ENV_PREFIX):].lower()] = value
        return data

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "NarratorConfig":
        return cls.from_mapping(cls.env_overrides(env))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "NarratorConfig":
        kwargs: dict[str, Any] = {}
        if data.get("verbosity") is not None:
            kwargs["verbosity"] = Verbosity.parse(data["verbosity"])
        for name in cls._FLAGS:
            if data.get(name) is not None:
                kwargs[name] = _parse_bool(name, data[name])
        if data.get("schema_version") is not None:
            kwargs["schema_version"] = str(data["schema_version"]).strip().lower()
        kwargs["module_prefixes"] = _parse_list(data.get("module_prefixes"))
        kwargs["java_packages"] = _parse_list(data.get("java_packages"))
        return cls(**kwargs)

    def to_mapping(self) -> MutableMapping[str, object]:
        mapping: MutableMapping[str, object] = {"verbosity": self.verbosity.value}
        for name in self._FLAGS:
            mapping[name] = getattr(self, name)
        mapping["schema_version"] = self.schema_version
        mapping["module_prefixes"] = list(self.module_prefixes)
        mapping["java_packages"] = list(self.java_packages)
        return mapping

    @classmethod
    def load(cls, source: Path | None = None) -> "NarratorConfig":
        source = source or DEFAULT_CONFIG_FILE
        if not source.exists():
            raise FileNotFoundError(f"Configuration file not found: {source}")
        try:
            data = json.loads(source.read_text(encoding="utf8"))
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Configuration file {source} is not valid JSON") from exc
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"Configuration file {source} must contain a JSON object")
        return cls.from_mapping(data)

    def cycle_verbosity(self) -> Verbosity:
        self.verbosity = self.verbosity.next()
        return self.verbosity


__all__ = ["DEFAULT_CONFIG_FILE", "NarratorConfig", "SCHEMA_VERSIONS", "Verbosity"]

PLUGIN_MANAGER.expose_module("modules.pyre_narrator.config")
