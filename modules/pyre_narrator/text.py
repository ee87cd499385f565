"""Turn host rich text into plain sentences a screen reader can speak."""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional

from plugins import PLUGIN_MANAGER

SPRITE_WORDS = {
    "gold": "gold",
    "ember": "ember",
    "health": "health",
    "attack": "damage",
    "damage": "damage",
    "capacity": "capacity",
}

SEMANTIC_TAG_UNITS = {
    "gold": "gold",
    "power": "power",
    "ember": "ember",
    "health": "health",
    "damage": "damage",
    "attack": "damage",
    "capacity": "capacity",
}

_SPRITE = re.compile(r"""<*<sprite\s*(?:name\s*)?=\s*["']?([^"'>\s/]+)["']?\s*/?>+""", re.IGNORECASE)
_PLACEHOLDER = re.compile(r"\{\[([^\[\]{}]*)\]\}")
_SEMANTIC_TAG = re.compile(
    r"<(%s)>(.*?)</\1>" % "|".join(SEMANTIC_TAG_UNITS),
    re.IGNORECASE | re.DOTALL,
)
_TAG = re.compile(r"<[^<>]*>")
_WHITESPACE = re.compile(r"\s+")


def _sprite_word(match: re.Match) -> str:
    token = match.group(1).lower()
    return f" {SPRITE_WORDS.get(token, token)} "


def _semantic(match: re.Match) -> str:
    unit = SEMANTIC_TAG_UNITS[match.group(1).lower()]
    return f"{match.group(2).strip()} {unit}"


def resolve_placeholders(text: str, values: Optional[Mapping[str, Any]] = None) -> str:
    """Substitute known ``{[key]}`` placeholders and drop the rest."""

    lookup = {str(key).lower(): value for key, value in (values or {}).items()}

    def replace(match: re.Match) -> str:
        value = lookup.get(match.group(1).strip().lower())
        return "" if value is None else str(value)

    return _PLACEHOLDER.sub(replace, text)


def strip_tags(text: Optional[str]) -> str:
    if not text:
        return ""
    return _WHITESPACE.sub(" ", _TAG.sub("", text)).strip()


def normalize(raw: Optional[str], values: Optional[Mapping[str, Any]] = None) -> str:
    """Plain text version of ``raw``.

    Sprites become words, placeholders are filled from ``values`` or removed,
    ``<gold>5</gold>`` style tags are read as ``5 gold`` and everything else in
    angle brackets is dropped.  The result never contains ``<`` or ``>`` and
    normalising it again returns it unchanged.
    """

    if not raw:
        return ""
    text = _SPRITE.sub(_sprite_word, str(raw))
    text = resolve_placeholders(text, values)
    text = _SEMANTIC_TAG.sub(_semantic, text)
    text = _TAG.sub("", text).replace("<", "").replace(">", "")
    # Removing tags or an inner placeholder can splice an outer one together.
    stripped = _PLACEHOLDER.sub("", text)
    while stripped != text:
        text, stripped = stripped, _PLACEHOLDER.sub("", stripped)
    return _WHITESPACE.sub(" ", text).strip()


__all__ = ["SEMANTIC_TAG_UNITS", "SPRITE_WORDS", "normalize", "resolve_placeholders", "strip_tags"]

PLUGIN_MANAGER.expose_module("modules.pyre_narrator.text")
