"""Glossary of mechanic keywords and the annotator that explains them.

A :class:`KeywordGlossary` maps a term (``Armor``, ``Rage`` ...) to the
sentence read out after a unit or card description.  Glossaries are usually
built from the host's own localisation tables through
:meth:`KeywordGlossary.from_provider`; :data:`FALLBACK_KEYWORDS` fills in the
mechanics the host only describes on card traits.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from plugins import PLUGIN_MANAGER

from .exceptions import ExternalReadError
from .text import strip_tags

if TYPE_CHECKING:  # pragma: no cover
    from .provider import GameStateProvider

logger = logging.getLogger(__name__)

_STACK_COUNT = re.compile(r"\s+\d+$")

FALLBACK_KEYWORDS: Tuple[Tuple[str, str], ...] = (
    ("Piercing", "Piercing: Damage ignores Armor and shields"),
    ("Magic Power", "Magic Power: Boosts spell damage and healing"),
    ("Attuned", "Attuned: Multiplies Magic Power effects by 5"),
    ("Doublestack", "Doublestack: Status effect stacks added by this card are doubled"),
    ("Offering", "Offering: Played automatically if discarded"),
    ("Reserve", "Reserve: Triggers if card remains in hand at end of turn"),
    ("Pyrebound", "Pyrebound: Only playable in Pyre Room or floor below"),
    ("X Cost", "X Cost: Spends all remaining Ember, effect scales with amount"),
    ("Unplayable", "Unplayable: This card cannot be played"),
    ("Spellchain", "Spellchain: Creates a copy with +1 cost and Purge"),
    ("Infused", "Infused: Floor gains 1 Echo when played"),
    ("Extract", "Extract: Removes charged echoes when played"),
    ("Ascend", "Ascend: Move up a floor to the back"),
    ("Descend", "Descend: Move down a floor to the back"),
    ("Reform", "Reform: Return a defeated friendly unit to hand"),
    ("Sacrifice", "Sacrifice: Kill a friendly unit to play this card"),
    ("Cultivate", "Cultivate: Increase stats of lowest health friendly unit"),
    ("Recover", "Recover: Restores health to friendly units after combat"),
    ("Enchant", "Enchant: Other friendly units on floor gain a bonus"),
    ("Eaten", "Eaten: Will be eaten by front unit after combat"),
    ("Soul", "Soul: Powers Devourer of Death's Extinguish ability"),
    ("Shard", "Shard: Powers Solgard the Martyr's abilities"),
    ("Buffet", "Buffet: Can be eaten multiple times"),
)

# (name suffix, tooltip suffixes) per localisation table.
_STATUS_SUFFIXES = ("_CardText", ("_CardTooltipText", "_TooltipText"))
_TRIGGER_SUFFIXES = ("_CardText", ("_TooltipText", "_CardTooltipText"))


def bare_terms(*sources: Optional[str]) -> List[str]:
    """Split comma separated sources into de-duplicated terms without stack counts."""

    seen = set()
    terms: List[str] = []
    for source in sources:
        if not source:
            continue
        for segment in str(source).split(","):
            term = _STACK_COUNT.sub("", segment.strip()).strip()
            if not term:
                continue
            key = term.casefold()
            if key in seen:
                continue
            seen.add(key)
            terms.append(term)
    return terms


class KeywordGlossary:
    """Case-insensitive term to explanation mapping."""

    def __init__(self, entries: Optional[Mapping[str, str]] = None) -> None:
        self._entries: Dict[str, Tuple[str, str]] = {}
        self._patterns: Dict[str, re.Pattern] = {}
        self.status_names: Dict[str, str] = {}
        for term, explanation in (entries or {}).items():
            self.add(term, explanation)

    # ------------------------------------------------------------------
    # mapping protocol
    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, term: object) -> bool:
        return isinstance(term, str) and term.casefold() in self._entries

    def __iter__(self) -> Iterator[str]:
        return (term for term, _ in self._entries.values())

    def get(self, term: str) -> Optional[str]:
        entry = self._entries.get(term.casefold())
        return entry[1] if entry else None

    def add(self, term: str, explanation: str, *, replace: bool = False) -> bool:
        """Register ``term``; existing entries win unless ``replace`` is set."""

        term = term.strip()
        key = term.casefold()
        if not term or (key in self._entries and not replace):
            return False
        self._entries[key] = (term, explanation.strip())
        self._patterns[key] = re.compile(r"\b%s\b" % re.escape(term), re.IGNORECASE)
        return True

    def extend(self, entries: Iterable[Tuple[str, str]]) -> int:
        return sum(1 for term, explanation in entries if self.add(term, explanation))

    # ------------------------------------------------------------------
    # annotation
    # ------------------------------------------------------------------
    def matches(self, term: str) -> List[str]:
        """Glossary keys found in ``term`` as whole words."""

        return [key for key, pattern in self._patterns.items() if pattern.search(term)]

    def annotate(self, *sources: Optional[str]) -> str:
        """Explanations for every glossary term named in ``sources``.

        ``annotate("Armor 5, Rage")`` looks up ``Armor`` and ``Rage``; a term
        only matches as a complete word so ``Armory`` does not explain ``Armor``.
        """

        explanations: List[str] = []
        seen = set()
        for term in bare_terms(*sources):
            for key in self.matches(term):
                if key in seen:
                    continue
                seen.add(key)
                explanation = self._entries[key][1].rstrip(". ")
                if explanation and explanation not in explanations:
                    explanations.append(explanation)
        return ". ".join(explanations)

    def status_name(self, status_id: str) -> str:
        """Display name of a host status id, falling back to a readable form of the id."""

        name = self.status_names.get(status_id)
        if name:
            return name
        words = re.sub(r"(?<=[a-z])(?=[A-Z])", " ", status_id).replace("_", " ").strip()
        return words[:1].upper() + words[1:] if words else status_id

    # ------------------------------------------------------------------
    # construction
    # ------------------------------------------------------------------
    @classmethod
    def with_fallbacks(cls) -> "KeywordGlossary":
        glossary = cls()
        glossary.extend(FALLBACK_KEYWORDS)
        return glossary

    @classmethod
    def from_provider(cls, provider: "GameStateProvider") -> "KeywordGlossary":
        """Build a glossary from the host's status and trigger localisation tables."""

        glossary = cls()
        for label, read_table, (name_suffix, tooltip_suffixes) in (
            ("status effects", provider.status_localization_table, _STATUS_SUFFIXES),
            ("triggers", provider.trigger_localization_table, _TRIGGER_SUFFIXES),
        ):
            try:
                table = read_table()
            except ExternalReadError as exc:
                logger.debug("Skipping %s glossary: %s", label, exc)
                continue
            added = 0
            for identifier, prefix in table.items():
                name = _localized(provider, prefix + name_suffix)
                if not name:
                    continue
                if label == "status effects":
                    glossary.status_names.setdefault(identifier, name)
                tooltip = None
                for suffix in tooltip_suffixes:
                    tooltip = _localized(provider, prefix + suffix)
                    if tooltip:
                        break
                if glossary.add(name, f"{name}: {tooltip}" if tooltip else name):
                    added += 1
            logger.debug("Loaded %d keywords from %s", added, label)
        glossary.extend(FALLBACK_KEYWORDS)
        logger.info("Keyword glossary holds %d entries", len(glossary))
        return glossary


def _localized(provider: "GameStateProvider", key: str) -> Optional[str]:
    """Localised, tag free text for ``key`` or ``None`` when the host has none."""

    try:
        value = provider.localize(key)
    except ExternalReadError:
        return None
    if not value or value == key:
        return None
    return strip_tags(value) or None


__all__ = ["FALLBACK_KEYWORDS", "KeywordGlossary", "bare_terms"]

PLUGIN_MANAGER.expose_module("modules.pyre_narrator.keywords")
