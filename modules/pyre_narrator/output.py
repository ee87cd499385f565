"""Outbound speech sinks.

The narrator only ever calls the three primitives of :class:`OutputSink`.  How
the text reaches the player (a screen reader bridge, a TTS engine, a log file)
is the sink's business; the narrator never relies on a sink queuing or rate
limiting on its behalf.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
import logging
import time
from typing import List, Optional, Tuple

from plugins import PLUGIN_MANAGER

logger = logging.getLogger(__name__)


class Channel(str, Enum):
    SPEAK = "speak"
    QUEUE = "queue"
    SCREEN = "screen"


@dataclass(frozen=True)
class NarrationCue:
    """One line handed to a sink."""

    text: str
    channel: Channel = Channel.QUEUE
    interrupt: bool = False
    timestamp: float = field(default_factory=lambda: time.time(), compare=False)


class OutputSink(ABC):
    """Abstract base class for speech output targets."""

    @abstractmethod
    def speak(self, text: str, interrupt: bool = False) -> None:
        """Say ``text`` now, cutting off current speech when ``interrupt`` is set."""

    @abstractmethod
    def queue(self, text: str) -> None:
        """Say ``text`` after whatever is already being said."""

    @abstractmethod
    def announce_screen(self, title: str) -> None:
        """Announce a screen transition banner."""


class RecordingSink(OutputSink):
    """Keeps every cue in memory, for diagnostics and tests."""

    def __init__(self, *, limit: Optional[int] = None) -> None:
        if limit is not None and limit <= 0:
            raise ValueError("limit must be a positive integer.")
        self._limit = limit
        self.cues: List[NarrationCue] = []

    def _record(self, cue: NarrationCue) -> None:
        self.cues.append(cue)
        if self._limit is not None and len(self.cues) > self._limit:
            del self.cues[: len(self.cues) - self._limit]

    def speak(self, text: str, interrupt: bool = False) -> None:
        self._record(NarrationCue(text, Channel.SPEAK, interrupt))

    def queue(self, text: str) -> None:
        self._record(NarrationCue(text, Channel.QUEUE))

    def announce_screen(self, title: str) -> None:
        self._record(NarrationCue(title, Channel.SCREEN, True))

    def texts(self, channel: Optional[Channel] = None) -> Tuple[str, ...]:
        return tuple(cue.text for cue in self.cues if channel is None or cue.channel is channel)

    def last(self) -> Optional[NarrationCue]:
        return self.cues[-1] if self.cues else None

    def clear(self) -> None:
        self.cues.clear()


class LoggingSink(OutputSink):
    """Writes every line to a logger instead of a speech engine."""

    def __init__(self, target: Optional[logging.Logger] = None, level: int = logging.INFO) -> None:
        self._logger = target or logger
        self._level = level

    def speak(self, text: str, interrupt: bool = False) -> None:
        self._logger.log(self._level, "[speak%s] %s", "!" if interrupt else "", text)

    def queue(self, text: str) -> None:
        self._logger.log(self._level, "[queue] %s", text)

    def announce_screen(self, title: str) -> None:
        self._logger.log(self._level, "[screen] %s", title)


__all__ = ["Channel", "LoggingSink", "NarrationCue", "OutputSink", "RecordingSink"]

PLUGIN_MANAGER.expose_module("modules.pyre_narrator.output")
