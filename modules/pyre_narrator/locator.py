"""Find and cache the host's subsystem singletons by logical name."""

from __future__ import annotations

from dataclasses import dataclass
import inspect
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from plugins import PLUGIN_MANAGER

from .runtime_backend import RuntimeBackend, default_backends

logger = logging.getLogger(__name__)

DEFAULT_MANAGER_NAMES = (
    "CardManager",
    "CombatManager",
    "HeroManager",
    "MonsterManager",
    "PlayerManager",
    "RoomManager",
    "SaveManager",
)

_SINGLETON_ATTRIBUTES = ("instance", "Instance", "_instance", "INSTANCE")
_SINGLETON_FACTORIES = ("get_instance", "GetInstance", "getInstance")


@dataclass(frozen=True)
class ManagerHandle:
    """A resolved singleton together with the backend that produced it."""

    name: str
    target: Any
    backend: str

    @property
    def type_name(self) -> str:
        return type(self.target).__name__


def singleton_from(candidate: Any) -> Any:
    """Return the live instance behind ``candidate``.

    Module level instances are returned as is.  Classes are probed for the
    usual singleton attributes and zero argument factories.
    """

    if candidate is None or inspect.ismodule(candidate):
        return None
    if not isinstance(candidate, type):
        if inspect.isroutine(candidate):
            return None
        return candidate
    for attribute in _SINGLETON_ATTRIBUTES:
        try:
            value = getattr(candidate, attribute, None)
        except Exception:
            continue
        if value is not None and not inspect.isroutine(value) and not isinstance(value, property):
            return value
    for factory in _SINGLETON_FACTORIES:
        try:
            method = getattr(candidate, factory, None)
            if callable(method):
                value = method()
                if value is not None:
                    return value
        except Exception:
            logger.debug("Singleton factory %s.%s failed", candidate.__name__, factory, exc_info=True)
    return None


class HandleLocator:
    """Owned cache of :class:`ManagerHandle` objects.

    Absence of a handle is a normal state: :meth:`get` returns ``None`` and the
    caller degrades.  Handles are only dropped by :meth:`invalidate` or
    replaced wholesale by :meth:`rediscover`.
    """

    def __init__(self, backends: Optional[Sequence[RuntimeBackend]] = None, known_names: Iterable[str] = DEFAULT_MANAGER_NAMES) -> None:
        self._backends: List[RuntimeBackend] = list(backends) if backends is not None else default_backends()
        self._handles: Dict[str, ManagerHandle] = {}
        self._types: Dict[str, Any] = {}
        self._known: List[str] = []
        for name in known_names:
            self._remember(name)

    @property
    def backends(self) -> Sequence[RuntimeBackend]:
        return tuple(self._backends)

    @property
    def known_names(self) -> Sequence[str]:
        return tuple(self._known)

    def cached(self) -> Dict[str, ManagerHandle]:
        return dict(self._handles)

    def _remember(self, name: str) -> None:
        if name not in self._known:
            self._known.append(name)

    def _search(self, name: str) -> Optional[ManagerHandle]:
        for backend in self._backends:
            try:
                if not backend.is_available():
                    continue
                instance = singleton_from(backend.lookup(name))
            except Exception:
                logger.debug("Backend %s failed looking up %s", backend.name, name, exc_info=True)
                continue
            if instance is not None:
                return ManagerHandle(name=name, target=instance, backend=backend.name)
        return None

    def handle(self, name: str) -> Optional[ManagerHandle]:
        self._remember(name)
        cached = self._handles.get(name)
        if cached is not None:
            return cached
        found = self._search(name)
        if found is None:
            logger.debug("No handle found for %s", name)
            return None
        self._handles[name] = found
        logger.info("Located %s (%s) via %s backend", name, found.type_name, found.backend)
        return found

    def get(self, name: str) -> Any:
        found = self.handle(name)
        return found.target if found is not None else None

    def find_type(self, name: str) -> Any:
        """Return the raw object registered as ``name`` (a class, an enum ...)."""

        if name in self._types:
            return self._types[name]
        for backend in self._backends:
            try:
                if not backend.is_available():
                    continue
                value = backend.lookup(name)
            except Exception:
                logger.debug("Backend %s failed looking up type %s", backend.name, name, exc_info=True)
                continue
            if value is not None:
                self._types[name] = value
                return value
        return None

    def invalidate(self, name: str) -> None:
        if self._handles.pop(name, None) is not None:
            logger.debug("Invalidated handle %s", name)

    def rediscover(self) -> Dict[str, ManagerHandle]:
        """Drop every cached handle and resolve all known names again."""

        self._handles.clear()
        self._types.clear()
        found: Dict[str, ManagerHandle] = {}
        for name in self._known:
            result = self.handle(name)
            if result is not None:
                found[name] = result
        missing = [name for name in self._known if name not in found]
        logger.info(
            "Rediscovered %d of %d handles%s",
            len(found),
            len(self._known),
            f" (missing: {', '.join(missing)})" if missing else "",
        )
        return found


__all__ = ["DEFAULT_MANAGER_NAMES", "HandleLocator", "ManagerHandle", "singleton_from"]

PLUGIN_MANAGER.expose_module("modules.pyre_narrator.locator")
