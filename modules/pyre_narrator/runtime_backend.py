"""Pluggable lookups into the host runtime.

The narrator never imports the host's code.  It asks a backend for a name and
gets back whatever object the host has registered under it, or ``None``.  Two
backends ship with the package:

* :class:`PythonRuntimeBackend` scans the modules already imported into the
  current interpreter, for hosts that embed Python or expose their object
  graph through a Python bridge module.
* :class:`JPypeRuntimeBackend` resolves fully qualified class names through
  JPype when the engine runs on a JVM that has already been started.

Backends are tried in order by :class:`modules.pyre_narrator.locator.HandleLocator`.
A backend must never raise from :meth:`RuntimeBackend.lookup`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
import sys
from types import ModuleType
from typing import Any, Iterable, List, Optional, Sequence

from plugins import PLUGIN_MANAGER

try:  # pragma: no cover - import guard for optional dependency
    import jpype
except ImportError:  # pragma: no cover
    jpype = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

# Never scanned: our own code and the plugin registry.
_OWN_MODULES = ("modules", "plugins", "tests")


class RuntimeBackend(ABC):
    """Abstract base class for host runtime bridges."""

    name: str

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` when the bridge can currently answer lookups."""

    @abstractmethod
    def lookup(self, name: str) -> Any:
        """Return the object the host exposes as ``name`` or ``None``."""


class PythonRuntimeBackend(RuntimeBackend):
    """Search the interpreter's loaded modules for a top level name.

    Dotted names (``Team.Type``) are resolved attribute by attribute after the
    first segment is found.  Only module ``__dict__`` entries are consulted so
    modules with a lazy ``__getattr__`` are not forced to import anything.
    """

    name = "python"

    def __init__(self, module_prefixes: Sequence[str] = (), modules: Optional[Iterable[ModuleType]] = None) -> None:
        self._prefixes = tuple(module_prefixes)
        self._modules = list(modules) if modules is not None else None

    def is_available(self) -> bool:
        return True

    def _candidate_modules(self) -> List[ModuleType]:
        if self._modules is not None:
            return list(self._modules)
        selected = []
        for module_name, module in list(sys.modules.items()):
            if module is None:
                continue
            root = module_name.split(".", 1)[0]
            if root in _OWN_MODULES:
                continue
            if self._prefixes and not any(
                module_name == prefix or module_name.startswith(prefix + ".")
                for prefix in self._prefixes
            ):
                continue
            selected.append(module)
        return selected

    def lookup(self, name: str) -> Any:
        head, *rest = name.split(".")
        for module in self._candidate_modules():
            try:
                namespace = vars(module)
            except TypeError:
                continue
            value = namespace.get(head)
            if value is None:
                continue
            try:
                for part in rest:
                    value = getattr(value, part)
            except Exception:
                continue
            return value
        return None


class JPypeRuntimeBackend(RuntimeBackend):
    """Resolve classes inside an already running JVM through JPype.

    ``packages`` lists the package prefixes tried for bare names, in order.  The
    backend never starts the JVM itself: the host owns the VM lifecycle.
    """

    name = "jpype"

    def __init__(self, packages: Sequence[str] = ()) -> None:
        self._packages = tuple(packages)

    def is_available(self) -> bool:
        if jpype is None:
            return False
        try:
            return bool(jpype.isJVMStarted())
        except Exception:
            return False

    def _qualified_names(self, name: str) -> List[str]:
        names = [f"{package}.{name}" for package in self._packages]
        names.append(name)
        return names

    def lookup(self, name: str) -> Any:
        if not self.is_available():
            return None
        for fqcn in self._qualified_names(name):
            # Nested classes use '$' in the JVM but dots in our names.
            head, _, tail = fqcn.rpartition(".")
            attempts = [fqcn]
            if head and tail and "." in head:
                attempts.append(f"{head}${tail}")
            for attempt in attempts:
                try:
                    return jpype.JClass(attempt)
                except Exception:
                    continue
        return None


def default_backends(module_prefixes: Sequence[str] = (), java_packages: Sequence[str] = ()) -> List[RuntimeBackend]:
    """Backends in lookup order: Python first, then JPype."""

    return [PythonRuntimeBackend(module_prefixes), JPypeRuntimeBackend(java_packages)]


__all__ = [
    "JPypeRuntimeBackend",
    "PythonRuntimeBackend",
    "RuntimeBackend",
    "default_backends",
]

PLUGIN_MANAGER.expose_module("modules.pyre_narrator.runtime_backend")
