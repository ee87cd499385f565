"""Plugin registry shared by the narrator packages.

Modules hand their public API to :data:`PLUGIN_MANAGER` through
:meth:`PluginManager.expose_module`, so a plugin can reach the locator, the
extractor or the narrator without importing internals.  The narrator calls
:meth:`PluginManager.notify` with the ``on_narration`` hook for every line it
emits; a plugin that raises is logged and skipped while the others still hear
the line.

A plugin is a module with a ``setup_plugin(manager, exposed)`` callable that
returns the plugin object.  Hooks are ordinary methods on that object and a
plugin without a given hook is skipped.
"""
from __future__ import annotations

from dataclasses import dataclass
from importlib import import_module
from importlib.util import find_spec
import logging
import pkgutil
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

# Hooks the narrator fires.
NARRATION_HOOKS = ("on_narration",)


class PluginError(RuntimeError):
    """Raised when a plugin cannot be registered or one of its hooks is unusable."""


@dataclass
class PluginRecord:
    """A registered plugin and the exposure snapshot it was set up with."""

    name: str
    module: str
    obj: Any
    exposed: MappingProxyType


class PluginManager:
    """Registry of plugin objects plus the objects exposed to them."""

    def __init__(self) -> None:
        self._plugins: Dict[str, PluginRecord] = {}
        self._exposed: Dict[str, Any] = {}

    # ------------------------------------------------------------------
    # exposure
    # ------------------------------------------------------------------
    @property
    def exposed(self) -> MappingProxyType:
        return MappingProxyType(self._exposed)

    @property
    def plugins(self) -> MappingProxyType:
        return MappingProxyType(self._plugins)

    def expose(self, name: str, obj: Any) -> None:
        """Publish ``obj`` as ``name``, replacing any earlier object of that name."""

        if not name:
            raise PluginError("Exposed names must be non-empty strings.")
        self._exposed[name] = obj

    def expose_module(self, module_name: str, alias: Optional[str] = None) -> None:
        """Publish a read-only snapshot of the public names of ``module_name``."""

        module = import_module(module_name)
        public = {key: getattr(module, key) for key in dir(module) if not key.startswith("_")}
        self.expose(alias or module_name, MappingProxyType(public))

    # ------------------------------------------------------------------
    # registration
    # ------------------------------------------------------------------
    def register_plugin(self, module_name: str, attr: str = "setup_plugin") -> PluginRecord:
        if module_name in self._plugins:
            raise PluginError(f"Plugin '{module_name}' is already registered.")

        module = import_module(module_name)
        factory = getattr(module, attr, None)
        if factory is None:
            raise PluginError(f"Plugin '{module_name}' does not provide a '{attr}' callable.")
        if not callable(factory):
            raise PluginError(f"Plugin '{module_name}.{attr}' must be callable, got {type(factory)!r}.")

        instance = factory(self, self.exposed)
        record = PluginRecord(
            name=getattr(instance, "name", module_name),
            module=module_name,
            obj=instance,
            exposed=self.exposed,
        )
        self._plugins[module_name] = record
        logger.info("Registered plugin %s from %s", record.name, module_name)
        return record

    def unregister_plugin(self, module_name: str) -> Optional[PluginRecord]:
        record = self._plugins.pop(module_name, None)
        if record is not None:
            logger.info("Unregistered plugin %s", record.name)
        return record

    def ensure(self, required: Iterable[str]) -> None:
        missing = sorted(name for name in required if name not in self._plugins)
        if missing:
            raise PluginError("Missing required plugin(s): " + ", ".join(missing))

    # ------------------------------------------------------------------
    # hooks
    # ------------------------------------------------------------------
    def _hook_targets(self, hook: str) -> Iterator[Tuple[str, Callable[..., Any]]]:
        for name, record in list(self._plugins.items()):
            target = getattr(record.obj, hook, None)
            if target is None:
                continue
            if not callable(target):
                raise PluginError(f"Hook '{hook}' on plugin '{name}' is not callable (got {type(target)!r}).")
            yield name, target

    def broadcast(self, hook: str, *args: Any, **kwargs: Any) -> Dict[str, Any]:
        """Call ``hook`` on every plugin that has it; the first failure propagates."""

        return {name: target(*args, **kwargs) for name, target in self._hook_targets(hook)}

    def notify(self, hook: str, *args: Any, **kwargs: Any) -> Dict[str, Any]:
        """Like :meth:`broadcast` but a failing plugin is logged and left out of the result."""

        responses: Dict[str, Any] = {}
        for name, record in list(self._plugins.items()):
            target = getattr(record.obj, hook, None)
            if not callable(target):
                continue
            try:
                responses[name] = target(*args, **kwargs)
            except Exception:
                logger.exception("Plugin %s failed in %s", name, hook)
        return responses

    # ------------------------------------------------------------------
    # discovery
    # ------------------------------------------------------------------
    def auto_discover(
        self,
        package: str,
        *,
        attr: str = "setup_plugin",
        recursive: bool = True,
        match: Optional[Callable[[str], bool]] = None,
    ) -> Dict[str, PluginRecord]:
        """Register every module below ``package`` whose name looks like a plugin."""

        spec = find_spec(package)
        if spec is None or not spec.submodule_search_locations:
            raise PluginError(f"Plugin location '{package}' is not a package.")
        matcher = match or self._looks_like_plugin
        discovered: Dict[str, PluginRecord] = {}
        failures: List[Tuple[str, Exception]] = []
        for module_name in self._walk_modules(list(spec.submodule_search_locations), package, recursive):
            if not matcher(module_name):
                continue
            try:
                discovered[module_name] = self.register_plugin(module_name, attr=attr)
            except PluginError as exc:
                failures.append((module_name, exc))
        if failures:
            reasons = "\n".join(f"- {name}: {error}" for name, error in failures)
            raise PluginError("Failed to auto discover plugin modules:\n" + reasons)
        return discovered

    @staticmethod
    def _looks_like_plugin(module_name: str) -> bool:
        base = module_name.rsplit(".", 1)[-1].lower()
        return base.startswith("plugin_") or base.endswith("plugin")

    @staticmethod
    def _walk_modules(search_paths: Sequence[str], package_name: str, recursive: bool) -> Iterator[str]:
        for module_info in pkgutil.walk_packages(search_paths, package_name + "."):
            if module_info.ispkg and not recursive:
                continue
            yield module_info.name


PLUGIN_MANAGER = PluginManager()
PLUGIN_MANAGER.expose("auto_discover_plugins", PLUGIN_MANAGER.auto_discover)
PLUGIN_MANAGER.expose("narration_hooks", NARRATION_HOOKS)

__all__ = ["NARRATION_HOOKS", "PLUGIN_MANAGER", "PluginError", "PluginManager", "PluginRecord"]
