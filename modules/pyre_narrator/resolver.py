"""Resolve logical read operations to concrete members of host objects.

The host exposes several historically named equivalents for some reads
(``GetSelectedRoom`` in one build, ``GetActiveRoom`` in the next).  The
resolver walks an ordered list of :class:`AccessorCandidate` objects once per
``(type, operation)`` pair and memoises the outcome, including misses, so a
frame never pays for probing twice.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import inspect
import logging
from typing import Any, Dict, Optional, Sequence, Tuple

from plugins import PLUGIN_MANAGER

from .exceptions import InvocationFailure

logger = logging.getLogger(__name__)

_MISSING = object()


class MemberKind(str, Enum):
    METHOD = "method"
    ATTRIBUTE = "attribute"


@dataclass(frozen=True)
class AccessorCandidate:
    """One acceptable spelling of a logical read."""

    name: str
    arity: int = 0
    kind: MemberKind = MemberKind.METHOD


def method(name: str, arity: int = 0) -> AccessorCandidate:
    return AccessorCandidate(name, arity, MemberKind.METHOD)


def attribute(name: str) -> AccessorCandidate:
    return AccessorCandidate(name, 0, MemberKind.ATTRIBUTE)


@dataclass(frozen=True)
class AccessorDescriptor:
    """Cached resolution of one operation for one external type."""

    type_name: str
    operation: str
    member: str
    kind: MemberKind
    arity: int

    def bind(self, target: Any) -> "BoundAccessor":
        return BoundAccessor(self, target)


class BoundAccessor:
    """An :class:`AccessorDescriptor` bound to a live host object."""

    __slots__ = ("descriptor", "target")

    def __init__(self, descriptor: AccessorDescriptor, target: Any) -> None:
        self.descriptor = descriptor
        self.target = target

    def __call__(self, *args: Any) -> Any:
        descriptor = self.descriptor
        try:
            member = getattr(self.target, descriptor.member)
            if descriptor.kind is MemberKind.METHOD:
                return member(*args)
            return member
        except Exception as exc:
            raise InvocationFailure(
                descriptor.operation,
                descriptor.type_name,
                f"{descriptor.member} raised {type(exc).__name__}: {exc}",
            ) from exc

    def __repr__(self) -> str:  # pragma: no cover - representation helper
        return f"<BoundAccessor {self.descriptor.type_name}.{self.descriptor.member}>"


def _owner(target: Any) -> type:
    # Static reads are keyed on the class itself.
    return target if isinstance(target, type) else type(target)


def _accepts_arity(member: Any, arity: int) -> bool:
    try:
        signature = inspect.signature(member)
    except (TypeError, ValueError):
        # Bridged callables (JPype, builtins) do not always expose a signature.
        return True
    try:
        signature.bind(*([None] * arity))
    except TypeError:
        return False
    return True


def _is_routine(static: Any) -> bool:
    return inspect.isroutine(static) or isinstance(static, (staticmethod, classmethod))


class AccessorResolver:
    """Owned per-session cache of accessor resolutions."""

    def __init__(self) -> None:
        self._cache: Dict[Tuple[type, str], Optional[AccessorDescriptor]] = {}
        self.probe_count = 0

    def cached(self, target: Any, operation: str) -> Any:
        """Return the cached descriptor, ``None`` for a cached miss, or ``_MISSING``."""

        return self._cache.get((_owner(target), operation), _MISSING)

    def is_cached(self, target: Any, operation: str) -> bool:
        return (_owner(target), operation) in self._cache

    def clear(self) -> None:
        self._cache.clear()

    def resolve(
        self,
        target: Any,
        operation: str,
        candidates: Sequence[AccessorCandidate],
    ) -> Optional[BoundAccessor]:
        if target is None:
            return None
        key = (_owner(target), operation)
        if key in self._cache:
            descriptor = self._cache[key]
            return descriptor.bind(target) if descriptor is not None else None

        type_name = key[0].__name__
        for candidate in candidates:
            self.probe_count += 1
            if self._matches(target, candidate):
                descriptor = AccessorDescriptor(
                    type_name=type_name,
                    operation=operation,
                    member=candidate.name,
                    kind=candidate.kind,
                    arity=candidate.arity,
                )
                self._cache[key] = descriptor
                logger.debug("Resolved %s on %s to %s", operation, type_name, candidate.name)
                return descriptor.bind(target)

        self._cache[key] = None
        logger.debug(
            "No accessor for %s on %s (tried %s)",
            operation,
            type_name,
            ", ".join(candidate.name for candidate in candidates) or "nothing",
        )
        return None

    @staticmethod
    def _matches(target: Any, candidate: AccessorCandidate) -> bool:
        try:
            static = inspect.getattr_static(target, candidate.name)
        except AttributeError:
            # Members synthesised by __getattr__ only show up dynamically.
            try:
                static = getattr(target, candidate.name)
            except Exception:
                return False

        if candidate.kind is MemberKind.ATTRIBUTE:
            return not _is_routine(static)

        if isinstance(static, property) or not (callable(static) or _is_routine(static)):
            return False
        try:
            member = getattr(target, candidate.name)
        except Exception:
            return False
        return _accepts_arity(member, candidate.arity)


__all__ = [
    "AccessorCandidate",
    "AccessorDescriptor",
    "AccessorResolver",
    "BoundAccessor",
    "MemberKind",
    "attribute",
    "method",
]

PLUGIN_MANAGER.expose_module("modules.pyre_narrator.resolver")
