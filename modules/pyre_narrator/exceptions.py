"""Custom exception hierarchy for the narrator."""

from __future__ import annotations

from typing import Optional


class NarratorError(RuntimeError):
    """Base exception for narrator failures."""


class ConfigurationError(NarratorError):
    """Raised when the narrator is misconfigured."""


class ExternalReadError(NarratorError):
    """Base class for failed reads against the host runtime.

    ``operation`` names the logical read and ``type_name`` the external type it
    was attempted on, which is what a schema change shows up as in the logs.
    """

    def __init__(self, operation: str, type_name: Optional[str] = None, detail: str = "") -> None:
        self.operation = operation
        self.type_name = type_name or "?"
        self.detail = detail
        message = f"{self.kind} for '{operation}' on {self.type_name}"
        if detail:
            message += f": {detail}"
        super().__init__(message)

    kind = "read failure"


class LookupFailure(ExternalReadError):
    """The logical name or operation does not exist in the external graph."""

    kind = "lookup failure"


class InvocationFailure(ExternalReadError):
    """The operation exists but raised, or returned an unexpected shape."""

    kind = "invocation failure"


class TypeMismatch(ExternalReadError):
    """The returned value is not of the expected semantic type."""

    kind = "type mismatch"


__all__ = [
    "ConfigurationError",
    "ExternalReadError",
    "InvocationFailure",
    "LookupFailure",
    "NarratorError",
    "TypeMismatch",
]
