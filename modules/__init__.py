"""Namespace for the narrator packages shipped with this repository."""
from __future__ import annotations

from plugins import PLUGIN_MANAGER  # pragma: no cover

PLUGIN_MANAGER.expose("modules_namespace", __name__)

__all__ = ["PLUGIN_MANAGER"]
