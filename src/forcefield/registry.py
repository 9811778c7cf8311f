"""Force fields selectable by name.

Worker threads look factories up while the controlling thread may be
registering new ones, so the table is guarded by a lock. Every lookup builds a
fresh instance; force fields carry per-run state and are never shared.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable

from .base import ForceField

ForceFieldFactory = Callable[[], ForceField]


@dataclass(frozen=True)
class ForceFieldEntry:
    name: str
    factory: ForceFieldFactory
    description: str = ""


_LOCK = threading.Lock()
_ENTRIES: dict[str, ForceFieldEntry] = {}


def _normalize(name: str) -> str:
    return str(name).strip().lower()


def register_force_field(
    name: str,
    factory: ForceFieldFactory,
    *,
    description: str = "",
) -> ForceFieldEntry:
    """Register ``factory`` under ``name`` (case-insensitive), replacing any previous entry."""
    key = _normalize(name)
    if not key:
        raise ValueError("Force field name must be non-empty.")
    entry = ForceFieldEntry(name=key, factory=factory, description=description)
    with _LOCK:
        _ENTRIES[key] = entry
    return entry


def unregister_force_field(name: str) -> bool:
    with _LOCK:
        return _ENTRIES.pop(_normalize(name), None) is not None


def get_force_field(name: str) -> ForceField:
    """Return a new instance of the named force field.

    Raises:
        KeyError: If nothing is registered under ``name``.
    """
    key = _normalize(name)
    with _LOCK:
        entry = _ENTRIES.get(key)
        available = sorted(_ENTRIES)
    if entry is None:
        raise KeyError(
            f"Force field '{name}' not registered "
            f"(available: {', '.join(available) or 'none'})."
        )
    return entry.factory()


def list_force_fields() -> list[str]:
    with _LOCK:
        return sorted(_ENTRIES)


def force_field_descriptions() -> dict[str, str]:
    with _LOCK:
        return {key: _ENTRIES[key].description for key in sorted(_ENTRIES)}


__all__ = [
    "ForceFieldEntry",
    "ForceFieldFactory",
    "force_field_descriptions",
    "get_force_field",
    "list_force_fields",
    "register_force_field",
    "unregister_force_field",
]
