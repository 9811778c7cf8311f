"""Per-molecule writer ownership so that only one task mutates coordinates."""

from __future__ import annotations

import threading
import weakref
from typing import Protocol

from molecule import Molecule
from .errors import ConcurrentTaskConflict


class _Writer(Protocol):
    task_id: str

    @property
    def is_writing(self) -> bool: ...


_GUARD = threading.Lock()
_OWNERS: "weakref.WeakKeyDictionary[Molecule, _Writer]" = weakref.WeakKeyDictionary()


def claim_writer(molecule: Molecule, writer: _Writer) -> None:
    """Register ``writer`` as the molecule's coordinate writer.

    A previous owner that has stopped writing (finished, or asked to stop) is
    treated as stale and replaced.

    Raises:
        ConcurrentTaskConflict: If another writer is still live.
    """
    with _GUARD:
        owner = _OWNERS.get(molecule)
        if owner is not None and owner is not writer and owner.is_writing:
            raise ConcurrentTaskConflict(
                f"Another optimization is active on {molecule.name} "
                f"(task_id={owner.task_id})."
            )
        _OWNERS[molecule] = writer


def release_writer(molecule: Molecule, writer: _Writer) -> None:
    with _GUARD:
        if _OWNERS.get(molecule) is writer:
            del _OWNERS[molecule]


def active_writer(molecule: Molecule) -> _Writer | None:
    with _GUARD:
        owner = _OWNERS.get(molecule)
        if owner is not None and owner.is_writing:
            return owner
        return None


__all__ = ["active_writer", "claim_writer", "release_writer"]
