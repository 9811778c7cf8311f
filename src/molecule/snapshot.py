"""Immutable geometry snapshots for undo/redo."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator

import numpy as np

from .model import Molecule

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class GeometrySnapshot:
    """Value copy of ``(atom_id, position)`` pairs taken at one instant."""

    atom_ids: tuple[int, ...]
    coordinates: np.ndarray

    def __post_init__(self) -> None:
        if self.coordinates.shape != (len(self.atom_ids), 3):
            raise ValueError(
                "Snapshot coordinates must be (N, 3) matching atom_ids, "
                f"got {self.coordinates.shape} for {len(self.atom_ids)} atoms."
            )
        if self.coordinates.flags.writeable:
            raise ValueError("Snapshot coordinates must be read-only.")

    def __len__(self) -> int:
        return len(self.atom_ids)

    def __iter__(self) -> Iterator[tuple[int, np.ndarray]]:
        return iter(zip(self.atom_ids, self.coordinates))

    def position(self, atom_id: int) -> np.ndarray:
        return self.coordinates[self.atom_ids.index(atom_id)].copy()

    def matches(self, molecule: Molecule, atol: float = 0.0) -> bool:
        """True when every captured atom still sits at its captured position."""
        for atom_id, position in self:
            if atom_id not in molecule:
                return False
            current = molecule.get_atom_position(atom_id)
            if atol == 0.0:
                if not np.array_equal(current, position):
                    return False
            elif not np.allclose(current, position, rtol=0.0, atol=atol):
                return False
        return True


def capture(molecule: Molecule) -> GeometrySnapshot:
    atom_ids = tuple(molecule.atom_ids())
    coordinates = molecule.positions(atom_ids)
    coordinates.setflags(write=False)
    return GeometrySnapshot(atom_ids=atom_ids, coordinates=coordinates)


def restore(snapshot: GeometrySnapshot, molecule: Molecule) -> list[int]:
    """Write the snapshot back atom-for-atom.

    Atoms removed since the capture are skipped and returned; atoms added since
    then keep their current positions.
    """
    missing: list[int] = []
    for atom_id, position in snapshot:
        try:
            molecule.set_atom_position(atom_id, position)
        except KeyError:
            missing.append(atom_id)
    if missing:
        logger.warning(
            "Snapshot restore skipped %d atom(s) no longer in %s: %s",
            len(missing),
            molecule.name,
            missing,
        )
    return missing


__all__ = ["GeometrySnapshot", "capture", "restore"]
