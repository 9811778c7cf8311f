"""In-memory molecule model used by the editor core.

Only coordinates are mutated by the optimizer. Each position is stored as its
own array and replaced wholesale on write, so a concurrent reader (renderer)
sees either the old or the new position of an atom, never a half-written one.
Whole-geometry reads may still mix old and new atoms mid-run.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence

import numpy as np


@dataclass(frozen=True)
class Atom:
    atom_id: int
    symbol: str


class Molecule:
    """Mutable atom container with stable integer atom ids."""

    def __init__(self, name: str = "molecule") -> None:
        self.name = name
        self._symbols: dict[int, str] = {}
        self._positions: dict[int, np.ndarray] = {}
        self._ids = itertools.count()
        self._topology_lock = threading.Lock()

    def __repr__(self) -> str:
        return f"Molecule(name={self.name!r}, atoms={len(self)})"

    def __len__(self) -> int:
        return len(self._symbols)

    def __contains__(self, atom_id: object) -> bool:
        return atom_id in self._symbols

    @classmethod
    def from_symbols(
        cls,
        symbols: Sequence[str],
        positions: Iterable[Sequence[float]],
        name: str = "molecule",
    ) -> "Molecule":
        positions = list(positions)
        if len(symbols) != len(positions):
            raise ValueError(
                f"Got {len(symbols)} symbols but {len(positions)} positions."
            )
        molecule = cls(name=name)
        for symbol, position in zip(symbols, positions):
            molecule.add_atom(symbol, position)
        return molecule

    def add_atom(self, symbol: str, position: Sequence[float]) -> int:
        symbol = str(symbol).strip()
        if not symbol:
            raise ValueError("Atom symbol must be non-empty.")
        with self._topology_lock:
            atom_id = next(self._ids)
            self._symbols[atom_id] = symbol
            self._positions[atom_id] = _as_position(position)
        return atom_id

    def remove_atom(self, atom_id: int) -> None:
        with self._topology_lock:
            if atom_id not in self._symbols:
                raise KeyError(f"Atom {atom_id} not found in {self.name}.")
            del self._symbols[atom_id]
            del self._positions[atom_id]

    def atom_ids(self) -> list[int]:
        with self._topology_lock:
            return list(self._symbols)

    def atoms(self) -> Iterator[Atom]:
        for atom_id in self.atom_ids():
            symbol = self._symbols.get(atom_id)
            if symbol is not None:
                yield Atom(atom_id, symbol)

    def symbol(self, atom_id: int) -> str:
        return self._symbols[atom_id]

    def get_atom_position(self, atom_id: int) -> np.ndarray:
        return self._positions[atom_id].copy()

    def set_atom_position(self, atom_id: int, position: Sequence[float]) -> None:
        if atom_id not in self._positions:
            raise KeyError(f"Atom {atom_id} not found in {self.name}.")
        self._positions[atom_id] = _as_position(position)

    def positions(self, atom_ids: Sequence[int] | None = None) -> np.ndarray:
        """Return an (N, 3) copy of the positions, in ``atom_ids`` order."""
        if atom_ids is None:
            atom_ids = self.atom_ids()
        if not atom_ids:
            return np.zeros((0, 3), dtype=float)
        return np.array([self._positions[atom_id] for atom_id in atom_ids], dtype=float)


def _as_position(position: Sequence[float]) -> np.ndarray:
    array = np.array(position, dtype=float)
    if array.shape != (3,):
        raise ValueError(f"Position must have three components, got shape {array.shape}.")
    if not np.all(np.isfinite(array)):
        raise ValueError(f"Position must be finite, got {array.tolist()}.")
    array.setflags(write=False)
    return array


__all__ = ["Atom", "Molecule"]
