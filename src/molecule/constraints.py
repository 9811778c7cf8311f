"""Fixed-atom and fixed-distance constraints consulted during minimization."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FixedAtom:
    atom_id: int


@dataclass(frozen=True)
class FixedDistance:
    atom_a: int
    atom_b: int
    length: float | None = None


@dataclass(frozen=True)
class ResolvedConstraints:
    """Constraints translated to positional indices for one atom ordering."""

    fixed_indices: tuple[int, ...]
    distance_pairs: tuple[tuple[int, int, float | None], ...]
    skipped: tuple[FixedAtom | FixedDistance, ...]


@dataclass(frozen=True)
class ConstraintSet:
    fixed_atoms: tuple[FixedAtom, ...] = field(default_factory=tuple)
    fixed_distances: tuple[FixedDistance, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.fixed_atoms) + len(self.fixed_distances)

    @classmethod
    def from_mapping(cls, raw: dict[str, Any] | None) -> "ConstraintSet":
        """Build from ``{"atoms": [...], "distances": [{"a", "b", "length"}]}``."""
        if not raw:
            return cls()
        if not isinstance(raw, dict):
            raise ValueError("Constraints must be an object.")
        atoms = raw.get("atoms") or []
        distances = raw.get("distances") or []
        fixed_atoms = []
        for idx, atom_id in enumerate(atoms):
            if not isinstance(atom_id, int) or isinstance(atom_id, bool):
                raise ValueError(f"constraints.atoms[{idx}] must be an integer.")
            fixed_atoms.append(FixedAtom(atom_id))
        fixed_distances = []
        for idx, entry in enumerate(distances):
            if not isinstance(entry, dict):
                raise ValueError(f"constraints.distances[{idx}] must be an object.")
            for key in ("a", "b"):
                if key not in entry:
                    raise ValueError(f"constraints.distances[{idx}] must define '{key}'.")
            length = entry.get("length")
            fixed_distances.append(
                FixedDistance(
                    int(entry["a"]),
                    int(entry["b"]),
                    float(length) if length is not None else None,
                )
            )
        return cls(fixed_atoms=tuple(fixed_atoms), fixed_distances=tuple(fixed_distances))

    def validate(self) -> None:
        """Raise ``ValueError`` for constraints no geometry could satisfy."""
        for constraint in self.fixed_distances:
            if constraint.atom_a == constraint.atom_b:
                raise ValueError(
                    f"Fixed distance between atom {constraint.atom_a} and itself."
                )
            if constraint.length is not None and constraint.length <= 0:
                raise ValueError(
                    f"Fixed distance {constraint.atom_a}-{constraint.atom_b} "
                    f"must be > 0 (Angstrom), got {constraint.length}."
                )

    def resolve(self, atom_ids: Sequence[int]) -> ResolvedConstraints:
        """Map atom ids to indices in ``atom_ids``; unknown atoms are skipped."""
        self.validate()
        index_of = {atom_id: idx for idx, atom_id in enumerate(atom_ids)}
        skipped: list[FixedAtom | FixedDistance] = []
        fixed_indices = []
        for constraint in self.fixed_atoms:
            if constraint.atom_id not in index_of:
                skipped.append(constraint)
                continue
            fixed_indices.append(index_of[constraint.atom_id])
        pairs = []
        for constraint in self.fixed_distances:
            if constraint.atom_a not in index_of or constraint.atom_b not in index_of:
                skipped.append(constraint)
                continue
            pairs.append((index_of[constraint.atom_a], index_of[constraint.atom_b], constraint.length))
        for constraint in skipped:
            logger.warning("Ignoring constraint on missing atom(s): %s", constraint)
        return ResolvedConstraints(
            fixed_indices=tuple(sorted(set(fixed_indices))),
            distance_pairs=tuple(pairs),
            skipped=tuple(skipped),
        )


__all__ = ["ConstraintSet", "FixedAtom", "FixedDistance", "ResolvedConstraints"]
