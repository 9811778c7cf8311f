from .constraints import ConstraintSet, FixedAtom, FixedDistance, ResolvedConstraints
from .model import Atom, Molecule
from .snapshot import GeometrySnapshot, capture, restore

__all__ = [
    "Atom",
    "ConstraintSet",
    "FixedAtom",
    "FixedDistance",
    "GeometrySnapshot",
    "Molecule",
    "ResolvedConstraints",
    "capture",
    "restore",
]
