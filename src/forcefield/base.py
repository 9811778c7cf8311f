from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import numpy as np

from molecule import ConstraintSet, Molecule

ALGORITHM_STEEPEST_DESCENT = "steepest_descent"
ALGORITHM_CONJUGATE_GRADIENTS = "conjugate_gradients"
ALGORITHMS = (ALGORITHM_STEEPEST_DESCENT, ALGORITHM_CONJUGATE_GRADIENTS)

GRADIENT_ANALYTICAL = "analytical"
GRADIENT_NUMERICAL = "numerical"
GRADIENT_MODES = (GRADIENT_ANALYTICAL, GRADIENT_NUMERICAL)


@dataclass(frozen=True)
class ForceFieldCapabilities:
    supports_analytical_gradient: bool = True
    supports_constraints: bool = True


class ForceField(Protocol):
    name: str

    def capabilities(self) -> ForceFieldCapabilities: ...

    def setup(self, molecule: Molecule, constraints: ConstraintSet) -> bool: ...
    def step_energy_minimization(self, algorithm: str, gradient_mode: str) -> float: ...

    def energy(self) -> float: ...
    def gradient_norm(self) -> float: ...
    def positions(self) -> dict[int, np.ndarray]: ...


__all__ = [
    "ALGORITHMS",
    "ALGORITHM_CONJUGATE_GRADIENTS",
    "ALGORITHM_STEEPEST_DESCENT",
    "ForceField",
    "ForceFieldCapabilities",
    "GRADIENT_ANALYTICAL",
    "GRADIENT_MODES",
    "GRADIENT_NUMERICAL",
]
