"""ASE-backed force fields.

Energies and forces come from ASE calculators; constraints are mapped onto
``FixAtoms`` / ``FixBondLengths`` so both the forces and every trial position
honor them. The minimizer itself is a small line-search loop so that each
call performs exactly one step and the caller decides when to stop.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

import numpy as np

from molecule import ConstraintSet, Molecule
from .base import (
    ALGORITHM_CONJUGATE_GRADIENTS,
    ALGORITHMS,
    GRADIENT_MODES,
    GRADIENT_NUMERICAL,
    ForceFieldCapabilities,
)
from .registry import register_force_field

logger = logging.getLogger(__name__)

_SETUP_ERRORS = (KeyError, ValueError, NotImplementedError, RuntimeError)


class AseForceField:
    def __init__(
        self,
        name: str,
        calculator_factory: Callable[[], Any],
        *,
        initial_step: float = 0.05,
        max_step: float = 1.0,
        max_displacement: float = 0.2,
        max_backtracks: int = 10,
        numerical_step: float = 1.0e-4,
    ) -> None:
        self.name = name
        self._calculator_factory = calculator_factory
        self._initial_step = initial_step
        self._max_step = max_step
        self._max_displacement = max_displacement
        self._max_backtracks = max_backtracks
        self._numerical_step = numerical_step
        self._atoms = None
        self._atom_ids: tuple[int, ...] = ()
        self._energy: float | None = None
        self._gradient_norm: float | None = None
        self._step_length = initial_step
        self._previous_forces: np.ndarray | None = None
        self._previous_direction: np.ndarray | None = None

    def capabilities(self) -> ForceFieldCapabilities:
        return ForceFieldCapabilities()

    def setup(self, molecule: Molecule, constraints: ConstraintSet) -> bool:
        from ase import Atoms
        from ase.constraints import FixAtoms, FixBondLengths

        atom_ids = molecule.atom_ids()
        if not atom_ids:
            logger.warning("Force field %s: %s has no atoms.", self.name, molecule.name)
            return False
        try:
            resolved = constraints.resolve(atom_ids)
        except ValueError as exc:
            logger.warning("Force field %s: malformed constraints (%s).", self.name, exc)
            return False
        try:
            symbols = [molecule.symbol(atom_id) for atom_id in atom_ids]
            atoms = Atoms(symbols=symbols, positions=molecule.positions(atom_ids))
        except (KeyError, ValueError) as exc:
            logger.warning("Force field %s: cannot build atoms (%s).", self.name, exc)
            return False

        ase_constraints = []
        if resolved.fixed_indices:
            ase_constraints.append(FixAtoms(indices=list(resolved.fixed_indices)))
        if resolved.distance_pairs:
            pairs = [[a, b] for a, b, _ in resolved.distance_pairs]
            lengths = [
                length if length is not None else atoms.get_distance(a, b)
                for a, b, length in resolved.distance_pairs
            ]
            ase_constraints.append(FixBondLengths(pairs, bondlengths=np.array(lengths)))
        if ase_constraints:
            atoms.set_constraint(ase_constraints)

        try:
            atoms.calc = self._calculator_factory()
            energy = float(atoms.get_potential_energy())
        except _SETUP_ERRORS as exc:
            logger.warning("Force field %s: setup failed (%s).", self.name, exc)
            return False
        if not np.isfinite(energy):
            logger.warning("Force field %s: initial energy is not finite.", self.name)
            return False

        self._atoms = atoms
        self._atom_ids = tuple(atom_ids)
        self._energy = energy
        self._gradient_norm = None
        self._step_length = self._initial_step
        self._previous_forces = None
        self._previous_direction = None
        return True

    def step_energy_minimization(self, algorithm: str, gradient_mode: str) -> float:
        """Take one minimization step and return the energy change (<= 0)."""
        atoms = self._require_atoms()
        if algorithm not in ALGORITHMS:
            raise ValueError(f"Unknown minimization algorithm: {algorithm}")
        if gradient_mode not in GRADIENT_MODES:
            raise ValueError(f"Unknown gradient mode: {gradient_mode}")

        forces = self._forces(gradient_mode)
        self._gradient_norm = float(np.linalg.norm(forces))
        if algorithm == ALGORITHM_CONJUGATE_GRADIENTS:
            direction = self._conjugate_direction(forces)
        else:
            direction = forces
        if not np.any(direction):
            return 0.0

        start = atoms.get_positions()
        start_energy = self._energy
        step = self._step_length
        for _ in range(self._max_backtracks):
            displacement = step * direction
            largest = float(np.max(np.linalg.norm(displacement, axis=1)))
            if largest > self._max_displacement:
                displacement *= self._max_displacement / largest
            atoms.set_positions(start + displacement)
            energy = float(atoms.get_potential_energy())
            if np.isfinite(energy) and energy < start_energy:
                self._energy = energy
                self._step_length = min(step * 1.2, self._max_step)
                return energy - start_energy
            step *= 0.5

        # No downhill point along this direction: stay put, restart CG.
        atoms.set_positions(start)
        self._energy = float(atoms.get_potential_energy())
        self._step_length = self._initial_step
        self._previous_forces = None
        self._previous_direction = None
        return 0.0

    def energy(self) -> float:
        self._require_atoms()
        return float(self._energy)

    def gradient_norm(self) -> float:
        if self._gradient_norm is None:
            self._gradient_norm = float(np.linalg.norm(self._require_atoms().get_forces()))
        return self._gradient_norm

    def positions(self) -> dict[int, np.ndarray]:
        coordinates = self._require_atoms().get_positions()
        return {atom_id: coordinates[idx].copy() for idx, atom_id in enumerate(self._atom_ids)}

    def _require_atoms(self):
        if self._atoms is None:
            raise RuntimeError(f"Force field {self.name} has not been set up.")
        return self._atoms

    def _forces(self, gradient_mode: str) -> np.ndarray:
        atoms = self._require_atoms()
        if gradient_mode == GRADIENT_NUMERICAL:
            return self._numerical_forces()
        return np.array(atoms.get_forces(), dtype=float)

    def _numerical_forces(self) -> np.ndarray:
        atoms = self._require_atoms()
        base_positions = atoms.get_positions()
        forces = np.zeros_like(base_positions)
        step = self._numerical_step
        for atom_idx in range(len(base_positions)):
            for coord in range(3):
                pos_plus = base_positions.copy()
                pos_plus[atom_idx, coord] += step
                atoms.set_positions(pos_plus, apply_constraint=False)
                energy_plus = atoms.get_potential_energy()
                pos_minus = base_positions.copy()
                pos_minus[atom_idx, coord] -= step
                atoms.set_positions(pos_minus, apply_constraint=False)
                energy_minus = atoms.get_potential_energy()
                forces[atom_idx, coord] = -(energy_plus - energy_minus) / (2.0 * step)
        atoms.set_positions(base_positions, apply_constraint=False)
        for constraint in atoms.constraints:
            constraint.adjust_forces(atoms, forces)
        return forces

    def _conjugate_direction(self, forces: np.ndarray) -> np.ndarray:
        direction = forces
        previous_forces = self._previous_forces
        if previous_forces is not None and self._previous_direction is not None:
            denom = float(np.vdot(previous_forces, previous_forces))
            if denom > 0.0:
                # Polak-Ribiere, clipped at zero for an automatic restart.
                beta = max(0.0, float(np.vdot(forces, forces - previous_forces)) / denom)
                direction = forces + beta * self._previous_direction
            if float(np.vdot(direction, forces)) <= 0.0:
                direction = forces
        self._previous_forces = forces.copy()
        self._previous_direction = direction.copy()
        return direction


def _lennard_jones():
    from ase.calculators.lj import LennardJones

    return LennardJones()


def _morse():
    from ase.calculators.morse import MorsePotential

    return MorsePotential()


def _emt():
    from ase.calculators.emt import EMT

    return EMT()


_BUILTIN_CALCULATORS: dict[str, tuple[Callable[[], Any], str]] = {
    "lj": (_lennard_jones, "Lennard-Jones pair potential (ASE LennardJones)"),
    "morse": (_morse, "Morse pair potential (ASE MorsePotential)"),
    "emt": (_emt, "Effective medium theory for metals (ASE EMT)"),
}


def register_builtin_force_fields() -> None:
    for name, (calculator_factory, description) in _BUILTIN_CALCULATORS.items():
        register_force_field(
            name,
            lambda name=name, calculator_factory=calculator_factory: AseForceField(
                name, calculator_factory
            ),
            description=description,
        )


__all__ = ["AseForceField", "register_builtin_force_fields"]
