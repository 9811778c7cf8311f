from __future__ import annotations

import threading

import numpy as np
import pytest

from forcefield import ForceFieldCapabilities, register_force_field, unregister_force_field
from molecule import Molecule

GATE_TIMEOUT = 10.0


class GateController:
    """Shared switches for every GatedForceField built by one fixture."""

    def __init__(self) -> None:
        self.gate = threading.Event()
        self.step_started = threading.Event()
        self.setup_called = threading.Event()
        self.steps_taken = 0


class GatedForceField:
    """Moves every atom +0.1 in x per step, but only once the gate is open."""

    name = "gated"

    def __init__(self, controller: GateController) -> None:
        self._controller = controller
        self._positions: dict[int, np.ndarray] = {}
        self._energy = 0.0

    def capabilities(self) -> ForceFieldCapabilities:
        return ForceFieldCapabilities(supports_constraints=False)

    def setup(self, molecule, constraints) -> bool:
        self._positions = {atom_id: molecule.get_atom_position(atom_id) for atom_id in molecule.atom_ids()}
        self._controller.setup_called.set()
        return True

    def step_energy_minimization(self, algorithm, gradient_mode) -> float:
        self._controller.step_started.set()
        if not self._controller.gate.wait(GATE_TIMEOUT):
            raise RuntimeError("gate never opened")
        for atom_id, position in self._positions.items():
            self._positions[atom_id] = position + np.array([0.1, 0.0, 0.0])
        self._controller.steps_taken += 1
        self._energy -= 1.0
        return -1.0

    def energy(self) -> float:
        return self._energy

    def gradient_norm(self) -> float:
        return 1.0

    def positions(self):
        return {atom_id: position.copy() for atom_id, position in self._positions.items()}


@pytest.fixture
def gated_force_field():
    controller = GateController()
    register_force_field("gated", lambda: GatedForceField(controller))
    yield controller
    controller.gate.set()
    unregister_force_field("gated")


@pytest.fixture
def argon_trimer() -> Molecule:
    # Stretched Lennard-Jones triangle (sigma=1): far from the 1.12 minimum.
    return Molecule.from_symbols(
        ["Ar", "Ar", "Ar"],
        [(0.0, 0.0, 0.0), (1.5, 0.0, 0.0), (0.2, 1.4, 0.1)],
        name="argon-trimer",
    )
