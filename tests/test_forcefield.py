from __future__ import annotations

import logging

import numpy as np
import pytest

from forcefield import (
    ALGORITHM_CONJUGATE_GRADIENTS,
    ALGORITHM_STEEPEST_DESCENT,
    GRADIENT_ANALYTICAL,
    GRADIENT_NUMERICAL,
    calculate_energy,
    force_field_descriptions,
    get_force_field,
    list_force_fields,
    register_force_field,
    unregister_force_field,
)
from molecule import ConstraintSet, FixedAtom, FixedDistance, Molecule


def test_builtin_force_fields_are_registered() -> None:
    assert {"emt", "lj", "morse"} <= set(list_force_fields())
    assert get_force_field("LJ").name == "lj"


def test_get_force_field_rejects_unknown_name() -> None:
    with pytest.raises(KeyError, match="not registered"):
        get_force_field("no-such-field")


def test_registration_is_case_insensitive_and_reversible() -> None:
    entry = register_force_field(
        "  LJ-Alias ", lambda: get_force_field("lj"), description="test alias"
    )
    try:
        assert entry.name == "lj-alias"
        assert force_field_descriptions()["lj-alias"] == "test alias"
        assert get_force_field("LJ-ALIAS").name == "lj"
    finally:
        assert unregister_force_field("lj-alias")
    assert not unregister_force_field("lj-alias")
    assert "lj-alias" not in list_force_fields()
    with pytest.raises(ValueError, match="non-empty"):
        register_force_field("  ", lambda: get_force_field("lj"))


@pytest.mark.parametrize("algorithm", [ALGORITHM_STEEPEST_DESCENT, ALGORITHM_CONJUGATE_GRADIENTS])
def test_minimization_steps_lower_the_energy(argon_trimer: Molecule, algorithm: str) -> None:
    force_field = get_force_field("lj")
    assert force_field.setup(argon_trimer, ConstraintSet())
    start = force_field.energy()

    deltas = [force_field.step_energy_minimization(algorithm, GRADIENT_ANALYTICAL) for _ in range(5)]

    assert all(delta <= 0.0 for delta in deltas)
    assert force_field.energy() < start
    assert force_field.energy() == pytest.approx(start + sum(deltas))


def test_setup_does_not_write_the_molecule(argon_trimer: Molecule) -> None:
    before = argon_trimer.positions()
    force_field = get_force_field("lj")
    assert force_field.setup(argon_trimer, ConstraintSet())
    force_field.step_energy_minimization(ALGORITHM_STEEPEST_DESCENT, GRADIENT_ANALYTICAL)

    assert np.array_equal(argon_trimer.positions(), before)
    moved = force_field.positions()
    assert set(moved) == set(argon_trimer.atom_ids())
    assert not np.allclose(np.array([moved[i] for i in argon_trimer.atom_ids()]), before)


def test_numerical_gradient_matches_analytical(argon_trimer: Molecule) -> None:
    analytical = get_force_field("lj")
    numerical = get_force_field("lj")
    assert analytical.setup(argon_trimer, ConstraintSet())
    assert numerical.setup(argon_trimer, ConstraintSet())

    delta_a = analytical.step_energy_minimization(ALGORITHM_STEEPEST_DESCENT, GRADIENT_ANALYTICAL)
    delta_n = numerical.step_energy_minimization(ALGORITHM_STEEPEST_DESCENT, GRADIENT_NUMERICAL)

    assert delta_n == pytest.approx(delta_a, rel=1e-4, abs=1e-8)
    assert numerical.gradient_norm() == pytest.approx(analytical.gradient_norm(), rel=1e-4)


def test_fixed_atom_does_not_move(argon_trimer: Molecule) -> None:
    pinned = argon_trimer.atom_ids()[1]
    force_field = get_force_field("lj")
    assert force_field.setup(argon_trimer, ConstraintSet(fixed_atoms=(FixedAtom(pinned),)))

    for _ in range(5):
        force_field.step_energy_minimization(ALGORITHM_STEEPEST_DESCENT, GRADIENT_ANALYTICAL)

    assert np.array_equal(force_field.positions()[pinned], argon_trimer.get_atom_position(pinned))


def test_fixed_distance_is_preserved(argon_trimer: Molecule) -> None:
    a, b, _ = argon_trimer.atom_ids()
    length = float(np.linalg.norm(argon_trimer.get_atom_position(a) - argon_trimer.get_atom_position(b)))
    force_field = get_force_field("lj")
    assert force_field.setup(argon_trimer, ConstraintSet(fixed_distances=(FixedDistance(a, b),)))

    for _ in range(5):
        force_field.step_energy_minimization(ALGORITHM_STEEPEST_DESCENT, GRADIENT_ANALYTICAL)

    positions = force_field.positions()
    assert np.linalg.norm(positions[a] - positions[b]) == pytest.approx(length, abs=1e-6)


def test_constraint_on_missing_atom_is_ignored(argon_trimer: Molecule, caplog) -> None:
    constraints = ConstraintSet(fixed_atoms=(FixedAtom(999),))
    force_field = get_force_field("lj")

    with caplog.at_level(logging.WARNING):
        assert force_field.setup(argon_trimer, constraints)

    assert "Ignoring constraint on missing atom" in caplog.text


def test_malformed_constraint_fails_setup(argon_trimer: Molecule) -> None:
    atom_id = argon_trimer.atom_ids()[0]
    constraints = ConstraintSet(fixed_distances=(FixedDistance(atom_id, atom_id),))
    assert not get_force_field("lj").setup(argon_trimer, constraints)


def test_unknown_element_fails_setup() -> None:
    molecule = Molecule.from_symbols(["Xx"], [(0.0, 0.0, 0.0)])
    assert not get_force_field("lj").setup(molecule, ConstraintSet())


def test_empty_molecule_fails_setup() -> None:
    assert not get_force_field("lj").setup(Molecule(), ConstraintSet())


def test_step_before_setup_raises() -> None:
    with pytest.raises(RuntimeError, match="has not been set up"):
        get_force_field("lj").step_energy_minimization(ALGORITHM_STEEPEST_DESCENT, GRADIENT_ANALYTICAL)


def test_constraint_set_from_mapping() -> None:
    constraints = ConstraintSet.from_mapping(
        {"atoms": [0, 2], "distances": [{"a": 0, "b": 1, "length": 1.1}]}
    )
    assert constraints.fixed_atoms == (FixedAtom(0), FixedAtom(2))
    assert constraints.fixed_distances == (FixedDistance(0, 1, 1.1),)
    with pytest.raises(ValueError, match="must define 'b'"):
        ConstraintSet.from_mapping({"distances": [{"a": 0}]})


def test_calculate_energy_reports_single_point(argon_trimer: Molecule, caplog) -> None:
    before = argon_trimer.positions()
    with caplog.at_level(logging.INFO):
        energy = calculate_energy(argon_trimer, None, "lj")

    assert energy is not None and energy < 0.0
    assert "Energy of argon-trimer" in caplog.text
    assert np.array_equal(argon_trimer.positions(), before)
    assert calculate_energy(argon_trimer, None, "no-such-field") is None
