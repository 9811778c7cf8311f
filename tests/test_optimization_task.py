from __future__ import annotations

import logging

import numpy as np
import pytest

from molecule import ConstraintSet, FixedAtom, Molecule
from runner import (
    STATUS_CONVERGED,
    STATUS_SETUP_FAILED,
    STATUS_STEP_LIMIT,
    STATUS_STOPPED,
    ConcurrentTaskConflict,
    OptimizationTask,
    ProgressChannel,
    ProgressReport,
    TaskConfiguration,
    active_writer,
    start_task,
)

WAIT = 10.0


def _run_to_completion(molecule: Molecule, config: TaskConfiguration):
    received: list[ProgressReport] = []
    channel = ProgressChannel(max_pending=1000)
    channel.attach(received.append)
    task = start_task(molecule, None, config, channel)
    assert task.wait(WAIT)
    channel.dispatch()
    return task, received


def test_step_limit_run_reports_every_step(argon_trimer: Molecule) -> None:
    before = argon_trimer.positions()
    config = TaskConfiguration(force_field="lj", max_steps=10, convergence_threshold=0.0)

    task, received = _run_to_completion(argon_trimer, config)

    steps = [report.steps_completed for report in received]
    assert steps == sorted(steps)
    assert max(steps) <= config.max_steps
    final = received[-1]
    assert final.final and not final.converged
    assert final.status == STATUS_STEP_LIMIT
    assert final.steps_completed == 10
    assert task.steps_completed == 10
    assert task.final_report == final
    assert not np.allclose(argon_trimer.positions(), before)
    assert active_writer(argon_trimer) is None


def test_loose_threshold_converges_early(argon_trimer: Molecule) -> None:
    config = TaskConfiguration(force_field="lj", max_steps=500, convergence_threshold=1.0)

    _, received = _run_to_completion(argon_trimer, config)

    final = received[-1]
    assert final.converged
    assert final.status == STATUS_CONVERGED
    assert final.steps_completed == 1


def test_setup_failure_leaves_geometry_untouched(argon_trimer: Molecule) -> None:
    before = argon_trimer.positions()
    config = TaskConfiguration(force_field="not-a-force-field", max_steps=10)

    task, received = _run_to_completion(argon_trimer, config)

    assert len(received) == 1
    final = received[0]
    assert final.final
    assert final.steps_completed == 0
    assert not final.converged
    assert final.status == STATUS_SETUP_FAILED
    assert "not registered" in final.failure
    assert task.steps_completed == 0
    assert np.array_equal(argon_trimer.positions(), before)


def test_stop_request_is_honored_at_step_boundary(argon_trimer: Molecule, gated_force_field) -> None:
    before = argon_trimer.positions()
    channel = ProgressChannel()
    received: list[ProgressReport] = []
    channel.attach(received.append)
    task = start_task(argon_trimer, None, TaskConfiguration(force_field="gated", max_steps=50), channel)
    assert gated_force_field.step_started.wait(WAIT)

    task.request_stop()
    task.request_stop()
    gated_force_field.gate.set()
    assert task.wait(WAIT)
    channel.dispatch()

    # The step in flight when stop was requested is computed but never written.
    assert gated_force_field.steps_taken == 1
    assert task.steps_completed == 0
    assert np.array_equal(argon_trimer.positions(), before)
    assert received[-1].status == STATUS_STOPPED
    assert received[-1].steps_completed == 0


def test_second_writer_on_same_molecule_is_rejected(argon_trimer: Molecule, gated_force_field) -> None:
    config = TaskConfiguration(force_field="gated", max_steps=5)
    first = start_task(argon_trimer, None, config, ProgressChannel())
    assert gated_force_field.step_started.wait(WAIT)

    second = OptimizationTask(argon_trimer, None, config, ProgressChannel())
    with pytest.raises(ConcurrentTaskConflict, match="Another optimization is active"):
        second.start()
    assert active_writer(argon_trimer) is first

    # A task that was told to stop no longer counts as the writer.
    first.request_stop()
    assert active_writer(argon_trimer) is None
    third = start_task(argon_trimer, None, config, ProgressChannel())
    third.request_stop()
    gated_force_field.gate.set()
    assert first.wait(WAIT)
    assert third.wait(WAIT)


def test_tasks_on_different_molecules_run_side_by_side(argon_trimer: Molecule, gated_force_field) -> None:
    other = Molecule.from_symbols(["Ar"], [(0.0, 0.0, 0.0)], name="other")
    config = TaskConfiguration(force_field="gated", max_steps=2, convergence_threshold=0.0)
    first = start_task(argon_trimer, None, config, ProgressChannel())
    second = start_task(other, None, config, ProgressChannel())
    gated_force_field.gate.set()
    assert first.wait(WAIT) and second.wait(WAIT)
    assert first.steps_completed == 2
    assert second.steps_completed == 2


def test_task_cannot_start_twice(argon_trimer: Molecule) -> None:
    task = start_task(argon_trimer, None, TaskConfiguration(max_steps=1), ProgressChannel())
    with pytest.raises(RuntimeError, match="already started"):
        task.start()
    assert task.wait(WAIT)


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"max_steps": 0}, "max_steps"),
        ({"algorithm": "newton"}, "Unknown algorithm"),
        ({"gradient_mode": "exact"}, "Unknown gradient mode"),
        ({"convergence_threshold": -1.0}, "convergence_threshold"),
        ({"task_kind": "rotor_search"}, "Unknown task kind"),
    ],
)
def test_task_configuration_validation(kwargs, message) -> None:
    with pytest.raises(ValueError, match=message):
        TaskConfiguration(**kwargs)


def test_constraints_unsupported_by_force_field_are_reported(
    argon_trimer: Molecule, gated_force_field, caplog
) -> None:
    constraints = ConstraintSet(fixed_atoms=(FixedAtom(argon_trimer.atom_ids()[0]),))
    gated_force_field.gate.set()

    with caplog.at_level(logging.WARNING):
        task = start_task(
            argon_trimer,
            constraints,
            TaskConfiguration(force_field="gated", max_steps=1),
            ProgressChannel(),
        )
        assert task.wait(WAIT)

    assert "does not support constraints; 1 will be ignored" in caplog.text
    assert task.final_report.status == STATUS_STEP_LIMIT
