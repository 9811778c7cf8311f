"""Background energy minimization on a live molecule.

One worker thread per task. The loop writes coordinates back after every
completed step and checks a cooperative stop flag at step boundaries. The
stop flag, the step counter and the coordinate write-back share one lock, so
once ``request_stop()`` returns the task never touches the molecule again.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime

from forcefield import GRADIENT_ANALYTICAL, GRADIENT_NUMERICAL, ForceField, get_force_field
from molecule import ConstraintSet, GeometrySnapshot, Molecule, capture
from .channel import ProgressChannel
from .errors import SetupFailure
from .events import (
    EVT_TASK_FINISHED,
    EVT_TASK_PROGRESS,
    EVT_TASK_STARTED,
    log_event,
)
from .types import (
    STATUS_CONVERGED,
    STATUS_ERROR,
    STATUS_SETUP_FAILED,
    STATUS_STEP_LIMIT,
    STATUS_STOPPED,
    ProgressReport,
    TaskConfiguration,
)
from .write_lock import claim_writer, release_writer

logger = logging.getLogger(__name__)


def generate_task_id() -> str:
    """Generate a unique task ID: ``task_YYYYMMDD_HHMMSS_<8hex>``."""
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"task_{ts}_{uuid.uuid4().hex[:8]}"


class OptimizationTask:
    def __init__(
        self,
        molecule: Molecule,
        constraints: ConstraintSet | None,
        config: TaskConfiguration,
        channel: ProgressChannel,
        task_id: str | None = None,
    ) -> None:
        self.task_id = task_id or generate_task_id()
        self.config = config
        self._molecule = molecule
        self._constraints = constraints if constraints is not None else ConstraintSet()
        self._channel = channel
        self._lock = threading.Lock()
        self._stop_requested = False
        self._active = False
        self._steps = 0
        self._thread: threading.Thread | None = None
        self._final_report: ProgressReport | None = None
        self._last_written: GeometrySnapshot | None = None
        self._log = logging.LoggerAdapter(logger, {"task_id": self.task_id})

    def __repr__(self) -> str:
        return (
            f"OptimizationTask(task_id={self.task_id!r}, steps={self.steps_completed}, "
            f"running={self.is_running})"
        )

    @property
    def molecule(self) -> Molecule:
        return self._molecule

    @property
    def steps_completed(self) -> int:
        with self._lock:
            return self._steps

    @property
    def stop_requested(self) -> bool:
        with self._lock:
            return self._stop_requested

    @property
    def is_writing(self) -> bool:
        """True while the loop may still write coordinates."""
        with self._lock:
            return self._active and not self._stop_requested

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    @property
    def final_report(self) -> ProgressReport | None:
        return self._final_report

    @property
    def last_written_geometry(self) -> GeometrySnapshot | None:
        """Molecule geometry right after this task's last coordinate write.

        Taken under the write lock, so a later writer on the same molecule
        cannot leak into it. None until the first step is written.
        """
        with self._lock:
            return self._last_written

    def start(self) -> None:
        """Claim the molecule and launch the worker thread.

        Raises:
            ConcurrentTaskConflict: If another task is still writing the molecule.
            RuntimeError: If the task was already started.
        """
        if self._thread is not None:
            raise RuntimeError(f"Task {self.task_id} was already started.")
        with self._lock:
            self._active = True
        try:
            claim_writer(self._molecule, self)
        except Exception:
            with self._lock:
                self._active = False
            raise
        self._channel.mark_started()
        self._thread = threading.Thread(
            target=self._run,
            name=f"ffopt-{self.task_id}",
            daemon=True,
        )
        self._thread.start()

    def request_stop(self) -> None:
        """Ask the loop to stop at the next step boundary. Safe from any thread."""
        with self._lock:
            if self._stop_requested:
                return
            self._stop_requested = True
        self._log.info("Stop requested after %d step(s).", self.steps_completed)

    def wait(self, timeout: float | None = None) -> bool:
        """Join the worker; only meant for shutdown or molecule teardown."""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def _setup_force_field(self) -> ForceField:
        try:
            force_field = get_force_field(self.config.force_field)
        except KeyError as exc:
            raise SetupFailure(str(exc.args[0]) if exc.args else str(exc)) from exc
        capabilities = force_field.capabilities()
        if len(self._constraints) and not capabilities.supports_constraints:
            self._log.warning(
                "Force field %s does not support constraints; %d will be ignored.",
                self.config.force_field,
                len(self._constraints),
            )
        if not force_field.setup(self._molecule, self._constraints):
            raise SetupFailure(
                f"Force field '{self.config.force_field}' could not be set up "
                f"for {self._molecule.name}."
            )
        return force_field

    def _gradient_mode(self, force_field: ForceField) -> str:
        mode = self.config.gradient_mode
        if mode == GRADIENT_ANALYTICAL and not force_field.capabilities().supports_analytical_gradient:
            self._log.info("Force field %s has no analytical gradient; using numerical.", self.config.force_field)
            return GRADIENT_NUMERICAL
        return mode

    def _write_positions(self, positions) -> bool:
        with self._lock:
            if self._stop_requested:
                return False
            for atom_id, position in positions.items():
                try:
                    self._molecule.set_atom_position(atom_id, position)
                except KeyError:
                    self._log.debug("Atom %s vanished mid-run; skipping write.", atom_id)
            self._steps += 1
            self._last_written = capture(self._molecule)
            return True

    def _run(self) -> None:
        config = self.config
        status = STATUS_STEP_LIMIT
        converged = False
        failure = None
        energy = None
        log_event(
            logger,
            EVT_TASK_STARTED,
            self.task_id,
            molecule=self._molecule.name,
            force_field=config.force_field,
            algorithm=config.algorithm,
            max_steps=config.max_steps,
        )
        try:
            force_field = self._setup_force_field()
            energy = force_field.energy()
            self._log.debug("Initial energy: %.8f eV", energy)
            gradient_mode = self._gradient_mode(force_field)
            for _ in range(config.max_steps):
                delta = force_field.step_energy_minimization(config.algorithm, gradient_mode)
                if not self._write_positions(force_field.positions()):
                    status = STATUS_STOPPED
                    break
                energy = force_field.energy()
                steps = self.steps_completed
                log_event(
                    logger,
                    EVT_TASK_PROGRESS,
                    self.task_id,
                    level=logging.DEBUG,
                    step=steps,
                    energy=energy,
                    delta=delta,
                )
                self._channel.publish(ProgressReport(steps_completed=steps, energy=energy))
                if abs(delta) < config.convergence_threshold:
                    converged = True
                    status = STATUS_CONVERGED
                    break
                if self.stop_requested:
                    status = STATUS_STOPPED
                    break
        except SetupFailure as exc:
            status = STATUS_SETUP_FAILED
            failure = str(exc)
            self._log.warning("Setup failed: %s", failure)
        except Exception as exc:
            # Worker faults end the run; the controlling thread only sees the final report.
            status = STATUS_ERROR
            failure = f"{type(exc).__name__}: {exc}"
            self._log.exception("Optimization failed after %d step(s).", self.steps_completed)
        finally:
            with self._lock:
                self._active = False
                steps = self._steps
            release_writer(self._molecule, self)
            report = ProgressReport(
                steps_completed=steps,
                converged=converged,
                final=True,
                energy=energy,
                status=status,
                failure=failure,
            )
            self._final_report = report
            self._channel.publish(report)
            log_event(
                logger,
                EVT_TASK_FINISHED,
                self.task_id,
                status=status,
                steps=steps,
                energy=energy,
            )


def start_task(
    molecule: Molecule,
    constraints: ConstraintSet | None,
    config: TaskConfiguration,
    channel: ProgressChannel,
    task_id: str | None = None,
) -> OptimizationTask:
    task = OptimizationTask(molecule, constraints, config, channel, task_id=task_id)
    task.start()
    return task


__all__ = ["OptimizationTask", "generate_task_id", "start_task"]
