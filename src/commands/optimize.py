"""Undoable optimization command.

The command snapshots the geometry, starts an :class:`OptimizationTask` and
consumes its progress channel. Undo while the task is still running detaches:
the task is told to stop, the channel consumer is dropped, and the
pre-optimization snapshot is written back synchronously. The task holds no
reference to the command, so it finishes and cleans up on its own.

Redo after a finished run restores a cached post-run snapshot rather than
re-running the minimization.
"""

from __future__ import annotations

import logging
from typing import Callable

from molecule import ConstraintSet, GeometrySnapshot, Molecule, capture, restore
from runner import (
    OptimizationTask,
    ProgressChannel,
    ProgressReport,
    TASK_AUTO_OPTIMIZE,
    TASK_OPTIMIZE_GEOMETRY,
    TaskConfiguration,
)
from runner.events import EVT_COMMAND_DETACHED, EVT_COMMAND_MERGED, log_event
from .state_machine import (
    EVENT_FINISH,
    EVENT_REDO,
    EVENT_UNDO,
    STATE_APPLIED,
    STATE_DETACHED,
    STATE_IDLE,
    STATE_RUNNING,
    next_state,
)

logger = logging.getLogger(__name__)

_COMMAND_TEXT = {
    TASK_OPTIMIZE_GEOMETRY: "Geometric Optimization",
    TASK_AUTO_OPTIMIZE: "Auto Optimization",
}

ProgressListener = Callable[[ProgressReport], None]


class OptimizationCommand:
    def __init__(
        self,
        molecule: Molecule,
        config: TaskConfiguration,
        constraints: ConstraintSet | None = None,
        *,
        max_pending_reports: int = 64,
        text: str | None = None,
    ) -> None:
        self.config = config
        self.text = text or _COMMAND_TEXT.get(config.task_kind, "Optimization")
        self._molecule = molecule
        self._constraints = constraints if constraints is not None else ConstraintSet()
        self._max_pending_reports = max_pending_reports
        self._before = capture(molecule)
        self._after: GeometrySnapshot | None = None
        self._start_geometry: GeometrySnapshot | None = None
        self._task: OptimizationTask | None = None
        self._channel: ProgressChannel | None = None
        self._final_report: ProgressReport | None = None
        self._listeners: list[ProgressListener] = []
        self._state = STATE_IDLE
        self._obsolete = False

    def __repr__(self) -> str:
        return f"OptimizationCommand(text={self.text!r}, state={self._state!r})"

    @property
    def state(self) -> str:
        return self._state

    @property
    def molecule(self) -> Molecule:
        return self._molecule

    @property
    def merge_id(self) -> str:
        return self.config.task_kind

    @property
    def is_obsolete(self) -> bool:
        return self._obsolete

    @property
    def is_running(self) -> bool:
        return self._state == STATE_RUNNING

    @property
    def task(self) -> OptimizationTask | None:
        return self._task

    @property
    def final_report(self) -> ProgressReport | None:
        return self._final_report

    @property
    def before_snapshot(self) -> GeometrySnapshot:
        return self._before

    @property
    def after_snapshot(self) -> GeometrySnapshot | None:
        return self._after

    def add_progress_listener(self, listener: ProgressListener) -> None:
        self._listeners.append(listener)

    def start(self) -> None:
        """Launch the optimization.

        Raises:
            ConcurrentTaskConflict: If another task still writes the molecule;
                the command stays idle.
        """
        state = next_state(self._state, EVENT_REDO)
        channel = ProgressChannel(max_pending=self._max_pending_reports)
        channel.attach(self._on_report)
        task = OptimizationTask(self._molecule, self._constraints, self.config, channel)
        task.start()
        self._start_geometry = self._before
        self._channel = channel
        self._task = task
        self._state = state
        logger.info("%s started on %s (task_id=%s).", self.text, self._molecule.name, task.task_id)

    def redo(self) -> None:
        if self._state == STATE_IDLE:
            self.start()
            return
        state = next_state(self._state, EVENT_REDO)
        if self._after is not None:
            restore(self._after, self._molecule)
        self._state = state

    def undo(self) -> None:
        if self._state == STATE_RUNNING:
            # A final report may already be queued; finishing first keeps redo possible.
            self.process_events()
        if self._state == STATE_RUNNING:
            self._detach()
            return
        state = next_state(self._state, EVENT_UNDO)
        restore(self._before, self._molecule)
        self._state = state

    def request_stop(self) -> None:
        if self._task is not None:
            self._task.request_stop()

    def process_events(self) -> int:
        """Deliver pending progress reports; call from the controlling thread."""
        if self._channel is None:
            return 0
        return self._channel.dispatch()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the task exits, then deliver its reports."""
        task = self._task
        if task is None:
            return True
        finished = task.wait(timeout)
        self.process_events()
        return finished

    def try_merge_with(self, other: object) -> bool:
        """Absorb ``other``'s pre-state when it is the earlier, applied command."""
        if not isinstance(other, OptimizationCommand) or other is self:
            return False
        if other.merge_id != self.merge_id or other.molecule is not self._molecule:
            return False
        if self._state == STATE_DETACHED or other.state == STATE_DETACHED:
            return False
        if other.state != STATE_APPLIED or self._state not in (STATE_RUNNING, STATE_APPLIED):
            return False
        self._before = other.before_snapshot
        log_event(
            logger,
            EVT_COMMAND_MERGED,
            self._task.task_id if self._task is not None else None,
            command=self.text,
            molecule=self._molecule.name,
        )
        return True

    def _on_report(self, report: ProgressReport) -> None:
        for listener in list(self._listeners):
            listener(report)
        if report.final:
            self._finish(report)

    def _finish(self, report: ProgressReport) -> None:
        self._state = next_state(self._state, EVENT_FINISH)
        self._final_report = report
        # Later tasks may have written the molecule since; keep this task's own last write.
        written = self._task.last_written_geometry if self._task is not None else None
        self._after = written if written is not None else self._start_geometry
        self._task = None
        self._channel = None
        if report.failure:
            logger.warning("%s finished without changes: %s", self.text, report.failure)
        else:
            logger.info(
                "%s finished: status=%s steps=%d",
                self.text,
                report.status,
                report.steps_completed,
            )

    def _detach(self) -> None:
        task, channel = self._task, self._channel
        self._task = None
        self._channel = None
        if channel is not None:
            channel.detach()
        if task is not None:
            # After request_stop() returns the task performs no further writes.
            task.request_stop()
        restore(self._before, self._molecule)
        self._state = next_state(self._state, EVENT_UNDO)
        self._obsolete = True
        log_event(
            logger,
            EVT_COMMAND_DETACHED,
            task.task_id if task is not None else None,
            command=self.text,
            steps=task.steps_completed if task is not None else 0,
        )


__all__ = ["OptimizationCommand", "ProgressListener"]
