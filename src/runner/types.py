"""Value types shared by the task, its channel and its observers."""

from __future__ import annotations

from dataclasses import dataclass

from forcefield import (
    ALGORITHMS,
    ALGORITHM_STEEPEST_DESCENT,
    GRADIENT_ANALYTICAL,
    GRADIENT_MODES,
)

TASK_OPTIMIZE_GEOMETRY = "optimize_geometry"
TASK_AUTO_OPTIMIZE = "auto_optimize"
TASK_KINDS = (TASK_OPTIMIZE_GEOMETRY, TASK_AUTO_OPTIMIZE)

STATUS_RUNNING = "running"
STATUS_CONVERGED = "converged"
STATUS_STEP_LIMIT = "step_limit"
STATUS_STOPPED = "stopped"
STATUS_SETUP_FAILED = "setup_failed"
STATUS_ERROR = "error"
FINAL_STATUSES = {
    STATUS_CONVERGED,
    STATUS_STEP_LIMIT,
    STATUS_STOPPED,
    STATUS_SETUP_FAILED,
    STATUS_ERROR,
}


@dataclass(frozen=True)
class TaskConfiguration:
    force_field: str = "lj"
    max_steps: int = 250
    algorithm: str = ALGORITHM_STEEPEST_DESCENT
    gradient_mode: str = GRADIENT_ANALYTICAL
    convergence_threshold: float = 1.0e-6
    task_kind: str = TASK_OPTIMIZE_GEOMETRY

    def __post_init__(self) -> None:
        if not isinstance(self.max_steps, int) or isinstance(self.max_steps, bool):
            raise ValueError("max_steps must be an integer.")
        if self.max_steps < 1:
            raise ValueError(f"max_steps must be >= 1, got {self.max_steps}.")
        if self.algorithm not in ALGORITHMS:
            raise ValueError(
                f"Unknown algorithm '{self.algorithm}' (expected one of {', '.join(ALGORITHMS)})."
            )
        if self.gradient_mode not in GRADIENT_MODES:
            raise ValueError(
                f"Unknown gradient mode '{self.gradient_mode}' "
                f"(expected one of {', '.join(GRADIENT_MODES)})."
            )
        if self.convergence_threshold < 0:
            raise ValueError(
                f"convergence_threshold must be >= 0, got {self.convergence_threshold}."
            )
        if self.task_kind not in TASK_KINDS:
            raise ValueError(
                f"Unknown task kind '{self.task_kind}' (expected one of {', '.join(TASK_KINDS)})."
            )

    @classmethod
    def from_defaults(cls, defaults, task_kind: str = TASK_OPTIMIZE_GEOMETRY) -> "TaskConfiguration":
        """Build from an ``app_config.OptimizationDefaults`` section."""
        return cls(
            force_field=defaults.force_field,
            max_steps=defaults.max_steps,
            algorithm=defaults.algorithm,
            gradient_mode=defaults.gradient_mode,
            convergence_threshold=defaults.threshold(),
            task_kind=task_kind,
        )


@dataclass(frozen=True)
class ProgressReport:
    steps_completed: int
    converged: bool = False
    final: bool = False
    energy: float | None = None
    status: str = STATUS_RUNNING
    failure: str | None = None

    def __post_init__(self) -> None:
        if self.steps_completed < 0:
            raise ValueError(f"steps_completed must be >= 0, got {self.steps_completed}.")
        if self.final and self.status not in FINAL_STATUSES:
            raise ValueError(f"Final report needs a final status, got '{self.status}'.")
        if not self.final and self.status != STATUS_RUNNING:
            raise ValueError(
                f"Intermediate report must be '{STATUS_RUNNING}', got '{self.status}'."
            )


__all__ = [
    "FINAL_STATUSES",
    "ProgressReport",
    "STATUS_CONVERGED",
    "STATUS_ERROR",
    "STATUS_RUNNING",
    "STATUS_SETUP_FAILED",
    "STATUS_STEP_LIMIT",
    "STATUS_STOPPED",
    "TASK_AUTO_OPTIMIZE",
    "TASK_KINDS",
    "TASK_OPTIMIZE_GEOMETRY",
    "TaskConfiguration",
]
