from .channel import ProgressChannel, ProgressConsumer
from .errors import ConcurrentTaskConflict, InvalidCommandState, OptimizationError, SetupFailure
from .task import OptimizationTask, generate_task_id, start_task
from .types import (
    FINAL_STATUSES,
    STATUS_CONVERGED,
    STATUS_ERROR,
    STATUS_RUNNING,
    STATUS_SETUP_FAILED,
    STATUS_STEP_LIMIT,
    STATUS_STOPPED,
    TASK_AUTO_OPTIMIZE,
    TASK_KINDS,
    TASK_OPTIMIZE_GEOMETRY,
    ProgressReport,
    TaskConfiguration,
)
from .write_lock import active_writer

__all__ = [
    "ConcurrentTaskConflict",
    "FINAL_STATUSES",
    "InvalidCommandState",
    "OptimizationError",
    "OptimizationTask",
    "ProgressChannel",
    "ProgressConsumer",
    "ProgressReport",
    "STATUS_CONVERGED",
    "STATUS_ERROR",
    "STATUS_RUNNING",
    "STATUS_SETUP_FAILED",
    "STATUS_STEP_LIMIT",
    "STATUS_STOPPED",
    "SetupFailure",
    "TASK_AUTO_OPTIMIZE",
    "TASK_KINDS",
    "TASK_OPTIMIZE_GEOMETRY",
    "TaskConfiguration",
    "active_writer",
    "generate_task_id",
    "start_task",
]
