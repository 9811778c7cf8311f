from .actions import (
    ACTION_AUTO_OPTIMIZE,
    ACTION_CALCULATE_ENERGY,
    ACTION_OPTIMIZE_GEOMETRY,
    ACTION_SETUP_FORCE_FIELD,
    MENU_PATH,
    ForceFieldActions,
)
from .history import CommandHistory, UndoCommand
from .optimize import OptimizationCommand, ProgressListener
from .state_machine import (
    STATE_APPLIED,
    STATE_DETACHED,
    STATE_IDLE,
    STATE_REVERTED,
    STATE_RUNNING,
)

__all__ = [
    "ACTION_AUTO_OPTIMIZE",
    "ACTION_CALCULATE_ENERGY",
    "ACTION_OPTIMIZE_GEOMETRY",
    "ACTION_SETUP_FORCE_FIELD",
    "CommandHistory",
    "ForceFieldActions",
    "MENU_PATH",
    "OptimizationCommand",
    "ProgressListener",
    "STATE_APPLIED",
    "STATE_DETACHED",
    "STATE_IDLE",
    "STATE_REVERTED",
    "STATE_RUNNING",
    "UndoCommand",
]
