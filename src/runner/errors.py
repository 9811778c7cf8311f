"""Errors raised by the optimization runner and commands."""

from __future__ import annotations


class OptimizationError(RuntimeError):
    """Base class for optimization runner errors."""


class SetupFailure(OptimizationError):
    """The force field could not be initialized for the molecule.

    Raised and handled inside the worker only; callers see it as a final
    report with ``status == "setup_failed"``.
    """


class ConcurrentTaskConflict(OptimizationError):
    """A second task tried to write a molecule that already has a live writer."""


class InvalidCommandState(OptimizationError):
    """A command was asked for a transition its current state does not allow."""


__all__ = [
    "ConcurrentTaskConflict",
    "InvalidCommandState",
    "OptimizationError",
    "SetupFailure",
]
