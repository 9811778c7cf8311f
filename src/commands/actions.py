"""Force-field actions exposed to the editor's menus."""

from __future__ import annotations

import dataclasses
import logging
from typing import Any

from app_config import AppConfig, OptimizationDefaults, validate_optimization_defaults
from forcefield import calculate_energy, force_field_descriptions, list_force_fields
from molecule import ConstraintSet, Molecule
from runner import TASK_AUTO_OPTIMIZE, TASK_OPTIMIZE_GEOMETRY, TaskConfiguration, active_writer
from .optimize import OptimizationCommand

logger = logging.getLogger(__name__)

ACTION_OPTIMIZE_GEOMETRY = "Optimize Geometry"
ACTION_AUTO_OPTIMIZE = "Auto Optimize Step"
ACTION_CALCULATE_ENERGY = "Calculate Energy"
ACTION_SETUP_FORCE_FIELD = "Setup Force Field"

MENU_PATH = "&Extensions>&Molecular Mechanics"

_OPTIMIZE_ACTIONS = {
    ACTION_OPTIMIZE_GEOMETRY: TASK_OPTIMIZE_GEOMETRY,
    ACTION_AUTO_OPTIMIZE: TASK_AUTO_OPTIMIZE,
}


class ForceFieldActions:
    def __init__(self, config: AppConfig | None = None, constraints: ConstraintSet | None = None) -> None:
        config = config or AppConfig()
        self._defaults = config.optimization
        self._max_pending_reports = config.progress.max_pending_reports
        self.constraints = constraints if constraints is not None else ConstraintSet()

    @property
    def defaults(self) -> OptimizationDefaults:
        return self._defaults

    def available_force_fields(self) -> dict[str, str]:
        """Registered force fields and their descriptions, for the setup dialog."""
        return force_field_descriptions()

    def actions(self) -> list[str]:
        return [
            ACTION_OPTIMIZE_GEOMETRY,
            ACTION_AUTO_OPTIMIZE,
            ACTION_CALCULATE_ENERGY,
            ACTION_SETUP_FORCE_FIELD,
        ]

    def menu_path(self, action: str) -> str:
        self._check_action(action)
        return MENU_PATH

    def is_enabled(self, action: str, molecule: Molecule | None) -> bool:
        """Molecule-modifying actions are disabled while a task writes the molecule."""
        self._check_action(action)
        if action == ACTION_SETUP_FORCE_FIELD:
            return True
        if molecule is None or len(molecule) == 0:
            return False
        if action in _OPTIMIZE_ACTIONS:
            return active_writer(molecule) is None
        return True

    def configure(self, **overrides: Any) -> OptimizationDefaults:
        """Replace the optimization defaults, validating the result."""
        unknown = set(overrides) - {f.name for f in dataclasses.fields(OptimizationDefaults)}
        if unknown:
            raise ValueError(f"Unknown force field settings: {', '.join(sorted(unknown))}")
        force_field = overrides.get("force_field")
        if force_field is not None and str(force_field).strip().lower() not in list_force_fields():
            raise ValueError(
                f"Force field '{force_field}' not registered "
                f"(available: {', '.join(list_force_fields())})."
            )
        defaults = dataclasses.replace(self._defaults, **overrides)
        validate_optimization_defaults(defaults)
        self._defaults = defaults
        logger.info("Force field settings: %s", dataclasses.asdict(defaults))
        return defaults

    def task_configuration(self, task_kind: str) -> TaskConfiguration:
        config = TaskConfiguration.from_defaults(self._defaults, task_kind=task_kind)
        if task_kind == TASK_AUTO_OPTIMIZE:
            config = dataclasses.replace(config, max_steps=self._defaults.auto_optimize_steps)
        return config

    def perform_action(self, action: str, molecule: Molecule, **options: Any) -> OptimizationCommand | None:
        """Return an undoable command for optimize actions, None otherwise."""
        self._check_action(action)
        if action in _OPTIMIZE_ACTIONS:
            return OptimizationCommand(
                molecule,
                self.task_configuration(_OPTIMIZE_ACTIONS[action]),
                self.constraints,
                max_pending_reports=self._max_pending_reports,
            )
        if action == ACTION_CALCULATE_ENERGY:
            calculate_energy(molecule, self.constraints, self._defaults.force_field)
            return None
        self.configure(**options)
        return None

    def _check_action(self, action: str) -> None:
        if action not in self.actions():
            raise ValueError(
                f"Unsupported action '{action}'. Available actions: {', '.join(self.actions())}."
            )


__all__ = [
    "ACTION_AUTO_OPTIMIZE",
    "ACTION_CALCULATE_ENERGY",
    "ACTION_OPTIMIZE_GEOMETRY",
    "ACTION_SETUP_FORCE_FIELD",
    "ForceFieldActions",
    "MENU_PATH",
]
