from __future__ import annotations

import logging

from molecule import ConstraintSet, Molecule
from .registry import get_force_field

logger = logging.getLogger(__name__)


def calculate_energy(
    molecule: Molecule,
    constraints: ConstraintSet | None,
    force_field_name: str,
) -> float | None:
    """Single-point energy of the current geometry, or None if setup fails."""
    try:
        force_field = get_force_field(force_field_name)
    except KeyError as exc:
        logger.warning("Energy calculation skipped: %s", exc)
        return None
    if not force_field.setup(molecule, constraints or ConstraintSet()):
        logger.warning(
            "Energy calculation skipped: force field %s could not be set up for %s.",
            force_field_name,
            molecule.name,
        )
        return None
    energy = force_field.energy()
    logger.info("Energy of %s (%s): %.6f eV", molecule.name, force_field_name, energy)
    return energy


__all__ = ["calculate_energy"]
