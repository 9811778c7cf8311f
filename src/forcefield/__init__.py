from .ase_backend import AseForceField, register_builtin_force_fields
from .base import (
    ALGORITHMS,
    ALGORITHM_CONJUGATE_GRADIENTS,
    ALGORITHM_STEEPEST_DESCENT,
    GRADIENT_ANALYTICAL,
    GRADIENT_MODES,
    GRADIENT_NUMERICAL,
    ForceField,
    ForceFieldCapabilities,
)
from .energy import calculate_energy
from .registry import (
    ForceFieldEntry,
    ForceFieldFactory,
    force_field_descriptions,
    get_force_field,
    list_force_fields,
    register_force_field,
    unregister_force_field,
)

register_builtin_force_fields()

__all__ = [
    "ALGORITHMS",
    "ALGORITHM_CONJUGATE_GRADIENTS",
    "ALGORITHM_STEEPEST_DESCENT",
    "AseForceField",
    "ForceField",
    "ForceFieldCapabilities",
    "ForceFieldEntry",
    "ForceFieldFactory",
    "GRADIENT_ANALYTICAL",
    "GRADIENT_MODES",
    "GRADIENT_NUMERICAL",
    "calculate_energy",
    "force_field_descriptions",
    "get_force_field",
    "list_force_fields",
    "register_builtin_force_fields",
    "register_force_field",
    "unregister_force_field",
]
