"""Global application configuration for ffopt."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from forcefield import ALGORITHMS, ALGORITHM_STEEPEST_DESCENT, GRADIENT_ANALYTICAL, GRADIENT_MODES

CONFIG_ENV_VAR = "FFOPT_CONFIG"
VERBOSE_ENV_VAR = "FFOPT_VERBOSE"

_DEFAULT_CONFIG_DIR = os.path.expanduser("~/.ffopt")
_DEFAULT_CONFIG_PATH = os.path.join(_DEFAULT_CONFIG_DIR, "config.yaml")


@dataclass
class OptimizationDefaults:
    force_field: str = "lj"
    max_steps: int = 250
    auto_optimize_steps: int = 10
    algorithm: str = ALGORITHM_STEEPEST_DESCENT
    gradient_mode: str = GRADIENT_ANALYTICAL
    # Energy-change threshold is 10**-convergence unless given explicitly.
    convergence: int = 6
    convergence_threshold: float | None = None

    def threshold(self) -> float:
        if self.convergence_threshold is not None:
            return self.convergence_threshold
        return 10.0 ** (-self.convergence)


@dataclass
class ProgressConfig:
    max_pending_reports: int = 64


@dataclass
class HistoryConfig:
    undo_limit: int = 0


@dataclass
class LoggingConfig:
    verbose: bool = False
    log_file: str | None = None
    event_log_file: str | None = None


@dataclass
class AppConfig:
    optimization: OptimizationDefaults = field(default_factory=OptimizationDefaults)
    progress: ProgressConfig = field(default_factory=ProgressConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_app_config(config_path: str | None = None) -> AppConfig:
    """Load application configuration from YAML.

    Config search order:
    1. ``config_path`` argument
    2. ``FFOPT_CONFIG`` environment variable
    3. ``~/.ffopt/config.yaml``

    Returns defaults when the target file does not exist.
    Raises ``ValueError`` for invalid YAML or invalid schema.
    """
    path = _resolve_config_path(config_path)
    if not path.exists():
        cfg = AppConfig()
        cfg.logging.verbose = _env_truthy(VERBOSE_ENV_VAR)
        return cfg

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML config: {path} ({exc})") from exc
    except OSError as exc:
        raise ValueError(f"Failed to read config file: {path} ({exc})") from exc

    if raw is None:
        return AppConfig()
    if not isinstance(raw, dict):
        raise ValueError(f"Config root must be a mapping: {path}")

    cfg = _parse_app_config(raw)
    _validate_app_config(cfg)
    return cfg


def _resolve_config_path(config_path: str | None) -> Path:
    if config_path is not None:
        return Path(config_path).expanduser().resolve()
    env_path = os.environ.get(CONFIG_ENV_VAR, "").strip()
    if env_path:
        return Path(env_path).expanduser().resolve()
    return Path(_DEFAULT_CONFIG_PATH).expanduser().resolve()


def _parse_app_config(raw: dict[str, Any]) -> AppConfig:
    optimization_raw = _as_mapping(raw.get("optimization"))
    progress_raw = _as_mapping(raw.get("progress"))
    history_raw = _as_mapping(raw.get("history"))
    logging_raw = _as_mapping(raw.get("logging"))

    threshold_raw = optimization_raw.get("convergence_threshold")
    optimization = OptimizationDefaults(
        force_field=_as_name(
            optimization_raw.get("force_field"),
            default=OptimizationDefaults.force_field,
            field_name="optimization.force_field",
        ),
        max_steps=_as_int(
            optimization_raw.get("max_steps"),
            default=OptimizationDefaults.max_steps,
            field_name="optimization.max_steps",
        ),
        auto_optimize_steps=_as_int(
            optimization_raw.get("auto_optimize_steps"),
            default=OptimizationDefaults.auto_optimize_steps,
            field_name="optimization.auto_optimize_steps",
        ),
        algorithm=_as_name(
            optimization_raw.get("algorithm"),
            default=OptimizationDefaults.algorithm,
            field_name="optimization.algorithm",
        ),
        gradient_mode=_as_name(
            optimization_raw.get("gradient_mode"),
            default=OptimizationDefaults.gradient_mode,
            field_name="optimization.gradient_mode",
        ),
        convergence=_as_int(
            optimization_raw.get("convergence"),
            default=OptimizationDefaults.convergence,
            field_name="optimization.convergence",
        ),
        convergence_threshold=(
            None
            if threshold_raw is None
            else _as_float(threshold_raw, default=0.0, field_name="optimization.convergence_threshold")
        ),
    )
    progress = ProgressConfig(
        max_pending_reports=_as_int(
            progress_raw.get("max_pending_reports"),
            default=ProgressConfig.max_pending_reports,
            field_name="progress.max_pending_reports",
        ),
    )
    history = HistoryConfig(
        undo_limit=_as_int(
            history_raw.get("undo_limit"),
            default=HistoryConfig.undo_limit,
            field_name="history.undo_limit",
        ),
    )
    logging_config = LoggingConfig(
        verbose=_as_bool(
            logging_raw.get("verbose"),
            default=_env_truthy(VERBOSE_ENV_VAR),
            field_name="logging.verbose",
        ),
        log_file=_as_optional_path(logging_raw.get("log_file"), field_name="logging.log_file"),
        event_log_file=_as_optional_path(
            logging_raw.get("event_log_file"),
            field_name="logging.event_log_file",
        ),
    )
    return AppConfig(
        optimization=optimization,
        progress=progress,
        history=history,
        logging=logging_config,
    )


def _validate_app_config(cfg: AppConfig) -> None:
    validate_optimization_defaults(cfg.optimization)
    if cfg.progress.max_pending_reports < 1:
        raise ValueError(
            "progress.max_pending_reports must be >= 1 "
            f"(got {cfg.progress.max_pending_reports})"
        )
    if cfg.history.undo_limit < 0:
        raise ValueError(f"history.undo_limit must be >= 0 (got {cfg.history.undo_limit})")


def validate_optimization_defaults(optimization: OptimizationDefaults) -> None:
    if optimization.max_steps < 1:
        raise ValueError(
            f"optimization.max_steps must be >= 1 (got {optimization.max_steps})"
        )
    if optimization.auto_optimize_steps < 1:
        raise ValueError(
            "optimization.auto_optimize_steps must be >= 1 "
            f"(got {optimization.auto_optimize_steps})"
        )
    if optimization.algorithm not in ALGORITHMS:
        raise ValueError(
            f"optimization.algorithm must be one of {', '.join(ALGORITHMS)} "
            f"(got {optimization.algorithm!r})"
        )
    if optimization.gradient_mode not in GRADIENT_MODES:
        raise ValueError(
            f"optimization.gradient_mode must be one of {', '.join(GRADIENT_MODES)} "
            f"(got {optimization.gradient_mode!r})"
        )
    if optimization.convergence < 0:
        raise ValueError(
            f"optimization.convergence must be >= 0 (got {optimization.convergence})"
        )
    if optimization.convergence_threshold is not None and optimization.convergence_threshold < 0:
        raise ValueError(
            "optimization.convergence_threshold must be >= 0 "
            f"(got {optimization.convergence_threshold})"
        )


def _as_mapping(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        return value
    if value is None:
        return {}
    raise ValueError("Config sections must be mappings")


def _as_bool(value: Any, *, default: bool, field_name: str) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    raise ValueError(f"{field_name} must be a boolean")


def _as_int(value: Any, *, default: int, field_name: str) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be an integer (got {value!r})")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{field_name} must be an integer (got {value!r})") from exc


def _as_float(value: Any, *, default: float, field_name: str) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{field_name} must be a number (got {value!r})") from exc


def _as_name(value: Any, *, default: str, field_name: str) -> str:
    if value is None:
        return default
    if isinstance(value, str) and value.strip():
        return value.strip().lower()
    raise ValueError(f"{field_name} must be a non-empty string")


def _as_optional_path(value: Any, *, field_name: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} must be a non-empty path string")
    return str(Path(value.strip()).expanduser())


def _env_truthy(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")
