"""Config loading and validation for taskflow.

Loads taskflow.config.json, validates required fields, and expands ~ in paths.
"""

import json
import os
from pathlib import Path
from typing import Any

from taskflow.models import MAX_DEPENDENCIES_PER_TASK


class ConfigError(Exception):
    """Raised when configuration is invalid or missing required fields."""


CONFIG_FILENAME = "taskflow.config.json"

DEFAULT_DB_PATH = "~/.taskflow/taskflow.db"

DB_ENV_VAR = "TASKFLOW_DB"

REQUIRED_FIELDS = ["db_path"]

PATH_FIELDS = ["db_path"]

DEFAULTS: dict[str, Any] = {
    "max_dependencies_per_task": MAX_DEPENDENCIES_PER_TASK,
    "log_level": "INFO",
    "host": "127.0.0.1",
    "port": 8000,
}

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """Load and validate taskflow.config.json.

    Args:
        config_path: Path to config file. Defaults to ./taskflow.config.json.

    Returns:
        Validated config dict with paths expanded and defaults applied.

    Raises:
        ConfigError: If file is missing, unreadable, or has invalid content.
    """
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        raw = config_path.read_text()
        config = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {config_path}: {e}") from e

    if not isinstance(config, dict):
        raise ConfigError(f"Config in {config_path} must be a JSON object")

    _validate(config)
    _apply_defaults(config)
    _check_values(config)
    _expand_paths(config)

    return config


def resolve_db_path(
    explicit: str | None = None, config_path: str | Path | None = None
) -> str:
    """Pick the database path: explicit value, then $TASKFLOW_DB, then config, then default."""
    if explicit:
        return str(Path(explicit).expanduser())

    env_path = os.environ.get(DB_ENV_VAR)
    if env_path:
        return str(Path(env_path).expanduser())

    try:
        return load_config(config_path)["db_path"]
    except ConfigError:
        return str(Path(DEFAULT_DB_PATH).expanduser())


def _validate(config: dict[str, Any]) -> None:
    """Validate required fields are present."""
    for field in REQUIRED_FIELDS:
        if field not in config:
            raise ConfigError(
                f"Missing required config field: '{field}'. "
                f"Run `taskflow init` to create a starter config."
            )


def _apply_defaults(config: dict[str, Any]) -> None:
    """Apply default values for optional fields."""
    for key, default in DEFAULTS.items():
        if key not in config:
            config[key] = default


def _check_values(config: dict[str, Any]) -> None:
    limit = config["max_dependencies_per_task"]
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ConfigError(
            f"'max_dependencies_per_task' must be a positive integer, got {limit!r}"
        )

    level = str(config["log_level"]).upper()
    if level not in LOG_LEVELS:
        raise ConfigError(
            f"'log_level' must be one of {', '.join(LOG_LEVELS)}, got {config['log_level']!r}"
        )
    config["log_level"] = level


def _expand_paths(config: dict[str, Any]) -> None:
    """Expand ~ in path fields to the user's home directory."""
    for field in PATH_FIELDS:
        if field in config and isinstance(config[field], str):
            config[field] = str(Path(config[field]).expanduser())
