"""Shell configuration.

The configuration is stored in config.yaml inside the shell home directory
(see ``devops_shell.core.home``). Every key is optional; a missing file
yields the defaults.

Example config.yaml::

    task_timeout: 10
    status_interval: 1
    history_file: ~/.ash_history.txt
    history_size: 1000
    log_level: WARNING
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML

from devops_shell.core.errors import ShellConfigError
from devops_shell.core.home import default_history_path, get_shell_home

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.yaml"

DEFAULT_TASK_TIMEOUT = 10.0
DEFAULT_STATUS_INTERVAL = 1.0
DEFAULT_HISTORY_SIZE = 1000

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

@dataclass
class ShellConfig:
    """Runtime settings for the shell and its execution engine.

    Attributes:
        task_timeout: Seconds before a parallel task is killed.
        status_interval: Seconds between status table snapshots.
        history_file: Where command history is persisted.
        history_size: Maximum number of history entries kept on save.
        log_level: Name of the logging level for the console handler.
    """

    task_timeout: float = DEFAULT_TASK_TIMEOUT
    status_interval: float = DEFAULT_STATUS_INTERVAL
    history_file: Path = field(default_factory=default_history_path)
    history_size: int = DEFAULT_HISTORY_SIZE
    log_level: str = "WARNING"

    def with_overrides(self, **overrides: Any) -> ShellConfig:
        """Return a copy with every non-None override applied."""
        applied = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **applied)

def get_config_path() -> Path:
    """Return the path of config.yaml in the shell home directory."""
    return get_shell_home() / CONFIG_FILENAME

def _positive_number(data: dict[str, Any], key: str, default: float) -> float:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ShellConfigError(f"Invalid {key} in config.yaml: expected a number, got {value!r}")
    if value <= 0:
        raise ShellConfigError(f"Invalid {key} in config.yaml: must be positive, got {value}")
    return float(value)

def load_config(config_file: Path | None = None) -> ShellConfig:
    """Load shell configuration from config.yaml.

    Args:
        config_file: Explicit config path; defaults to ``get_config_path()``.

    Returns:
        ShellConfig instance (defaults if the file does not exist)

    Raises:
        ShellConfigError: If the file is not valid YAML or a value has the
            wrong type.
    """
    if config_file is None:
        config_file = get_config_path()

    if not config_file.exists():
        logger.debug(f"Config file not found: {config_file}, using defaults")
        return ShellConfig()

    yaml = YAML(typ="safe")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            data = yaml.load(f) or {}
    except Exception as e:
        logger.error(f"Failed to load config: {e}")
        raise ShellConfigError(f"Invalid YAML in {config_file}: {e}") from e

    if not isinstance(data, dict):
        raise ShellConfigError(f"Invalid config in {config_file}: expected a mapping at top level")

    known = {f.name for f in fields(ShellConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning(f"Ignoring unknown config key(s) in {config_file}: {', '.join(unknown)}")

    config = ShellConfig(
        task_timeout=_positive_number(data, "task_timeout", DEFAULT_TASK_TIMEOUT),
        status_interval=_positive_number(data, "status_interval", DEFAULT_STATUS_INTERVAL),
    )

    if "history_file" in data:
        history_file = data["history_file"]
        if not isinstance(history_file, str) or not history_file.strip():
            raise ShellConfigError("Invalid history_file in config.yaml: expected a path string")
        config.history_file = Path(history_file).expanduser()

    if "history_size" in data:
        history_size = data["history_size"]
        if isinstance(history_size, bool) or not isinstance(history_size, int) or history_size < 0:
            raise ShellConfigError(
                f"Invalid history_size in config.yaml: expected a non-negative integer, got {history_size!r}"
            )
        config.history_size = history_size

    if "log_level" in data:
        level = str(data["log_level"]).upper()
        if level not in _LOG_LEVELS:
            valid = ", ".join(_LOG_LEVELS)
            raise ShellConfigError(f"Unknown log_level in config.yaml: {data['log_level']}. Valid levels: {valid}")
        config.log_level = level

    logger.debug(f"Loaded config from {config_file}")
    return config


__all__ = [
    "CONFIG_FILENAME",
    "DEFAULT_TASK_TIMEOUT",
    "DEFAULT_STATUS_INTERVAL",
    "DEFAULT_HISTORY_SIZE",
    "ShellConfig",
    "get_config_path",
    "load_config",
]
