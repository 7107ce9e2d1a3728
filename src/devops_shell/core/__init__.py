"""Core configuration, paths and errors shared by the shell and the engine."""

from devops_shell.core.config import ShellConfig, get_config_path, load_config
from devops_shell.core.errors import (
    InfrastructureError,
    InvalidTransitionError,
    ShellConfigError,
    ShellError,
    SpawnError,
)
from devops_shell.core.home import default_history_path, get_shell_home

__all__ = [
    "ShellConfig",
    "get_config_path",
    "load_config",
    "get_shell_home",
    "default_history_path",
    "ShellError",
    "SpawnError",
    "InfrastructureError",
    "InvalidTransitionError",
    "ShellConfigError",
]
