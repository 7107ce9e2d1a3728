"""User-global state directory for devops-shell.

Provides the canonical function for locating ~/.devops-shell/, which holds
config.yaml. The history file lives directly in the user's home directory
unless config.yaml says otherwise.
"""

from __future__ import annotations

import os
from pathlib import Path

HOME_ENV_VAR = "DEVOPS_SHELL_HOME"
HISTORY_FILENAME = ".ash_history.txt"


def _is_windows() -> bool:
    """Return True when running on Windows."""
    return os.name == "nt"


def get_shell_home() -> Path:
    """Return the path to the user-global devops-shell directory.

    Resolution order:
    1. DEVOPS_SHELL_HOME environment variable (all platforms)
    2. ~/.devops-shell/ on macOS/Linux (Path.home() / ".devops-shell")
    3. %LOCALAPPDATA%\\devops-shell\\ on Windows (via platformdirs)

    Returns:
        Path: Absolute path to the global state directory.
    """
    if env_home := os.environ.get(HOME_ENV_VAR):
        return Path(env_home)

    if _is_windows():
        from platformdirs import user_data_dir

        return Path(user_data_dir("devops-shell"))

    return Path.home() / ".devops-shell"


def default_history_path() -> Path:
    """Return the default history file path (~/.ash_history.txt)."""
    return Path.home() / HISTORY_FILENAME


__all__ = ["HOME_ENV_VAR", "HISTORY_FILENAME", "get_shell_home", "default_history_path"]
