"""Interactive shell: read loop, built-ins and persisted history."""

from devops_shell.shell.dispatcher import Completion, Dispatcher, ShellContext
from devops_shell.shell.history import load_history, save_history
from devops_shell.shell.repl import Repl, build_prompt, detect_context

__all__ = [
    "Completion",
    "Dispatcher",
    "ShellContext",
    "Repl",
    "build_prompt",
    "detect_context",
    "load_history",
    "save_history",
]
