"""Interactive read loop.

Reads a line, hands it to the Dispatcher, repeats. Owns everything the
engine deliberately does not: the prompt, line editing via readline, and
the persisted history file.
"""

from __future__ import annotations

import getpass
import logging
import socket
from collections.abc import Callable
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from devops_shell.core.config import ShellConfig
from devops_shell.shell.dispatcher import Completion, Dispatcher, ShellContext
from devops_shell.shell.history import load_history, save_history

try:
    import readline
except ImportError:  # Windows without pyreadline
    readline = None

logger = logging.getLogger(__name__)


def detect_context() -> ShellContext:
    """Read user, hostname and home directory from the environment."""
    return ShellContext(
        user=getpass.getuser(),
        hostname=socket.gethostname(),
        home=Path.home(),
    )


def build_prompt(context: ShellContext, cwd: Path) -> str:
    """Return ``user@host cwd > ``."""
    return f"{context.user}@{context.hostname} {cwd} > "


class Repl:
    """The interactive shell session."""

    def __init__(
        self,
        dispatcher: Dispatcher,
        context: ShellContext,
        config: ShellConfig | None = None,
        console: Console | None = None,
        err_console: Console | None = None,
        input_fn: Callable[[str], str] = input,
    ):
        self._dispatcher = dispatcher
        self._context = context
        self._config = config or ShellConfig()
        self._console = console or Console(soft_wrap=True, highlight=False)
        self._err_console = err_console or Console(stderr=True, soft_wrap=True, highlight=False)
        self._input = input_fn
        self.history: list[str] = []

    def run(self) -> int:
        """Run until ``exit`` or end of input; returns the process exit code."""
        self.history = load_history(self._config.history_file)
        if readline is not None and self._input is input:
            for entry in self.history:
                readline.add_history(entry)

        while True:
            try:
                prompt = build_prompt(self._context, Path.cwd())
            except OSError as e:
                self._err_console.print(f"[red]Error getting current working directory:[/red] {escape(str(e))}")
                prompt = build_prompt(self._context, Path("?"))

            try:
                line = self._input(prompt)
            except EOFError:
                self._console.print()
                break
            except KeyboardInterrupt:
                self._console.print("^C")
                continue

            line = line.strip()
            if not line:
                continue
            self.history.append(line)

            try:
                completion = self._dispatcher.execute(line)
            except KeyboardInterrupt:
                self._console.print("^C")
                continue

            if completion is Completion.EXIT:
                break
            if completion is Completion.NOT_RECOGNIZED:
                self._err_console.print(f"{escape(line)} is not valid")

        self._console.print("Exiting shell...")
        save_history(self.history, self._config.history_file, self._config.history_size)
        return 0


__all__ = ["detect_context", "build_prompt", "Repl"]
