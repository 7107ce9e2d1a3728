"""Line dispatcher: the single entry point the read loop talks to.

Takes one trimmed input line, decides which subsystem handles it, and
returns a ``Completion`` telling the caller whether to keep going, report
the line as invalid, or exit.

Built-ins:
    exit                           leave the shell
    cd [path]                      change directory (no path, or ~, means home)
    runparallel <c1>;<c2>;...      parallel batch

Anything else is executed as a pipeline (a plain command is a one-stage
pipeline).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from devops_shell.core.config import ShellConfig
from devops_shell.core.errors import InfrastructureError
from devops_shell.engine.command import parse_batch
from devops_shell.engine.pipeline import PipelineExecutor
from devops_shell.engine.supervisor import ParallelSupervisor

logger = logging.getLogger(__name__)

EXIT_COMMAND = "exit"
CD_COMMAND = "cd"
PARALLEL_COMMAND = "runparallel"


class Completion(StrEnum):
    """What the read loop should do after a line was handled."""

    SUCCESS = "success"
    NOT_RECOGNIZED = "not_recognized"
    EXIT = "exit"


@dataclass(frozen=True)
class ShellContext:
    """Session facts the engine needs but must not look up itself."""

    user: str
    hostname: str
    home: Path


class Dispatcher:
    """Routes input lines to built-ins, the pipeline executor or the supervisor."""

    def __init__(
        self,
        context: ShellContext,
        config: ShellConfig | None = None,
        console: Console | None = None,
        err_console: Console | None = None,
        *,
        pipelines: PipelineExecutor | None = None,
        supervisor: ParallelSupervisor | None = None,
    ):
        self._context = context
        self._config = config or ShellConfig()
        self._console = console or Console(soft_wrap=True, highlight=False)
        self._err_console = err_console or Console(stderr=True, soft_wrap=True, highlight=False)
        self._pipelines = pipelines or PipelineExecutor(self._console, self._err_console)
        self._supervisor = supervisor

    def execute(self, line: str) -> Completion:
        """Handle one input line.

        Args:
            line: Input line; surrounding whitespace is ignored.

        Returns:
            Completion for the read loop.
        """
        tokens = line.split()
        if not tokens:
            return Completion.SUCCESS

        head = tokens[0]
        if head == EXIT_COMMAND:
            return Completion.EXIT
        if head == CD_COMMAND:
            return self._change_directory(tokens[1:])
        if head == PARALLEL_COMMAND:
            return self._run_parallel(line.strip()[len(PARALLEL_COMMAND):])

        try:
            self._pipelines.run(line)
        except InfrastructureError as e:
            logger.error(f"Pipeline failed: {e}")
            self._err_console.print(f"[red]pipeline error:[/red] {escape(str(e))}")
            return Completion.NOT_RECOGNIZED
        return Completion.SUCCESS

    def resolve_path(self, raw: str) -> Path:
        """Expand a leading ``~`` with the injected home directory."""
        if raw == "~":
            return self._context.home
        if raw.startswith("~/"):
            return self._context.home / raw[2:]
        return Path(raw)

    def _change_directory(self, args: list[str]) -> Completion:
        if len(args) > 1:
            self._err_console.print("[red]cd:[/red] too many arguments")
            return Completion.NOT_RECOGNIZED

        target = self._context.home if not args else self.resolve_path(args[0])
        try:
            os.chdir(target)
        except OSError as e:
            self._err_console.print(f"[red]cd:[/red] {escape(str(target))}: {escape(e.strerror or str(e))}")
            return Completion.NOT_RECOGNIZED

        logger.debug(f"Changed directory to {target}")
        return Completion.SUCCESS

    def _run_parallel(self, rest: str) -> Completion:
        commands = parse_batch(rest)
        if not commands:
            self._err_console.print(f"[red]usage:[/red] {PARALLEL_COMMAND} <cmd1>;<cmd2>;...;<cmdN>")
            return Completion.NOT_RECOGNIZED

        # A fresh supervisor per batch: its task table lives for one batch only.
        supervisor = self._supervisor or ParallelSupervisor(self._config, self._console)
        supervisor.run(commands)
        return Completion.SUCCESS


__all__ = [
    "EXIT_COMMAND",
    "CD_COMMAND",
    "PARALLEL_COMMAND",
    "Completion",
    "ShellContext",
    "Dispatcher",
]
