"""Process spawner: the single execution primitive shared by the engine.

This module handles:
    - Starting an external program with configurable stream wiring
    - Waiting for it (optionally under a timeout) and collecting output
    - Classifying the exit status into an ``ExitOutcome``
    - Writing diagnostics for failed or unusual outcomes

Exit status 1 is classified as ``EXPECTED_EMPTY`` for every program, not just
filter-style tools such as grep. It is reported as an informational note and
never counted as a pipeline stage failure.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import IO

from rich.console import Console
from rich.markup import escape

from devops_shell.core.errors import SpawnError
from devops_shell.engine.command import Command

logger = logging.getLogger(__name__)

NO_MATCH_EXIT_CODE = 1

# Seconds to collect remaining output after a timed-out child was killed.
DRAIN_TIMEOUT = 2.0


class StreamMode(StrEnum):
    """How one of a child's standard streams is wired."""

    INHERIT = "inherit"  # share the terminal's stream
    UPSTREAM = "upstream"  # stdin only: read from a supplied upstream stream
    DOWNSTREAM = "downstream"  # stdout only: OS pipe handed to the next stage
    CAPTURE = "capture"  # collect into an in-memory buffer


class ExitKind(StrEnum):
    """Classification of how a spawned command ended."""

    SUCCESS = "success"
    EXPECTED_EMPTY = "expected_empty"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    SPAWN_ERROR = "spawn_error"


@dataclass(frozen=True)
class ExitOutcome:
    """How a command ended: its kind, raw exit code, and a short detail."""

    kind: ExitKind
    code: int | None = None
    detail: str | None = None

    @property
    def is_failure(self) -> bool:
        return self.kind in (ExitKind.FAILED, ExitKind.TIMED_OUT, ExitKind.SPAWN_ERROR)

    @classmethod
    def from_spawn_error(cls, error: SpawnError) -> ExitOutcome:
        return cls(kind=ExitKind.SPAWN_ERROR, detail=error.reason)


@dataclass(frozen=True)
class ProcessResult:
    """Outcome plus whatever the child wrote to captured streams."""

    outcome: ExitOutcome
    stdout: str = ""
    stderr: str = ""


def classify_exit(code: int) -> ExitOutcome:
    """Map a raw return code to an ``ExitOutcome``.

    Negative codes (killed by signal N) are generic failures.
    """
    if code == 0:
        return ExitOutcome(kind=ExitKind.SUCCESS, code=0)
    if code == NO_MATCH_EXIT_CODE:
        return ExitOutcome(kind=ExitKind.EXPECTED_EMPTY, code=code, detail="no matches")
    if code < 0:
        return ExitOutcome(kind=ExitKind.FAILED, code=code, detail=f"signal: {-code}")
    return ExitOutcome(kind=ExitKind.FAILED, code=code, detail=f"exit status {code}")


class SpawnedProcess:
    """Handle to a started child process.

    The handle owns the parent's ends of any pipes it created. A DOWNSTREAM
    stdout must be claimed with ``take_stdout()`` by whoever wires it into
    the next stage; after that the handle never reads it.
    """

    def __init__(
        self,
        command: Command,
        popen: subprocess.Popen,
        stdout_mode: StreamMode,
        *,
        own_group: bool = False,
    ):
        self.command = command
        self._popen = popen
        self._stdout_mode = stdout_mode
        self._stdout_taken = False
        self._own_group = own_group

    @property
    def pid(self) -> int:
        return self._popen.pid

    @property
    def returncode(self) -> int | None:
        return self._popen.returncode

    def take_stdout(self) -> IO[str]:
        """Hand the read end of a DOWNSTREAM stdout to the caller."""
        if self._stdout_mode is not StreamMode.DOWNSTREAM:
            raise ValueError(f"stdout of {self.command.text!r} is not wired downstream")
        if self._stdout_taken or self._popen.stdout is None:
            raise ValueError(f"stdout of {self.command.text!r} was already taken")
        self._stdout_taken = True
        stream = self._popen.stdout
        self._popen.stdout = None
        return stream

    def kill(self) -> None:
        """Request termination of the child.

        A child started in its own session is killed together with every
        process in its group, so descendants holding the captured pipes go
        too. Otherwise only the child is signalled, and only while it runs.
        """
        if self._own_group:
            logger.debug(f"Killing process group {self.pid} ({self.command.text})")
            try:
                os.killpg(self.pid, signal.SIGKILL)
            except ProcessLookupError:
                logger.debug(f"Process group {self.pid} already exited")
        elif self._popen.poll() is None:
            logger.debug(f"Killing pid {self.pid} ({self.command.text})")
            self._popen.kill()

    def wait(self, timeout: float | None = None) -> ProcessResult:
        """Wait for the child to exit and collect captured output.

        Args:
            timeout: Seconds to wait before killing the child. The partial
                output produced before the kill is still returned.

        Returns:
            ProcessResult with the classified outcome.
        """
        try:
            stdout, stderr = self._popen.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            self.kill()
            stdout, stderr = self._drain_after_kill()
            logger.info(f"{self.command.text} timed out after {timeout:g}s")
            outcome = ExitOutcome(
                kind=ExitKind.TIMED_OUT,
                code=self._popen.returncode,
                detail=f"timed out after {timeout:g}s",
            )
            return ProcessResult(outcome=outcome, stdout=stdout or "", stderr=stderr or "")

        outcome = classify_exit(self._popen.returncode)
        logger.debug(f"{self.command.text} exited with {self._popen.returncode}")
        return ProcessResult(outcome=outcome, stdout=stdout or "", stderr=stderr or "")

    def _drain_after_kill(self) -> tuple[str | None, str | None]:
        try:
            return self._popen.communicate(timeout=DRAIN_TIMEOUT)
        except subprocess.TimeoutExpired:
            # A descendant escaped the group and still holds a pipe open.
            logger.warning(f"Abandoning output of {self.command.text}: pipes still open after kill")
            for stream in (self._popen.stdout, self._popen.stderr):
                if stream is not None:
                    stream.close()
            self._popen.wait()
            return None, None


def _stdin_target(mode: StreamMode, upstream: IO[str] | None):
    if mode is StreamMode.INHERIT:
        return None
    if mode is StreamMode.UPSTREAM:
        # An upstream stage that never started leaves nothing to read.
        return upstream if upstream is not None else subprocess.DEVNULL
    if mode is StreamMode.CAPTURE:
        return subprocess.DEVNULL
    raise ValueError(f"stdin cannot be wired as {mode.value}")


def _output_target(mode: StreamMode, name: str):
    if mode is StreamMode.INHERIT:
        return None
    if mode is StreamMode.CAPTURE:
        return subprocess.PIPE
    if mode is StreamMode.DOWNSTREAM and name == "stdout":
        return subprocess.PIPE
    raise ValueError(f"{name} cannot be wired as {mode.value}")


def spawn(
    command: Command,
    *,
    stdin: StreamMode = StreamMode.INHERIT,
    stdout: StreamMode = StreamMode.CAPTURE,
    stderr: StreamMode = StreamMode.CAPTURE,
    upstream: IO[str] | None = None,
    merge_stderr: bool = False,
    new_session: bool = False,
    cwd: Path | None = None,
    env: dict[str, str] | None = None,
) -> SpawnedProcess:
    """Start ``command`` with the requested stream wiring.

    Args:
        command: Program and arguments to run.
        stdin: INHERIT, UPSTREAM (read ``upstream``) or CAPTURE (empty input).
        stdout: INHERIT, DOWNSTREAM or CAPTURE.
        stderr: INHERIT or CAPTURE.
        upstream: Read end of the previous stage's stdout for UPSTREAM.
        merge_stderr: Send stderr into the stdout buffer (combined output).
        new_session: Start the child in its own session and process group,
            so that ``kill()`` also reaches its descendants (POSIX only).
        cwd: Working directory for the child.
        env: Environment for the child; inherits the caller's when None.

    Returns:
        SpawnedProcess handle.

    Raises:
        SpawnError: If the program could not be started.
    """
    stderr_target = subprocess.STDOUT if merge_stderr else _output_target(stderr, "stderr")
    own_group = new_session and os.name == "posix"

    try:
        popen = subprocess.Popen(
            command.argv,
            stdin=_stdin_target(stdin, upstream),
            stdout=_output_target(stdout, "stdout"),
            stderr=stderr_target,
            cwd=cwd,
            env=env,
            text=True,
            encoding="utf-8",
            errors="replace",
            start_new_session=own_group,
        )
    except FileNotFoundError as e:
        raise SpawnError(command.argv, "executable file not found in $PATH") from e
    except PermissionError as e:
        raise SpawnError(command.argv, "permission denied") from e
    except OSError as e:
        raise SpawnError(command.argv, e.strerror or str(e)) from e

    logger.debug(f"Started pid {popen.pid}: {command.text}")
    return SpawnedProcess(command, popen, stdout, own_group=own_group)


def report_outcome(command: Command, outcome: ExitOutcome, console: Console) -> None:
    """Write a one-line diagnostic for ``outcome`` to ``console``.

    Successful commands produce no output. Nothing here ever exits the
    calling process.
    """
    name = escape(repr(command.text))
    if outcome.kind is ExitKind.SUCCESS:
        return
    if outcome.kind is ExitKind.EXPECTED_EMPTY:
        console.print(f"[dim]No matches found for command: {name}[/dim]")
    elif outcome.kind is ExitKind.SPAWN_ERROR:
        console.print(f"[red]error starting command {name}:[/red] {escape(outcome.detail or '')}")
    elif outcome.kind is ExitKind.TIMED_OUT:
        console.print(f"[red]Command {name} {escape(outcome.detail or 'timed out')}[/red]")
    else:
        console.print(f"[red]Command {name} exited with error:[/red] {escape(outcome.detail or '')}")


__all__ = [
    "NO_MATCH_EXIT_CODE",
    "DRAIN_TIMEOUT",
    "StreamMode",
    "ExitKind",
    "ExitOutcome",
    "ProcessResult",
    "SpawnedProcess",
    "classify_exit",
    "spawn",
    "report_outcome",
]
