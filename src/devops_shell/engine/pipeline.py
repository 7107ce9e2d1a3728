"""Pipeline executor: chains external programs through OS pipes.

Every stage is started right away and waited on by its own thread, so
back-pressure between neighbours is handled by the kernel pipe rather than
by buffering a whole stage's output first. Only the last stage's captured
stdout and stderr are shown; everything an intermediate stage writes to
stdout is consumed by the next stage.

Pipe ownership is transferred link by link. The parent holds the read end
of stage i-1's stdout only until stage i has been started (or failed to
start), then closes its copy so that stage i is the sole reader.
"""

from __future__ import annotations

import logging
import signal
import threading
from dataclasses import dataclass, replace
from pathlib import Path
from typing import IO

from rich.console import Console

from devops_shell.core.errors import InfrastructureError, SpawnError
from devops_shell.engine.command import Command, Pipeline, parse_pipeline
from devops_shell.engine.spawner import (
    ExitKind,
    ExitOutcome,
    ProcessResult,
    SpawnedProcess,
    StreamMode,
    report_outcome,
    spawn,
)

logger = logging.getLogger(__name__)

# Return code of a writer killed by SIGPIPE after its reader exited.
BROKEN_PIPE_EXIT_CODE = -getattr(signal, "SIGPIPE", 13)


@dataclass
class StageRun:
    """Runtime state of one stage within a single pipeline invocation."""

    index: int
    command: Command
    is_last: bool
    process: SpawnedProcess | None = None
    result: ProcessResult | None = None

@dataclass(frozen=True)
class PipelineResult:
    """What a pipeline produced once every stage terminated."""

    pipeline: Pipeline
    outcomes: tuple[ExitOutcome, ...]
    stdout: str = ""
    stderr: str = ""

    @property
    def succeeded(self) -> bool:
        """True when no stage failed (exit status 1 does not count)."""
        return not any(outcome.is_failure for outcome in self.outcomes)

class PipelineExecutor:
    """Runs ``a | b | c`` style lines.

    Example:
        >>> executor = PipelineExecutor()
        >>> executor.run("echo hello | tr a-z A-Z")  # prints HELLO
    """

    def __init__(
        self,
        console: Console | None = None,
        err_console: Console | None = None,
        *,
        stdin: IO[str] | None = None,
        cwd: Path | None = None,
        env: dict[str, str] | None = None,
    ):
        self._console = console or Console(soft_wrap=True, highlight=False)
        self._err_console = err_console or Console(stderr=True, soft_wrap=True, highlight=False)
        self._stdin = stdin
        self._cwd = cwd
        self._env = env

    def run(self, line: str | Pipeline) -> PipelineResult:
        """Execute a pipeline and print the last stage's output.

        Args:
            line: Raw input line, or an already parsed Pipeline.

        Returns:
            PipelineResult with one outcome per stage.

        Raises:
            InfrastructureError: If an inter-stage pipe could not be closed.
                Stage exit failures never raise.
        """
        pipeline = parse_pipeline(line) if isinstance(line, str) else line
        if not pipeline.stages:
            return PipelineResult(pipeline=pipeline, outcomes=())

        last_index = len(pipeline) - 1
        runs = [
            StageRun(index=i, command=command, is_last=i == last_index)
            for i, command in enumerate(pipeline.stages)
        ]
        waiters: list[threading.Thread] = []
        pipe_errors: list[str] = []

        try:
            upstream: IO[str] | None = None
            for run in runs:
                upstream = self._start_stage(run, upstream, pipe_errors)
                if run.process is not None:
                    waiter = threading.Thread(
                        target=self._wait_stage,
                        args=(run,),
                        name=f"stage-{run.index}",
                        daemon=True,
                    )
                    waiter.start()
                    waiters.append(waiter)
        finally:
            for waiter in waiters:
                waiter.join()

        if pipe_errors:
            raise InfrastructureError("; ".join(pipe_errors))

        final = runs[-1].result
        assert final is not None
        self._emit(final)

        return PipelineResult(
            pipeline=pipeline,
            outcomes=tuple(run.result.outcome for run in runs if run.result is not None),
            stdout=final.stdout,
            stderr=final.stderr,
        )

    def _start_stage(
        self,
        run: StageRun,
        upstream: IO[str] | None,
        pipe_errors: list[str],
    ) -> IO[str] | None:
        """Start one stage and return the read end meant for the next one."""
        if run.index == 0:
            stdin_mode = StreamMode.INHERIT if self._stdin is None else StreamMode.UPSTREAM
            upstream = self._stdin
        else:
            stdin_mode = StreamMode.UPSTREAM

        try:
            run.process = spawn(
                run.command,
                stdin=stdin_mode,
                upstream=upstream,
                stdout=StreamMode.CAPTURE if run.is_last else StreamMode.DOWNSTREAM,
                stderr=StreamMode.CAPTURE,
                cwd=self._cwd,
                env=self._env,
            )
        except SpawnError as e:
            logger.debug(f"Stage {run.index} failed to start: {e}")
            run.result = ProcessResult(outcome=ExitOutcome.from_spawn_error(e))
            report_outcome(run.command, run.result.outcome, self._err_console)
        finally:
            # The child now holds its own copy; the parent's must go.
            if run.index > 0 and upstream is not None:
                self._release(upstream, run.index - 1, pipe_errors)

        if run.is_last or run.process is None:
            return None
        return run.process.take_stdout()

    def _release(self, stream: IO[str], index: int, pipe_errors: list[str]) -> None:
        try:
            stream.close()
        except OSError as e:
            logger.error(f"Failed to close pipe after stage {index}: {e}")
            pipe_errors.append(f"error closing stdout of stage {index}: {e}")

    def _wait_stage(self, run: StageRun) -> None:
        assert run.process is not None
        try:
            run.result = run.process.wait()
        except Exception as e:
            logger.error(f"Error waiting for command {run.command.text}: {e}")
            run.result = ProcessResult(outcome=ExitOutcome(kind=ExitKind.FAILED, detail=str(e)))
        if not run.is_last and run.result.outcome.code == BROKEN_PIPE_EXIT_CODE:
            # The reader downstream finished first; the writer simply stopped.
            logger.debug(f"Stage {run.index} stopped on a closed pipe")
            run.result = replace(
                run.result,
                outcome=ExitOutcome(kind=ExitKind.SUCCESS, code=BROKEN_PIPE_EXIT_CODE, detail="broken pipe"),
            )
        if not run.is_last and run.result.stderr:
            logger.debug(f"Discarding stderr of stage {run.index}: {run.result.stderr.rstrip()}")
        report_outcome(run.command, run.result.outcome, self._err_console)

    def _emit(self, final: ProcessResult) -> None:
        # Process output is written verbatim, never rendered as markup.
        if final.stdout:
            self._console.file.write(final.stdout)
            self._console.file.flush()
        if final.stderr:
            self._err_console.file.write(final.stderr)
            self._err_console.file.flush()


__all__ = ["BROKEN_PIPE_EXIT_CODE", "StageRun", "PipelineResult", "PipelineExecutor"]
