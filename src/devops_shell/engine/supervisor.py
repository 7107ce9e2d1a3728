"""Parallel supervisor: runs a batch of independent commands at once.

This module handles:
    - Task status state machine (pending -> running -> terminal)
    - Lock-protected task table owned by one supervisor run
    - One worker thread per task with a per-task timeout
    - A status reporter that prints snapshots until every task is terminal
    - Final report in completion order

A timeout only ever kills its own task. There is no batch-wide
cancellation: ``run()`` returns once every task has reached a terminal
status, including tasks that had to be killed.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import StrEnum
from pathlib import Path

from rich.console import Console

from devops_shell.core.config import ShellConfig
from devops_shell.core.errors import InvalidTransitionError, SpawnError
from devops_shell.engine.command import parse_command
from devops_shell.engine.spawner import ExitKind, ExitOutcome, StreamMode, spawn

logger = logging.getLogger(__name__)


class TaskStatus(StrEnum):
    """Lifecycle of one parallel task."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


TERMINAL_STATUSES: frozenset[TaskStatus] = frozenset(
    {TaskStatus.SUCCEEDED, TaskStatus.FAILED, TaskStatus.TIMED_OUT}
)

ALLOWED_TRANSITIONS: frozenset[tuple[TaskStatus, TaskStatus]] = frozenset(
    {
        (TaskStatus.PENDING, TaskStatus.RUNNING),
        (TaskStatus.RUNNING, TaskStatus.SUCCEEDED),
        (TaskStatus.RUNNING, TaskStatus.FAILED),
        (TaskStatus.RUNNING, TaskStatus.TIMED_OUT),
    }
)


def is_terminal(status: TaskStatus) -> bool:
    """Check if a status is terminal (succeeded, failed or timed out)."""
    return status in TERMINAL_STATUSES


def validate_transition(current: TaskStatus, target: TaskStatus) -> None:
    """Raise InvalidTransitionError unless ``current -> target`` is legal."""
    if (current, target) not in ALLOWED_TRANSITIONS:
        raise InvalidTransitionError(
            f"Illegal task transition: {current.value} -> {target.value}"
        )


@dataclass
class TaskRecord:
    """One unit of parallel work and everything known about it."""

    task_id: int
    command: str
    status: TaskStatus = TaskStatus.PENDING
    output: str = ""
    error: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)

    def elapsed(self, now: datetime | None = None) -> float | None:
        """Seconds the task has been (or was) running, None if not started."""
        if self.started_at is None:
            return None
        end = self.finished_at or now or datetime.now(timezone.utc)
        return (end - self.started_at).total_seconds()


class SupervisorState:
    """Task table for one batch.

    Every read and write goes through these methods, each of which holds the
    single lock only for the duration of the dictionary access. Callers get
    copies, never the live records.
    """

    def __init__(self) -> None:
        self._records: dict[int, TaskRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def register(self, task_id: int, command: str) -> None:
        with self._lock:
            if task_id in self._records:
                raise ValueError(f"Task {task_id} is already registered")
            self._records[task_id] = TaskRecord(task_id=task_id, command=command)

    def transition(self, task_id: int, status: TaskStatus) -> TaskRecord:
        """Move a task to ``status``; returns a copy of the updated record."""
        with self._lock:
            record = self._records[task_id]
            validate_transition(record.status, status)
            record.status = status
            if status is TaskStatus.RUNNING:
                record.started_at = datetime.now(timezone.utc)
            elif is_terminal(status):
                record.finished_at = datetime.now(timezone.utc)
            return replace(record)

    def complete(
        self,
        task_id: int,
        status: TaskStatus,
        output: str = "",
        error: str | None = None,
    ) -> TaskRecord:
        """Record a task's terminal status together with its result."""
        if not is_terminal(status):
            raise InvalidTransitionError(f"{status.value} is not a terminal status")
        with self._lock:
            record = self._records[task_id]
            validate_transition(record.status, status)
            record.status = status
            record.output = output
            record.error = error
            record.finished_at = datetime.now(timezone.utc)
            return replace(record)

    def get(self, task_id: int) -> TaskRecord:
        with self._lock:
            return replace(self._records[task_id])

    def snapshot(self) -> list[TaskRecord]:
        """Copies of every record, ordered by task id."""
        with self._lock:
            return [replace(self._records[k]) for k in sorted(self._records)]

    def all_terminal(self) -> bool:
        with self._lock:
            return all(record.is_terminal for record in self._records.values())


@dataclass(frozen=True)
class BatchReport:
    """Terminal records of one batch, in the order the tasks finished."""

    results: tuple[TaskRecord, ...]
    started_at: datetime
    finished_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.status is TaskStatus.SUCCEEDED)

    @property
    def failed(self) -> int:
        return self.total - self.succeeded

    @property
    def all_succeeded(self) -> bool:
        return self.failed == 0

    @property
    def duration(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()


def _terminal_status(outcome: ExitOutcome) -> tuple[TaskStatus, str | None]:
    if outcome.kind is ExitKind.SUCCESS:
        return TaskStatus.SUCCEEDED, None
    if outcome.kind is ExitKind.TIMED_OUT:
        return TaskStatus.TIMED_OUT, outcome.detail
    if outcome.kind is ExitKind.EXPECTED_EMPTY:
        # Exit status 1 is only informational inside pipelines.
        return TaskStatus.FAILED, f"exit status {outcome.code}"
    return TaskStatus.FAILED, outcome.detail


class ParallelSupervisor:
    """Runs ``runparallel`` batches.

    Example:
        >>> supervisor = ParallelSupervisor()
        >>> report = supervisor.run(["echo A", "echo B", "echo C"])
        >>> report.all_succeeded
        True
    """

    def __init__(
        self,
        config: ShellConfig | None = None,
        console: Console | None = None,
        *,
        show_status: bool = True,
        cwd: Path | None = None,
        env: dict[str, str] | None = None,
    ):
        config = config or ShellConfig()
        self._timeout = config.task_timeout
        self._status_interval = config.status_interval
        self._console = console or Console(soft_wrap=True, highlight=False)
        self._show_status = show_status
        self._cwd = cwd
        self._env = env
        self._state: SupervisorState | None = None

    @property
    def state(self) -> SupervisorState | None:
        """Task table of the most recent batch."""
        return self._state

    def run(self, commands: list[str]) -> BatchReport:
        """Run every command concurrently and print the final report.

        Args:
            commands: Independent command strings, whitespace tokenised.

        Returns:
            BatchReport with results in completion order.
        """
        # Imported here: report depends on this module's types.
        from devops_shell.engine.report import create_status_table, print_batch_report

        started_at = datetime.now(timezone.utc)
        state = SupervisorState()
        for task_id, command in enumerate(commands):
            state.register(task_id, command)
        self._state = state

        if not commands:
            return BatchReport(results=(), started_at=started_at)

        logger.info(f"Starting batch of {len(commands)} task(s)")
        completed: queue.Queue[TaskRecord] = queue.Queue(maxsize=len(commands))
        batch_done = threading.Event()

        workers = [
            threading.Thread(
                target=self._run_task,
                args=(state, task_id, command, completed),
                name=f"task-{task_id}",
                daemon=True,
            )
            for task_id, command in enumerate(commands)
        ]
        reporter = threading.Thread(
            target=self._report_status,
            args=(state, batch_done, create_status_table),
            name="status-reporter",
            daemon=True,
        )

        for worker in workers:
            worker.start()
        reporter.start()

        for worker in workers:
            worker.join()
        batch_done.set()
        reporter.join()

        results: list[TaskRecord] = []
        while not completed.empty():
            results.append(completed.get_nowait())

        report = BatchReport(results=tuple(results), started_at=started_at)
        logger.info(f"Batch finished: {report.succeeded}/{report.total} succeeded")
        print_batch_report(report, self._console)
        return report

    def _run_task(
        self,
        state: SupervisorState,
        task_id: int,
        text: str,
        completed: queue.Queue[TaskRecord],
    ) -> None:
        state.transition(task_id, TaskStatus.RUNNING)
        try:
            record = self._execute(state, task_id, text)
        except Exception as e:
            logger.exception(f"Task {task_id} ({text}) crashed")
            record = state.complete(task_id, TaskStatus.FAILED, error=str(e))
        completed.put(record)

    def _execute(self, state: SupervisorState, task_id: int, text: str) -> TaskRecord:
        command = parse_command(text)
        if command is None:
            return state.complete(task_id, TaskStatus.FAILED, error="empty command")

        try:
            process = spawn(
                command,
                stdin=StreamMode.CAPTURE,
                stdout=StreamMode.CAPTURE,
                merge_stderr=True,
                new_session=True,
                cwd=self._cwd,
                env=self._env,
            )
        except SpawnError as e:
            logger.warning(str(e))
            return state.complete(task_id, TaskStatus.FAILED, error=str(e))

        # The lock is not held here; only the worker waits on its process.
        result = process.wait(timeout=self._timeout)
        status, error = _terminal_status(result.outcome)
        logger.debug(f"Task {task_id} ({text}) -> {status.value}")
        return state.complete(task_id, status, output=result.stdout, error=error)

    def _report_status(self, state: SupervisorState, batch_done: threading.Event, render) -> None:
        while True:
            batch_done.wait(self._status_interval)
            snapshot = state.snapshot()
            if self._show_status:
                self._console.print(render(snapshot))
            if all(record.is_terminal for record in snapshot):
                break


__all__ = [
    "TaskStatus",
    "TERMINAL_STATUSES",
    "ALLOWED_TRANSITIONS",
    "is_terminal",
    "validate_transition",
    "TaskRecord",
    "SupervisorState",
    "BatchReport",
    "ParallelSupervisor",
]
