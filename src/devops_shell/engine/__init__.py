"""Execution engine for devops-shell.

Two subsystems share one primitive:

Core Components:
    - Spawner: starts one external program with configurable stream wiring
    - PipelineExecutor: chains stages through OS pipes (``a | b | c``)
    - ParallelSupervisor: runs independent commands concurrently with
      per-task timeouts, live status snapshots and a final report

Usage:
    from devops_shell.engine import PipelineExecutor, ParallelSupervisor

    PipelineExecutor().run("echo hello | tr a-z A-Z")
    ParallelSupervisor().run(["echo A", "echo B"])
"""

from devops_shell.engine.command import Command, Pipeline, parse_batch, parse_command, parse_pipeline
from devops_shell.engine.pipeline import PipelineExecutor, PipelineResult
from devops_shell.engine.spawner import (
    ExitKind,
    ExitOutcome,
    ProcessResult,
    StreamMode,
    classify_exit,
    spawn,
)
from devops_shell.engine.supervisor import (
    BatchReport,
    ParallelSupervisor,
    SupervisorState,
    TaskRecord,
    TaskStatus,
)

__all__ = [
    # Grammar
    "Command",
    "Pipeline",
    "parse_command",
    "parse_pipeline",
    "parse_batch",
    # Spawner
    "StreamMode",
    "ExitKind",
    "ExitOutcome",
    "ProcessResult",
    "classify_exit",
    "spawn",
    # Subsystems
    "PipelineExecutor",
    "PipelineResult",
    "ParallelSupervisor",
    "SupervisorState",
    "TaskRecord",
    "TaskStatus",
    "BatchReport",
]
