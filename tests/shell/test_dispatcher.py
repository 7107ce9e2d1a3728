"""Tests for line dispatch: built-ins, pipelines and parallel batches."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from devops_shell.core.errors import InfrastructureError
from devops_shell.engine.pipeline import PipelineExecutor
from devops_shell.engine.supervisor import ParallelSupervisor
from devops_shell.shell.dispatcher import Completion, Dispatcher

pytestmark = pytest.mark.skipif(os.name == "nt", reason="uses POSIX utilities")


@pytest.fixture()
def dispatcher(shell_context, fast_config, out_console, err_console) -> Dispatcher:
    return Dispatcher(shell_context, fast_config, out_console, err_console)


class TestBuiltins:
    def test_exit(self, dispatcher) -> None:
        assert dispatcher.execute("exit") is Completion.EXIT
        assert dispatcher.execute("  exit  ") is Completion.EXIT

    def test_blank_line(self, dispatcher) -> None:
        assert dispatcher.execute("   ") is Completion.SUCCESS

    def test_cd_to_path(self, dispatcher, tmp_path: Path, restore_cwd) -> None:
        target = tmp_path / "work"
        target.mkdir()

        assert dispatcher.execute(f"cd {target}") is Completion.SUCCESS
        assert Path.cwd().resolve() == target.resolve()

    def test_cd_without_argument_goes_home(self, dispatcher, shell_context, restore_cwd) -> None:
        assert dispatcher.execute("cd") is Completion.SUCCESS
        assert Path.cwd().resolve() == shell_context.home.resolve()

    def test_cd_tilde_uses_injected_home(self, dispatcher, shell_context, restore_cwd, monkeypatch) -> None:
        (shell_context.home / "projects").mkdir()
        monkeypatch.setenv("HOME", "/somewhere/else")

        assert dispatcher.execute("cd ~/projects") is Completion.SUCCESS
        assert Path.cwd().resolve() == (shell_context.home / "projects").resolve()

    def test_cd_missing_directory(self, dispatcher, err_console, restore_cwd) -> None:
        before = Path.cwd()

        assert dispatcher.execute("cd /definitely/missing/dir") is Completion.NOT_RECOGNIZED
        assert "cd:" in err_console.file.getvalue()
        assert Path.cwd() == before

    def test_cd_too_many_arguments(self, dispatcher, err_console, restore_cwd) -> None:
        assert dispatcher.execute("cd a b") is Completion.NOT_RECOGNIZED
        assert "too many arguments" in err_console.file.getvalue()

    def test_resolve_path(self, dispatcher, shell_context) -> None:
        assert dispatcher.resolve_path("~") == shell_context.home
        assert dispatcher.resolve_path("~/x") == shell_context.home / "x"
        assert dispatcher.resolve_path("/tmp") == Path("/tmp")


class TestPipelines:
    def test_pipeline_runs(self, dispatcher, out_console, tmp_path: Path) -> None:
        assert dispatcher.execute("echo hello | tr a-z A-Z") is Completion.SUCCESS
        assert out_console.file.getvalue() == "HELLO\n"

    def test_stage_failure_is_still_success(self, dispatcher, err_console) -> None:
        assert dispatcher.execute("no-such-program-xyz") is Completion.SUCCESS
        assert "error starting command" in err_console.file.getvalue()

    def test_infrastructure_error_not_recognized(self, shell_context, fast_config, out_console, err_console) -> None:
        pipelines = MagicMock(spec=PipelineExecutor)
        pipelines.run.side_effect = InfrastructureError("error closing stdout of stage 0")
        dispatcher = Dispatcher(shell_context, fast_config, out_console, err_console, pipelines=pipelines)

        assert dispatcher.execute("echo a | cat") is Completion.NOT_RECOGNIZED
        assert "pipeline error" in err_console.file.getvalue()


class TestRunParallel:
    def test_batch_runs(self, dispatcher, out_console) -> None:
        assert dispatcher.execute("runparallel echo A;echo B;echo C") is Completion.SUCCESS

        text = out_console.file.getvalue()
        for letter in "ABC":
            assert f"Command: echo {letter}" in text
            assert f"Output: {letter}" in text

    def test_commands_passed_to_supervisor(self, shell_context, fast_config, out_console, err_console) -> None:
        supervisor = MagicMock(spec=ParallelSupervisor)
        dispatcher = Dispatcher(shell_context, fast_config, out_console, err_console, supervisor=supervisor)

        dispatcher.execute("runparallel  echo A ; sleep 1;;ls -l ")

        supervisor.run.assert_called_once_with(["echo A", "sleep 1", "ls -l"])

    def test_pipe_is_not_interpreted_inside_batch(self, shell_context, fast_config, out_console, err_console) -> None:
        supervisor = MagicMock(spec=ParallelSupervisor)
        pipelines = MagicMock(spec=PipelineExecutor)
        dispatcher = Dispatcher(
            shell_context, fast_config, out_console, err_console, pipelines=pipelines, supervisor=supervisor
        )

        dispatcher.execute("runparallel echo a | cat;echo b")

        supervisor.run.assert_called_once_with(["echo a | cat", "echo b"])
        pipelines.run.assert_not_called()

    def test_missing_commands(self, dispatcher, err_console) -> None:
        assert dispatcher.execute("runparallel") is Completion.NOT_RECOGNIZED
        assert dispatcher.execute("runparallel ; ;") is Completion.NOT_RECOGNIZED
        assert "usage:" in err_console.file.getvalue()
