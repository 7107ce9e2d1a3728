from __future__ import annotations

import io
import os
from pathlib import Path
from typing import Iterator

import pytest
from rich.console import Console

from devops_shell.core.config import ShellConfig
from devops_shell.shell.dispatcher import ShellContext


def _buffer_console(stderr: bool = False) -> Console:
    """Console writing to an in-memory buffer, wide enough to avoid wrapping."""
    return Console(
        file=io.StringIO(),
        stderr=stderr,
        width=200,
        soft_wrap=True,
        highlight=False,
        color_system=None,
    )


@pytest.fixture()
def out_console() -> Console:
    return _buffer_console()


@pytest.fixture()
def err_console() -> Console:
    return _buffer_console(stderr=True)


@pytest.fixture()
def shell_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point DEVOPS_SHELL_HOME and HOME at a temporary directory."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("DEVOPS_SHELL_HOME", str(home / ".devops-shell"))
    yield home


@pytest.fixture()
def fast_config(tmp_path: Path) -> ShellConfig:
    """Config with a short status interval and a private history file."""
    return ShellConfig(
        task_timeout=10.0,
        status_interval=0.1,
        history_file=tmp_path / "history.txt",
    )


@pytest.fixture()
def shell_context(tmp_path: Path) -> ShellContext:
    home = tmp_path / "user-home"
    home.mkdir(exist_ok=True)
    return ShellContext(user="tester", hostname="box", home=home)


@pytest.fixture()
def restore_cwd() -> Iterator[None]:
    cwd = os.getcwd()
    yield
    os.chdir(cwd)
