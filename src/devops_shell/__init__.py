"""
devops-shell - a minimal interactive command shell.

Usage:
    devops-shell                              start the interactive shell
    devops-shell run "echo hello | tr a-z A-Z"
    devops-shell parallel "echo A;echo B;sleep 2"
"""

from __future__ import annotations

import logging
from importlib.metadata import PackageNotFoundError, version as _dist_version
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from devops_shell.core.config import ShellConfig, load_config
from devops_shell.core.errors import ShellConfigError
from devops_shell.engine.command import parse_batch
from devops_shell.engine.supervisor import ParallelSupervisor
from devops_shell.shell.dispatcher import Completion, Dispatcher
from devops_shell.shell.repl import Repl, detect_context

try:
    __version__ = _dist_version("devops-shell")
except PackageNotFoundError:
    __version__ = "0.0.0"

console = Console(soft_wrap=True, highlight=False)
err_console = Console(stderr=True, soft_wrap=True, highlight=False)

app = typer.Typer(
    name="devops-shell",
    help="Minimal interactive shell with pipelines and parallel command batches",
    add_completion=False,
    invoke_without_command=True,
)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"devops-shell {__version__}")
        raise typer.Exit()


def _config_from(ctx: typer.Context) -> ShellConfig:
    return ctx.obj if isinstance(ctx.obj, ShellConfig) else ShellConfig()


@app.callback()
def callback(
    ctx: typer.Context,
    config_file: Optional[Path] = typer.Option(
        None, "--config", help="Path to config.yaml (default: ~/.devops-shell/config.yaml)"
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", min=0.1, help="Per-task timeout in seconds for parallel batches"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
):
    """Start the interactive shell when no subcommand is provided."""
    try:
        config = load_config(config_file)
    except ShellConfigError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(2)

    config = config.with_overrides(task_timeout=timeout)
    _configure_logging("DEBUG" if verbose else config.log_level)
    ctx.obj = config

    if ctx.invoked_subcommand is None:
        context = detect_context()
        dispatcher = Dispatcher(context, config, console, err_console)
        raise typer.Exit(Repl(dispatcher, context, config, console, err_console).run())


@app.command()
def run(
    ctx: typer.Context,
    line: str = typer.Argument(..., help="Command line to execute, e.g. 'ls -l | wc -l'"),
):
    """Execute a single command line and exit."""
    config = _config_from(ctx)
    dispatcher = Dispatcher(detect_context(), config, console, err_console)
    completion = dispatcher.execute(line)

    if completion is Completion.NOT_RECOGNIZED:
        err_console.print(f"{escape(line.strip())} is not valid")
        raise typer.Exit(1)


@app.command()
def parallel(
    ctx: typer.Context,
    commands: str = typer.Argument(..., help="Semicolon-separated commands, e.g. 'echo A;echo B'"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Hide the live status table"),
):
    """Run independent commands in parallel and print a report."""
    batch = parse_batch(commands)
    if not batch:
        err_console.print("[red]Error:[/red] no commands given")
        raise typer.Exit(2)

    supervisor = ParallelSupervisor(_config_from(ctx), console, show_status=not quiet)
    report = supervisor.run(batch)
    raise typer.Exit(0 if report.all_succeeded else 1)


def main():
    app()


if __name__ == "__main__":
    main()
