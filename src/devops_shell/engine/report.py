"""Rich rendering for parallel batches: live status snapshots and the final report.

Command text and process output come from the user, so they are always
escaped or wrapped in ``Text`` and never parsed as markup.
"""

from __future__ import annotations

from datetime import datetime, timezone

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from devops_shell.engine.supervisor import BatchReport, TaskRecord, TaskStatus

STATUS_STYLES: dict[TaskStatus, str] = {
    TaskStatus.PENDING: "[dim]pending[/dim]",
    TaskStatus.RUNNING: "[blue]running[/blue]",
    TaskStatus.SUCCEEDED: "[green]succeeded[/green]",
    TaskStatus.FAILED: "[red]failed[/red]",
    TaskStatus.TIMED_OUT: "[red]timed out[/red]",
}


def format_elapsed(seconds: float) -> str:
    """Format elapsed time in human-readable format."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = int(seconds // 60)
    secs = int(seconds % 60)
    if minutes < 60:
        return f"{minutes}m {secs}s"
    hours = minutes // 60
    mins = minutes % 60
    return f"{hours}h {mins}m"


def create_status_table(records: list[TaskRecord], now: datetime | None = None) -> Table:
    """Create the task status table printed on every reporter tick.

    Args:
        records: Snapshot of the task table, ordered by id.
        now: Reference time for elapsed values of running tasks.

    Returns:
        Rich Table with one row per task.
    """
    now = now or datetime.now(timezone.utc)
    done = sum(1 for r in records if r.is_terminal)

    table = Table(
        title="[bold]Task Status[/bold]",
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("Task", style="cyan", width=6)
    table.add_column("Command", overflow="fold")
    table.add_column("Status", width=12)
    table.add_column("Time", style="yellow", width=9)

    for record in records:
        elapsed = record.elapsed(now)
        table.add_row(
            str(record.task_id),
            escape(record.command),
            STATUS_STYLES.get(record.status, record.status.value),
            format_elapsed(elapsed) if elapsed is not None else "-",
        )

    table.caption = f"{done}/{len(records)} finished"
    return table


def print_task_result(record: TaskRecord, console: Console) -> None:
    """Print one entry of the final report: command, status, error or output."""
    console.print(f"[bold]Command:[/bold] {escape(record.command)}")
    console.print(f"[bold]Status:[/bold] {STATUS_STYLES.get(record.status, record.status.value)}")
    if record.error is not None:
        console.print(Text("Error: ", style="bold red") + Text(record.error))
    else:
        console.print(Text("Output: ", style="bold") + Text(record.output.rstrip("\n")))
    console.print()


def print_batch_report(report: BatchReport, console: Console) -> None:
    """Print every result in completion order, then a summary panel."""
    console.print()
    console.rule("[bold]Parallel Task Results[/bold]")
    for record in report.results:
        print_task_result(record, console)

    if report.all_succeeded:
        status_color = "green"
        status_text = "ALL TASKS SUCCEEDED"
    elif report.succeeded:
        status_color = "yellow"
        status_text = "COMPLETED WITH FAILURES"
    else:
        status_color = "red"
        status_text = "ALL TASKS FAILED"

    timed_out = sum(1 for r in report.results if r.status is TaskStatus.TIMED_OUT)
    content = (
        f"[bold {status_color}]{status_text}[/bold {status_color}]\n\n"
        f"  Total:     {report.total}\n"
        f"  Succeeded: {report.succeeded}\n"
        f"  Failed:    {report.failed}"
        + (f" ({timed_out} timed out)" if timed_out else "")
        + f"\n  Duration:  {format_elapsed(report.duration)}"
    )
    console.print(Panel(content, title="Batch Summary", border_style=status_color))


__all__ = [
    "STATUS_STYLES",
    "format_elapsed",
    "create_status_table",
    "print_task_result",
    "print_batch_report",
]
