"""Human-readable run summaries."""

from __future__ import annotations

from typing import Any

from rich.markup import escape
from rich.table import Table

from stagerun.tasks import Result, RunReport

_STYLES = {
    Result.SUCCESS: "green",
    Result.UNSUPPORTED: "yellow",
}


def results_table(report: RunReport) -> Table:
    """One row per task: completed tasks with their result, then stuck ones."""

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Task")
    table.add_column("Result")

    for task in report.completed:
        style = _STYLES.get(task.result, "red")
        table.add_row(escape(str(task)), f"[{style}]{task.result.name}[/{style}]")
    for task in report.stuck:
        reason = report.reasons.get(task, "never ran")
        table.add_row(escape(str(task)), f"[red]NOT RUN[/red] ({escape(reason)})")
    return table


def audit_entries(report: RunReport) -> list[dict[str, Any]]:
    entries: list[dict[str, Any]] = [
        {"task": str(task), "result": task.result.value} for task in report.completed
    ]
    entries.extend(
        {"task": str(task), "result": None, "reason": report.reasons.get(task)}
        for task in report.stuck
    )
    return entries
