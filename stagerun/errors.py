"""Exception hierarchy shared across the run engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from stagerun.tasks.queue import RunReport


class StagerunError(Exception):
    """Base class for all errors raised by stagerun."""


class TaskReuseError(StagerunError):
    """Raised when a task that already ran (or is running) is run again."""


class TaskQueueError(StagerunError):
    """Raised for illegal queue operations such as a duplicate enqueue."""


class StuckRunError(StagerunError):
    """Raised when pending tasks remain but none can ever become runnable."""

    def __init__(self, report: "RunReport"):
        self.report = report
        names = ", ".join(str(task) for task in report.stuck)
        super().__init__(f"{len(report.stuck)} task(s) never ran: {names}")


class PlanError(StagerunError):
    """Raised when a plan cannot be turned into tasks."""
