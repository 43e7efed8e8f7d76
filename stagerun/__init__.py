"""Dependency-aware task execution engine."""

from stagerun.console import RunConsole
from stagerun.errors import PlanError, StagerunError, StuckRunError, TaskQueueError, TaskReuseError
from stagerun.tasks import (
    CompositeTask,
    FunctionTask,
    Result,
    RunReport,
    Task,
    TaskQueue,
    WorkerPoolConfig,
    upon_success_of,
)

__version__ = "1.0.0"

__all__ = [
    "CompositeTask",
    "FunctionTask",
    "PlanError",
    "Result",
    "RunConsole",
    "RunReport",
    "StagerunError",
    "StuckRunError",
    "Task",
    "TaskQueue",
    "TaskQueueError",
    "TaskReuseError",
    "WorkerPoolConfig",
    "upon_success_of",
]
