"""Tasks, composite tasks and the queue that runs them."""

from stagerun.tasks.graph import TaskGraph
from stagerun.tasks.queue import RunReport, TaskQueue, WorkerPoolConfig
from stagerun.tasks.result import Result
from stagerun.tasks.task import CompositeTask, FunctionTask, ResultCell, Task, upon_success_of

__all__ = [
    "CompositeTask",
    "FunctionTask",
    "Result",
    "ResultCell",
    "RunReport",
    "Task",
    "TaskGraph",
    "TaskQueue",
    "WorkerPoolConfig",
    "upon_success_of",
]
