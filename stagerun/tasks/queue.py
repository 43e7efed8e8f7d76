"""Task queue that drives a graph of tasks to completion."""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable

from pydantic import BaseModel, Field

from stagerun.console import LogSink, NullConsole
from stagerun.errors import StuckRunError, TaskQueueError

from .graph import TaskGraph
from .result import Result
from .task import Task

logger = logging.getLogger(__name__)


def _cpu_count() -> int:
    return os.cpu_count() or 1


class WorkerPoolConfig(BaseModel):
    """Size and naming of the worker threads a queue runs tasks on."""

    max_workers: int = Field(default_factory=_cpu_count, ge=1)
    thread_name_prefix: str = Field(default="stagerun-worker")


@dataclass(slots=True)
class RunReport:
    """Outcome of one run_all call."""

    completed: list[Task] = field(default_factory=list)
    stuck: list[Task] = field(default_factory=list)
    reasons: dict[Task, str] = field(default_factory=dict)

    @property
    def failed(self) -> list[Task]:
        return [task for task in self.completed if task.result is not Result.SUCCESS]

    @property
    def successful(self) -> bool:
        return not self.stuck and not self.failed


class TaskQueue:
    """Owns the tasks of one run and dispatches them as they become runnable.

    Independent tasks run concurrently on the worker pool; a dependent only
    becomes runnable once its prerequisites have results. Failures are
    recorded, never escalated: unrelated tasks keep running.
    """

    def __init__(
        self,
        console: LogSink | None = None,
        pool: WorkerPoolConfig | None = None,
    ) -> None:
        self.console = console or NullConsole()
        self.pool = pool or WorkerPoolConfig()
        self._cond = threading.Condition()
        self._known: set[Task] = set()
        self._pending: list[Task] = []
        self._running: set[Task] = set()
        self._completed: list[Task] = []
        self._unfinished: dict[Task, str] = {}
        self._started = False
        self._finished = False

    def enqueue(self, task: Task) -> None:
        """Add a task; legal before the run and from tasks that are running."""

        with self._cond:
            if self._finished:
                raise TaskQueueError(f"cannot enqueue {task}: the run has finished")
            if task in self._known:
                raise TaskQueueError(f"{task} is already enqueued")
            if task.result is not None:
                raise TaskQueueError(f"{task} already has result {task.result.name}")
            self._known.add(task)
            self._pending.append(task)
            self._cond.notify_all()

    def enqueue_all(self, tasks: Iterable[Task]) -> None:
        for task in tasks:
            self.enqueue(task)

    @property
    def tasks(self) -> list[Task]:
        """Snapshot of every enqueued task: completed, then running, then pending."""

        with self._cond:
            return self._completed + list(self._running) + list(self._pending)

    def run_all(self, max_workers: int | None = None) -> RunReport:
        """Run every task to completion and return what happened.

        Raises StuckRunError when tasks remain that can never become runnable
        or that finished without recording a result.
        """

        if max_workers is not None and max_workers < 1:
            raise TaskQueueError(f"max_workers must be at least 1, got {max_workers}")
        workers = max_workers if max_workers is not None else self.pool.max_workers

        with self._cond:
            if self._started:
                raise TaskQueueError("a task queue can only be run once")
            self._started = True

        logger.debug("running %d task(s) on %d worker(s)", len(self._pending), workers)
        executor = ThreadPoolExecutor(
            max_workers=workers,
            thread_name_prefix=self.pool.thread_name_prefix,
        )
        try:
            with self._cond:
                while True:
                    self._dispatch_runnable(executor)
                    if not self._running:
                        break
                    self._cond.wait()
                self._finished = True
                report = RunReport(
                    completed=list(self._completed),
                    stuck=list(self._pending) + list(self._unfinished),
                )
        finally:
            executor.shutdown(wait=True)

        if report.stuck:
            report.reasons = TaskGraph(self._known).explain_stuck(self._pending, self._known)
            report.reasons.update(self._unfinished)
            for task, reason in report.reasons.items():
                logger.error("task %s never ran: %s", task, reason)
            raise StuckRunError(report)
        return report

    def _dispatch_runnable(self, executor: ThreadPoolExecutor) -> None:
        # Caller holds self._cond.
        runnable = []
        for task in self._pending:
            try:
                if task.is_runnable():
                    runnable.append(task)
            except Exception:
                # left pending; reported as stuck if it never recovers
                logger.exception("is_runnable() of task %s raised", task)
        for task in runnable:
            self._pending.remove(task)
            self._running.add(task)
            executor.submit(self._run_task, task)

    def _run_task(self, task: Task) -> None:
        failure = "finished without recording a result"
        try:
            task.run(self.console)
        except Exception as exc:
            logger.exception("task %s could not be run", task)
            failure = f"run raised {type(exc).__name__}: {exc}"
        finally:
            with self._cond:
                self._running.discard(task)
                if task.result is not None:
                    self._completed.append(task)
                else:
                    self._unfinished[task] = failure
                self._cond.notify_all()
