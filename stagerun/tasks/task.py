"""Task primitives driven by the task queue."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Iterable, Sequence

from stagerun.console import LogSink, NullConsole
from stagerun.errors import TaskReuseError

from .result import Result

logger = logging.getLogger(__name__)


class ResultCell:
    """Set-once slot publishing a result to every thread that reads it."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._value: Result | None = None

    def set(self, value: Result) -> None:
        with self._lock:
            if self._done.is_set():
                raise TaskReuseError(f"result already set to {self._value.name}")
            self._value = value
            self._done.set()

    def get(self) -> Result | None:
        """Return the result, or None while it is still pending."""

        if not self._done.is_set():
            return None
        with self._lock:
            return self._value

    def wait(self, timeout: float | None = None) -> Result | None:
        self._done.wait(timeout)
        return self.get()


class Task(ABC):
    """A unit of work necessary to accomplish the user's requested actions.

    Tasks have prerequisites; a task must not be run until it reports that it
    is runnable. Tasks may be run at most once; running a task produces a
    result. Tasks compare by identity, never by name.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._cell = ResultCell()
        self._claim_lock = threading.Lock()
        self._claimed = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def result(self) -> Result | None:
        return self._cell.get()

    def get_result(self) -> Result | None:
        """Return the result of this task; None if it has not yet completed."""

        return self._cell.get()

    @abstractmethod
    def execute(self) -> Result:
        """Do the work. Raising is reported as Result.ERROR."""

    @abstractmethod
    def is_runnable(self) -> bool:
        """Pure predicate; true once every prerequisite is satisfied."""

    def prerequisites(self) -> Sequence[Task]:
        """Tasks this one waits on, used to explain a stuck run."""

        return ()

    def run(self, console: LogSink | None = None) -> None:
        """Execute once and record the result; never raises for a failing body."""

        sink = console or NullConsole()
        with self._claim_lock:
            if self._claimed:
                raise TaskReuseError(f"task {self} has already been run")
            self._claimed = True

        self._report(sink, f"running {self}")
        try:
            result = self.execute()
            if not isinstance(result, Result):
                raise TypeError(f"{self} returned {result!r} instead of a Result")
        except Exception:
            logger.exception("task %s raised", self)
            result = Result.ERROR

        if result is not Result.SUCCESS:
            self._report(sink, f"warning {self} {result.name}")
        else:
            self._report(sink, f"success {self}")
        self._cell.set(result)

    def _report(self, sink: LogSink, message: str) -> None:
        try:
            sink.verbose(message)
        except Exception:
            logger.exception("console rejected %r for task %s", message, self)

    def __str__(self) -> str:
        return self._name

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._name!r} result={self.result}>"


class FunctionTask(Task):
    """Task whose body is a plain callable.

    With ``after`` set, the task becomes runnable once that task has a result,
    and reports the prerequisite's result instead of calling ``body`` when it
    was anything but success.
    """

    def __init__(
        self,
        name: str,
        body: Callable[[], Result],
        after: Task | None = None,
    ) -> None:
        super().__init__(name)
        self.body = body
        self.after = after

    def execute(self) -> Result:
        if self.after is not None and self.after.result is not Result.SUCCESS:
            return self.after.result
        return self.body()

    def is_runnable(self) -> bool:
        return self.after is None or self.after.result is not None

    def prerequisites(self) -> Sequence[Task]:
        return () if self.after is None else (self.after,)


class CompositeTask(Task):
    """A task that is complete only when all of ``tasks`` are complete."""

    def __init__(self, tasks: Iterable[Task]) -> None:
        self.tasks: tuple[Task, ...] = tuple(tasks)
        super().__init__("completion of [" + ", ".join(str(t) for t in self.tasks) + "]")

    def execute(self) -> Result:
        for task in self.tasks:
            if task.result is not Result.SUCCESS:
                return task.result
        return Result.SUCCESS

    def is_runnable(self) -> bool:
        return all(task.result is not None for task in self.tasks)

    def prerequisites(self) -> Sequence[Task]:
        return self.tasks


def upon_success_of(tasks: Iterable[Task]) -> CompositeTask:
    """Return a task that finishes with the first non-success result of ``tasks``."""

    return CompositeTask(tasks)
