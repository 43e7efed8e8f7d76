"""Terminal outcomes for a unit of work."""

from __future__ import annotations

from enum import Enum


class Result(str, Enum):
    """Closed set of outcomes a task may finish with."""

    SUCCESS = "success"
    UNSUPPORTED = "unsupported"
    COMPILE_FAILED = "compile_failed"
    EXEC_FAILED = "exec_failed"
    EXEC_TIMEOUT = "exec_timeout"
    ERROR = "error"

    def __str__(self) -> str:
        return self.name

    @property
    def is_success(self) -> bool:
        return self is Result.SUCCESS
