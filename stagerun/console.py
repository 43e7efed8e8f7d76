"""Console output and logging setup for runs."""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from rich.console import Console
from rich.markup import escape


class LogSink(Protocol):
    """Anything a task can report its progress to."""

    def verbose(self, message: str) -> None: ...


class RunConsole:
    """Thread-safe wrapper around a rich console with a verbose switch."""

    def __init__(self, verbose: bool = False, console: Console | None = None) -> None:
        self.verbose_enabled = verbose
        self.console = console or Console(stderr=True)
        self._lock = threading.Lock()

    def verbose(self, message: str) -> None:
        if self.verbose_enabled:
            self._print(f"[dim]{escape(message)}[/dim]")

    def info(self, message: str) -> None:
        self._print(escape(message))

    def warn(self, message: str) -> None:
        self._print(f"[yellow]{escape(message)}[/yellow]")

    def _print(self, markup: str) -> None:
        with self._lock:
            self.console.print(markup)


class NullConsole:
    """Sink that discards everything."""

    def verbose(self, message: str) -> None:
        pass


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger once, early."""

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s [%(threadName)s]: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
