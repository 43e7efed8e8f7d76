"""Shared fixtures for stagerun tests."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from stagerun.config import Settings


class RecordingConsole:
    """Log sink that keeps every verbose line."""

    def __init__(self) -> None:
        self.lines: list[str] = []
        self._lock = threading.Lock()

    def verbose(self, message: str) -> None:
        with self._lock:
            self.lines.append(message)


@pytest.fixture
def console() -> RecordingConsole:
    return RecordingConsole()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the environment and rooted in a temp dir."""

    return Settings(
        _env_file=None,
        work_dir=tmp_path / "work",
        results_dir=tmp_path / "results",
        max_workers=4,
        device_runner_dir=Path("/data/local/tmp/stagerun/run"),
        device_user_home=Path("/sdcard"),
        first_monitor_port=8787,
        num_runners=2,
        debug_port=None,
        device_wait_timeout=1.0,
        device_poll_interval=0.01,
        retrieved_file_patterns="*.json, *.xml",
        clean_before=True,
        clean_after=True,
    )
