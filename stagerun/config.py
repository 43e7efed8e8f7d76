"""Configuration management using Pydantic settings."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from stagerun.tasks.queue import WorkerPoolConfig


class Settings(BaseSettings):
    """Environment-driven configuration, read from STAGERUN_* variables."""

    model_config = SettingsConfigDict(
        env_prefix="STAGERUN_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Worker pool
    max_workers: int = Field(
        default_factory=lambda: os.cpu_count() or 1,
        ge=1,
        le=256,
        description="Parallel worker threads",
    )
    thread_name_prefix: str = Field(default="stagerun-worker", description="Worker thread name prefix")

    # Output
    verbose: bool = Field(default=False, description="Print per-task progress lines")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Local directories
    results_dir: Path = Field(default=Path("./run-results"), description="Where retrieved files land")
    work_dir: Path = Field(default=Path("/tmp/stagerun"), description="Per-action scratch space")
    clean_before: bool = Field(default=True, description="Remove leftovers before preparing")
    clean_after: bool = Field(default=True, description="Remove scratch space after a run")

    # Device
    adb_command: str = Field(default="adb", description="Remote shell executable")
    device_runner_dir: Path = Field(default=Path("/data/local/tmp/stagerun/run"))
    device_user_home: Path = Field(default=Path("/sdcard"))
    first_monitor_port: int = Field(default=8787, ge=1, le=65535)
    num_runners: int = Field(default=1, ge=1, le=64)
    debug_port: int | None = Field(default=None, ge=1, le=65535)
    device_wait_timeout: float = Field(default=5 * 60, gt=0, description="Seconds to wait for the device")
    device_poll_interval: float = Field(default=2.0, gt=0)

    retrieved_file_patterns: str = Field(
        default="*.json,*.xml,*.trace",
        description="Comma-separated glob patterns of files to retrieve",
    )

    @field_validator("retrieved_file_patterns", mode="after")
    @classmethod
    def normalize_patterns(cls, patterns: str) -> str:
        return ",".join(p.strip() for p in patterns.split(",") if p.strip())

    @property
    def retrieved_patterns_list(self) -> list[str]:
        return [p for p in self.retrieved_file_patterns.split(",") if p]

    def worker_pool(self) -> WorkerPoolConfig:
        return WorkerPoolConfig(
            max_workers=self.max_workers,
            thread_name_prefix=self.thread_name_prefix,
        )


@lru_cache
def load_settings() -> Settings:
    """Expose a cached settings instance."""

    return Settings()
