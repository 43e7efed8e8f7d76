"""Environments that actions are prepared in and cleaned up after."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Sequence

from stagerun.config import Settings
from stagerun.tasks import Result, Task, TaskQueue
from stagerun.tools import (
    FileOperationError,
    FilenameFilter,
    Mkdir,
    copy_file,
    copy_tree,
    list_files,
    list_subdirectories,
    remove_tree,
)

from .action import Action

logger = logging.getLogger(__name__)


class Environment(ABC):
    """Where actions run: the local host, or a device reached over a remote shell."""

    def __init__(
        self,
        settings: Settings,
        mkdir: Mkdir | None = None,
        retrieved_files: FilenameFilter | None = None,
    ):
        self.settings = settings
        self.mkdir = mkdir or Mkdir()
        self.retrieved_files = retrieved_files or FilenameFilter(settings.retrieved_patterns_list)

    def clean_before(self) -> bool:
        return self.settings.clean_before

    def clean_after(self) -> bool:
        return self.settings.clean_after

    def file(self, *parts: str) -> Path:
        """Path of a local scratch file for this run."""

        return self.settings.work_dir.joinpath(*parts)

    def install_tasks(self, task_queue: TaskQueue) -> None:
        """Enqueue the tasks that must complete before actions can run."""

    @abstractmethod
    def prepare_user_dir(self, action: Action) -> None:
        """Create the action's user dir and copy its resources into it."""

    def cleanup(self, action: Action) -> None:
        if self.clean_after():
            remove_tree(self.file(action.name))

    def shutdown(self) -> None:
        if self.clean_after():
            remove_tree(self.settings.work_dir)

    def prepare_user_dir_task(self, action: Action, after: Task | None = None) -> Task:
        return PrepareUserDirTask(self, action, after)

    def cleanup_task(self, action: Action, after: Task) -> Task:
        return CleanupTask(self, action, after)


class PrepareUserDirTask(Task):
    def __init__(self, environment: Environment, action: Action, after: Task | None):
        super().__init__(f"prepare user dir for {action.name}")
        self.environment = environment
        self.action = action
        self.after = after

    def execute(self) -> Result:
        if self.after is not None and self.after.result is not Result.SUCCESS:
            return self.after.result
        self.environment.prepare_user_dir(self.action)
        return Result.SUCCESS

    def is_runnable(self) -> bool:
        return self.after is None or self.after.result is not None

    def prerequisites(self) -> Sequence[Task]:
        return () if self.after is None else (self.after,)


class CleanupTask(Task):
    """Retrieves results and removes scratch space, whatever ``after`` ended with."""

    def __init__(self, environment: Environment, action: Action, after: Task):
        super().__init__(f"cleanup {action.name}")
        self.environment = environment
        self.action = action
        self.after = after

    def execute(self) -> Result:
        self.environment.cleanup(self.action)
        return Result.SUCCESS

    def is_runnable(self) -> bool:
        return self.after.result is not None

    def prerequisites(self) -> Sequence[Task]:
        return (self.after,)


class EnvironmentHost(Environment):
    """Runs actions on the local machine."""

    def action_user_dir(self, action: Action) -> Path:
        return self.file(action.name, "user.dir")

    def prepare_user_dir(self, action: Action) -> None:
        user_dir = self.action_user_dir(action)
        # an existing dir would make the copy nest resources one level too deep
        if user_dir.exists():
            raise FileOperationError(f"user dir {user_dir} already exists")

        if action.resources_directory is not None:
            self.mkdir.mkdirs(user_dir.parent)
            copy_tree(action.resources_directory, user_dir)
        else:
            self.mkdir.mkdirs(user_dir)
        action.user_dir = user_dir

    def retrieve_files(self, destination: Path, source: Path) -> None:
        """Recursively copy files accepted by the retrieval filter out of ``source``."""

        for file in list_files(source, self.retrieved_files):
            logger.info("Moving %s to %s", file, destination)
            copy_file(file, destination)

        for sub_dir in list_subdirectories(source):
            self.retrieve_files(destination / sub_dir.name, sub_dir)

    def cleanup(self, action: Action) -> None:
        if action.user_dir is not None and Path(action.user_dir).is_dir():
            self.retrieve_files(self.settings.results_dir, Path(action.user_dir))
        super().cleanup(action)
