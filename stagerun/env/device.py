"""Device environment reached through an adb-style remote shell."""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from typing import List

from tenacity import RetryError, Retrying, retry_if_exception_type, retry_if_result, stop_after_delay, wait_fixed

from stagerun.config import Settings
from stagerun.errors import StagerunError
from stagerun.tasks import Result, Task, TaskQueue
from stagerun.tools import Command, CommandFailedError, FilenameFilter, Mkdir

from .action import Action
from .environment import Environment

logger = logging.getLogger(__name__)

# Directories pulled back even when their names don't match the retrieval filter.
RESULT_DIRECTORIES = ("caliper-results",)


class DeviceTimeoutError(StagerunError):
    """Raised when the device does not become ready in time."""


class DeviceShell:
    """Thin wrapper over the adb command line."""

    def __init__(self, adb: str = "adb", poll_interval: float = 2.0, command_timeout: float | None = None):
        self.adb = adb
        self.poll_interval = poll_interval
        self.command_timeout = command_timeout

    def _adb(self, *args: str, timeout: float | None = None) -> List[str]:
        return Command(self.adb, *args, timeout=timeout or self.command_timeout).execute()

    def wait_for_device(self, timeout: float | None = None) -> None:
        self._adb("wait-for-device", timeout=timeout)

    def wait_for_non_empty_directory(self, path: PurePosixPath, timeout: float) -> None:
        """Poll ``path`` until it lists at least one entry, for at most ``timeout`` seconds."""

        retrying = Retrying(
            stop=stop_after_delay(timeout),
            wait=wait_fixed(self.poll_interval),
            retry=(
                retry_if_result(lambda entries: not entries)
                | retry_if_exception_type((CommandFailedError, FileNotFoundError))
            ),
        )
        try:
            retrying(self.ls, path)
        except RetryError as e:
            raise DeviceTimeoutError(f"{path} still empty after {timeout}s") from e

    def remount(self) -> None:
        self._adb("remount")

    def rm(self, path: PurePosixPath) -> None:
        self._adb("shell", "rm", "-r", str(path))

    def mkdir(self, path: PurePosixPath) -> None:
        self._adb("shell", "mkdir", str(path))

    def mkdirs(self, path: PurePosixPath) -> None:
        self._adb("shell", "mkdir", "-p", str(path))

    def forward_tcp(self, local_port: int, device_port: int) -> None:
        self._adb("forward", f"tcp:{local_port}", f"tcp:{device_port}")

    def push(self, local: Path, remote: PurePosixPath) -> None:
        self._adb("push", str(local), str(remote))

    def pull(self, remote: PurePosixPath, local: Path) -> None:
        self._adb("pull", str(remote), str(local))

    def ls(self, path: PurePosixPath) -> List[PurePosixPath]:
        """List a device directory.

        Raises:
            FileNotFoundError: If the directory does not exist on the device
        """
        output = self._adb("shell", "ls", str(path))
        if any("No such file or directory" in line for line in output):
            raise FileNotFoundError(str(path))
        return [path / line.strip() for line in output if line.strip()]


class PrepareDeviceTask(Task):
    """Prepares the device for actions; runnable immediately."""

    def __init__(self, environment: "EnvironmentDevice"):
        super().__init__("prepare device")
        self.environment = environment

    def execute(self) -> Result:
        env = self.environment
        shell = env.shell
        settings = env.settings

        shell.wait_for_device(timeout=settings.device_wait_timeout)
        # even with a runner dir of /x/run the grandparent is / and never empty
        shell.wait_for_non_empty_directory(env.runner_dir.parent.parent, settings.device_wait_timeout)
        shell.remount()
        if env.clean_before():
            shell.rm(env.runner_dir)
        shell.mkdirs(env.runner_dir)
        shell.mkdir(env.device_temp())
        shell.mkdirs(env.dalvik_cache())
        for i in range(settings.num_runners):
            port = settings.first_monitor_port + i
            shell.forward_tcp(port, port)
        if settings.debug_port is not None:
            shell.forward_tcp(settings.debug_port, settings.debug_port)
        shell.mkdirs(env.user_home)

        host_caliper_rc = env.home / ".caliperrc"
        if host_caliper_rc.exists():
            shell.push(host_caliper_rc, env.user_home / ".caliperrc")
        return Result.SUCCESS

    def is_runnable(self) -> bool:
        return True


class EnvironmentDevice(Environment):
    """Runs actions on a device; local scratch files still live on the host."""

    def __init__(
        self,
        settings: Settings,
        shell: DeviceShell | None = None,
        mkdir: Mkdir | None = None,
        retrieved_files: FilenameFilter | None = None,
        home: Path | None = None,
    ):
        super().__init__(settings, mkdir=mkdir, retrieved_files=retrieved_files)
        self.shell = shell or DeviceShell(settings.adb_command, poll_interval=settings.device_poll_interval)
        self.home = home or Path.home()
        self.runner_dir = PurePosixPath(settings.device_runner_dir)
        self.user_home = PurePosixPath(settings.device_user_home)
        self.prepare_device_task = PrepareDeviceTask(self)

    def device_temp(self) -> PurePosixPath:
        return self.runner_dir / "tmp"

    def dalvik_cache(self) -> PurePosixPath:
        return self.runner_dir.parent / "dalvik-cache"

    def android_data(self) -> str:
        """Environment assignment telling the VM where to keep its dexopt files.

        Required on production devices, optional on development ones.
        """
        # the VM wants the parent of the directory named "dalvik-cache"
        return f"ANDROID_DATA={self.dalvik_cache().parent}"

    def install_tasks(self, task_queue: TaskQueue) -> None:
        task_queue.enqueue(self.prepare_device_task)

    def action_dir_on_device(self, action: Action) -> PurePosixPath:
        return self.runner_dir / action.name

    def prepare_user_dir(self, action: Action) -> None:
        user_dir = self.action_dir_on_device(action)
        self.shell.mkdirs(user_dir)
        if action.resources_directory is not None:
            for resource in sorted(action.resources_directory.iterdir()):
                self.shell.push(resource, user_dir / resource.name)
        action.user_dir = user_dir

    def retrieve_files(self, destination: Path, source: PurePosixPath) -> None:
        """Pull files accepted by the retrieval filter out of a device directory.

        Raises:
            FileNotFoundError: If ``source`` does not exist on the device
        """
        entries = self.shell.ls(source)
        for file in entries:
            if self.retrieved_files.accept(file.name):
                logger.info("Moving %s to %s", file, destination)
                self.mkdir.mkdirs(destination)
                self.shell.pull(file, destination)

        # result directories are pulled even when the action failed
        # TODO: recurse into every subdirectory once ls reports entry types
        for sub_dir in entries:
            if sub_dir.name in RESULT_DIRECTORIES:
                self.retrieve_files(destination / sub_dir.name, sub_dir)

    def cleanup(self, action: Action) -> None:
        try:
            self.retrieve_files(self.settings.results_dir, self.action_dir_on_device(action))
        except FileNotFoundError as e:
            logger.info("Failed to retrieve all files: %s", e)
        super().cleanup(action)
        if self.clean_after():
            self.shell.rm(self.action_dir_on_device(action))

    def shutdown(self) -> None:
        super().shutdown()
        if self.clean_after():
            self.shell.rm(self.runner_dir)
