"""Execution environments and their preparation tasks."""

from stagerun.env.action import Action
from stagerun.env.device import DeviceShell, DeviceTimeoutError, EnvironmentDevice, PrepareDeviceTask
from stagerun.env.environment import CleanupTask, Environment, EnvironmentHost, PrepareUserDirTask

__all__ = [
    "Action",
    "CleanupTask",
    "DeviceShell",
    "DeviceTimeoutError",
    "Environment",
    "EnvironmentDevice",
    "EnvironmentHost",
    "PrepareDeviceTask",
    "PrepareUserDirTask",
]
