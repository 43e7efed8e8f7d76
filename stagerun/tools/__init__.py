"""Host-side tools for environments and shell tasks."""

from stagerun.tools.executor import Command, CommandFailedError, CommandTimeoutError
from stagerun.tools.fileio import (
    FileOperationError,
    FilenameFilter,
    Mkdir,
    copy_file,
    copy_tree,
    list_files,
    list_subdirectories,
    remove_tree,
)

__all__ = [
    # Processes
    "Command",
    "CommandFailedError",
    "CommandTimeoutError",
    # Files
    "FileOperationError",
    "FilenameFilter",
    "Mkdir",
    "copy_file",
    "copy_tree",
    "list_files",
    "list_subdirectories",
    "remove_tree",
]
