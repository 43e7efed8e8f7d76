"""Local filesystem operations used by environments."""

from __future__ import annotations

import fnmatch
import logging
import shutil
from pathlib import Path
from typing import Iterable, List

from stagerun.errors import StagerunError

logger = logging.getLogger(__name__)


class FileOperationError(StagerunError):
    """Exception raised for file operation errors."""


class Mkdir:
    """Creates directories, tolerating ones that already exist."""

    def mkdirs(self, path: Path) -> Path:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileOperationError(f"Failed to create directory {path}: {e}") from e
        return path


class FilenameFilter:
    """Accepts file names matching any of a set of glob patterns."""

    def __init__(self, patterns: Iterable[str]):
        self.patterns = [p for p in patterns if p]

    def accept(self, name: str) -> bool:
        return any(fnmatch.fnmatch(name, pattern) for pattern in self.patterns)


def copy_tree(source: Path, destination: Path) -> Path:
    """Copy a directory tree to a destination that must not exist yet.

    Args:
        source: Directory to copy
        destination: New directory to create

    Returns:
        The destination path

    Raises:
        FileOperationError: If the copy fails
    """
    if not source.is_dir():
        raise FileOperationError(f"{source} is not a directory")
    try:
        shutil.copytree(source, destination)
    except (OSError, shutil.Error) as e:
        raise FileOperationError(f"Failed to copy {source} to {destination}: {e}") from e
    logger.debug("copied %s to %s", source, destination)
    return destination


def copy_file(source: Path, destination_dir: Path) -> Path:
    """Copy a file into a directory, creating the directory if needed."""

    if not source.is_file():
        raise FileOperationError(f"{source} is not a file")
    try:
        destination_dir.mkdir(parents=True, exist_ok=True)
        return Path(shutil.copy2(source, destination_dir))
    except OSError as e:
        raise FileOperationError(f"Failed to copy {source} to {destination_dir}: {e}") from e


def list_files(directory: Path, name_filter: FilenameFilter | None = None) -> List[Path]:
    """List the files (not directories) directly inside a directory."""

    if not directory.is_dir():
        raise FileOperationError(f"Directory {directory} does not exist")
    return sorted(
        path
        for path in directory.iterdir()
        if path.is_file() and (name_filter is None or name_filter.accept(path.name))
    )


def list_subdirectories(directory: Path) -> List[Path]:
    if not directory.is_dir():
        raise FileOperationError(f"Directory {directory} does not exist")
    return sorted(path for path in directory.iterdir() if path.is_dir())


def remove_tree(path: Path) -> None:
    shutil.rmtree(path, ignore_errors=True)
