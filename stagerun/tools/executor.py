"""Host command execution with timeout handling."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from stagerun.errors import StagerunError

logger = logging.getLogger(__name__)


class CommandFailedError(StagerunError):
    """Raised when a command exits with a non-zero status."""

    def __init__(self, args: Sequence[str], return_code: int, output: List[str]):
        self.args_list = list(args)
        self.return_code = return_code
        self.output = output
        tail = "\n".join(output[-20:])
        super().__init__(f"Command failed with code {return_code}: {' '.join(args)}\n{tail}")


class CommandTimeoutError(StagerunError):
    """Raised when a command runs past its timeout."""


class Command:
    """A host process to run, with stdout and stderr merged into lines."""

    def __init__(
        self,
        *args: str,
        timeout: Optional[float] = None,
        working_dir: Optional[Path] = None,
        env_vars: Optional[Dict[str, str]] = None,
    ):
        """Prepare a command.

        Args:
            *args: Executable followed by its arguments
            timeout: Seconds before the process is killed (None waits forever)
            working_dir: Working directory for execution
            env_vars: Additional environment variables
        """
        if not args:
            raise ValueError("Command needs at least an executable")
        self.args = [str(a) for a in args]
        self.timeout = timeout
        self.working_dir = working_dir
        self.env_vars = env_vars or {}

    def run(self) -> subprocess.CompletedProcess:
        """Run the process and return it without checking its exit status.

        Raises:
            CommandTimeoutError: If the process outlives its timeout
        """
        env = os.environ.copy()
        env.update(self.env_vars)

        logger.debug("executing %s", " ".join(self.args))
        try:
            return subprocess.run(
                self.args,
                timeout=self.timeout,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                cwd=self.working_dir,
                env=env,
            )
        except subprocess.TimeoutExpired as e:
            raise CommandTimeoutError(
                f"Command timed out after {self.timeout}s: {' '.join(self.args)}"
            ) from e

    def execute(self) -> List[str]:
        """Run the process and return its output lines.

        Returns:
            Combined stdout/stderr split into lines

        Raises:
            CommandFailedError: If the exit status is non-zero
            CommandTimeoutError: If the process outlives its timeout
        """
        completed = self.run()
        output = completed.stdout.splitlines() if completed.stdout else []
        if completed.returncode != 0:
            raise CommandFailedError(self.args, completed.returncode, output)
        return output

    def __str__(self) -> str:
        return " ".join(self.args)
