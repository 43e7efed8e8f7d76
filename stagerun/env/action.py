"""Actions: the units of user work an environment is prepared for."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePath


@dataclass(slots=True)
class Action:
    """A named piece of work, with optional resources copied next to it."""

    name: str
    resources_directory: Path | None = None
    user_dir: PurePath | None = None
