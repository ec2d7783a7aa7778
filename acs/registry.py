from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigError


@dataclass(frozen=True)
class AppDefinition:
    name: str
    path: Path  # absolute


class AppRegistry:
    """Enumerates applications from the immediate subdirectories of an apps root.

    The directory basename is the app name and the container name. Hidden
    entries and plain files are ignored.
    """

    def __init__(self, root: str | os.PathLike[str]):
        self.root = Path(root).expanduser().absolute()

    def check(self) -> None:
        if not self.root.exists():
            raise ConfigError(f"Apps root '{self.root}' does not exist.")
        if not self.root.is_dir():
            raise ConfigError(f"Apps root '{self.root}' is not a directory.")

    def list(self) -> list[AppDefinition]:
        self.check()
        try:
            entries = list(self.root.iterdir())
        except OSError as e:
            raise ConfigError(f"Cannot read apps root '{self.root}': {e}") from e

        apps = [
            AppDefinition(name=p.name, path=p)
            for p in entries
            if not p.name.startswith(".") and p.is_dir()
        ]
        return sorted(apps, key=lambda a: a.name)
