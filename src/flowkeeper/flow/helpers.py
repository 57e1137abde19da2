"""Root discovery and small helpers for invoking flow.

RootResolver answers "is it safe to run flow for this file, and from where?"
without touching any supervisor state.
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path

from flowkeeper.flow.types import ExecutionOptions

AUTOCOMPLETE_TOKEN = "AUTO332"


def find_nearest_file(name: str, start_dir: str | Path) -> Path | None:
    """Walk upward from start_dir looking for a file called name.

    Returns:
        The directory that contains the file, or None.
    """
    current = Path(start_dir).resolve()
    for directory in (current, *current.parents):
        if (directory / name).is_file():
            return directory
    return None


def find_config_root(file: str | Path, marker: str = ".flowconfig") -> Path | None:
    """Find the flow root that owns file."""
    return find_nearest_file(marker, Path(file).parent)


def locate_worker_binary(path_to_flow: str = "flow") -> str | None:
    """Resolve the flow binary, or None if it is not installed."""
    return shutil.which(path_to_flow)


def build_execution_options(
    root: Path,
    extra_env: dict[str, str] | None = None,
) -> ExecutionOptions:
    """Options for running flow from root."""
    env = {**os.environ, **extra_env} if extra_env else None
    return ExecutionOptions(cwd=root, env=env)


def insert_autocomplete_token(
    contents: str,
    line: int,
    column: int,
    token: str = AUTOCOMPLETE_TOKEN,
) -> str:
    """Mark the cursor position (0-based) in contents for `flow autocomplete`.

    Raises:
        ValueError: If the position lies outside contents.
    """
    lines = contents.split("\n")
    if not 0 <= line < len(lines):
        raise ValueError(f"line {line} outside buffer of {len(lines)} lines")
    text = lines[line]
    if not 0 <= column <= len(text):
        raise ValueError(f"column {column} outside line {line} of length {len(text)}")
    lines[line] = text[:column] + token + text[column:]
    return "\n".join(lines)


class RootResolver:
    """Map a source file to the options flow should run with.

    Example:
        resolver = RootResolver(marker=".flowconfig", path_to_flow="flow")
        options = resolver.resolve("/src/app/index.js")
        if options is None:
            ...  # not a flow project, or flow is not installed
    """

    def __init__(
        self,
        marker: str = ".flowconfig",
        path_to_flow: str = "flow",
        extra_env: dict[str, str] | None = None,
    ):
        self.marker = marker
        self.path_to_flow = path_to_flow
        self.extra_env = dict(extra_env or {})

    @property
    def binary(self) -> str | None:
        """The flow executable, or None if it cannot be found."""
        return locate_worker_binary(self.path_to_flow)

    def find_root(self, file: str | Path) -> Path | None:
        return find_config_root(file, self.marker)

    def resolve(self, file: str | Path) -> ExecutionOptions | None:
        """Options for running flow against file, or None if unsafe to run.

        Unsafe means no config marker above the file or no flow binary.
        """
        root = self.find_root(file)
        if root is None or self.binary is None:
            return None
        return build_execution_options(root, self.extra_env)
