"""Tracking of the flow server processes a supervisor has started."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(eq=False, slots=True)
class WorkerHandle:
    """A spawned `flow server` process and the task watching it."""

    process: Any
    """asyncio.subprocess.Process (or anything with kill/wait/returncode)."""

    root: Path
    """The flow root the server was started for."""

    monitor: asyncio.Task | None = field(default=None)
    """Task forwarding output and observing the exit."""

    @property
    def pid(self) -> int | None:
        return getattr(self.process, "pid", None)

    @property
    def running(self) -> bool:
        return self.process.returncode is None


class WorkerRegistry:
    """The set of servers we started, so we can kill them on teardown.

    Handles are identified by object identity; a server that exits on its
    own is discarded by its monitor, one that is still tracked at teardown is
    killed exactly once.
    """

    def __init__(self) -> None:
        self._handles: list[WorkerHandle] = []
        self._closed = False

    def __len__(self) -> int:
        return len(self._handles)

    def __iter__(self):
        return iter(list(self._handles))

    @property
    def closed(self) -> bool:
        """True once kill_all() has run."""
        return self._closed

    def register(self, handle: WorkerHandle) -> WorkerHandle:
        """Track handle. A registry that is already torn down kills it instead."""
        if self._closed:
            logger.debug("Registry closed, killing late flow server pid=%s", handle.pid)
            try:
                handle.process.kill()
            except ProcessLookupError:
                pass
            return handle
        if not any(h is handle for h in self._handles):
            self._handles.append(handle)
        return handle

    def discard(self, handle: WorkerHandle) -> None:
        self._handles = [h for h in self._handles if h is not handle]

    def for_root(self, root: Path) -> list[WorkerHandle]:
        return [h for h in self._handles if h.root == Path(root)]

    def has_live_worker(self, root: Path) -> bool:
        return any(h.running for h in self.for_root(root))

    def kill_all(self) -> list[asyncio.Task]:
        """Send SIGKILL to every tracked server and stop tracking them.

        SIGTERM does not reliably stop flow servers.

        Returns:
            The monitor tasks of the killed servers, so callers can await
            their exit.
        """
        handles, self._handles = self._handles, []
        self._closed = True
        monitors = []
        for handle in handles:
            try:
                handle.process.kill()
            except ProcessLookupError:
                pass  # already gone
            logger.debug("Killed flow server pid=%s for %s", handle.pid, handle.root)
            if handle.monitor is not None:
                monitors.append(handle.monitor)
        return monitors
