"""Retry/spawn engine for one-shot flow commands.

Runs `flow <command> --no-auto-start` for a file's root. When flow reports
that no server is running, starts `flow server <root>` in the background and
retries, up to a bounded number of attempts shared across the whole call.

Example:
    executor = CommandExecutor(resolver, health, registry, config)
    result = await executor.execute(["status", "--json", path], path)
    if result is None:
        ...  # unsafe to run flow here, or the root is blacklisted
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path
from typing import Any

from flowkeeper.flow.health import RootHealthTracker
from flowkeeper.flow.helpers import RootResolver
from flowkeeper.flow.process import ProcessError, run_process, spawn_process
from flowkeeper.flow.registry import WorkerHandle, WorkerRegistry
from flowkeeper.flow.types import ExecutionOptions, ExitStatus, ProcessResult
from flowkeeper.foundation.config import FlowConfig
from flowkeeper.foundation.errors import CommandFailed, ErrorCode, WorkerUnavailable

logger = logging.getLogger(__name__)

Runner = Callable[[str, Sequence[str], ExecutionOptions, str | None], Awaitable[ProcessResult]]
Spawner = Callable[[str, Sequence[str], ExecutionOptions], Awaitable[Any]]

_CHUNK_SIZE = 4096


class CommandExecutor:
    """Executes flow commands, starting servers on demand.

    Owns no state of its own beyond per-root spawn locks: health and the set
    of started servers live in the tracker and registry it is given.
    """

    def __init__(
        self,
        resolver: RootResolver,
        health: RootHealthTracker,
        registry: WorkerRegistry,
        config: FlowConfig | None = None,
        *,
        runner: Runner = run_process,
        spawner: Spawner = spawn_process,
    ):
        self.resolver = resolver
        self.health = health
        self.registry = registry
        self.config = config or FlowConfig()
        self._runner = runner
        self._spawner = spawner
        self._no_server = re.compile(self.config.no_server_pattern)
        self._spawn_locks: dict[Path, asyncio.Lock] = {}

    def prepare(self, file: str | Path) -> ExecutionOptions | None:
        """Resolve options for file, or None if flow must not run for it."""
        options = self.resolver.resolve(file)
        if options is None:
            logger.debug("Not running flow for %s: no %s root or no flow binary", file, self.resolver.marker)
            return None
        if self.health.is_blacklisted(options.root):
            logger.debug("Not running flow for %s: root %s is blacklisted", file, options.root)
            return None
        return options

    def is_no_server_error(self, error: ProcessError) -> bool:
        return bool(error.stderr and self._no_server.search(error.stderr))

    async def execute(
        self,
        args: Sequence[str],
        file: str | Path,
        stdin: str | None = None,
    ) -> ProcessResult | None:
        """Run flow with args for file's root.

        Returns:
            The result of a zero exit, or None when it is unsafe to run flow
            (no root, no binary, blacklisted root, supervisor disposed).

        Raises:
            CommandFailed: flow failed for any reason other than a missing
                server; carries exit code and output.
            WorkerUnavailable: every attempt still found no server.
        """
        if self.registry.closed:
            logger.debug("Not running flow for %s: supervisor disposed", file)
            return None
        options = self.prepare(file)
        if options is None:
            return None
        binary = self.resolver.binary
        if binary is None:
            return None

        root = options.root
        command = [*args, self.config.no_auto_start_flag]
        max_attempts = self.config.max_attempts

        for attempt in range(1, max_attempts + 1):
            try:
                return await self._runner(binary, command, options, stdin)
            except ProcessError as e:
                if not self.is_no_server_error(e):
                    # not sure what happened, let the caller deal with it
                    raise CommandFailed(command, e.exit_code, e.stdout, e.stderr, cause=e) from e
                if attempt >= max_attempts:
                    raise WorkerUnavailable(
                        command,
                        e.exit_code,
                        e.stdout,
                        e.stderr,
                        root=str(root),
                        attempts=attempt,
                        cause=e,
                    ) from e
                logger.debug(
                    "No flow server running for %s (attempt %d/%d)", root, attempt, max_attempts
                )

            # The server may have crashed while we were retrying
            if self.health.is_blacklisted(root) or self.registry.closed:
                return None
            await self._ensure_worker(binary, options)
            if self.config.retry_delay_seconds:
                await asyncio.sleep(self.config.retry_delay_seconds)

        return None

    async def _ensure_worker(self, binary: str, options: ExecutionOptions) -> None:
        root = options.root
        if not self.config.dedupe_spawns:
            await self._spawn(binary, options)
            return

        lock = self._spawn_locks.setdefault(root, asyncio.Lock())
        async with lock:
            if self.registry.has_live_worker(root):
                logger.debug("flow server for %s already started, not spawning another", root)
                return
            if self.health.is_blacklisted(root):
                return
            await self._spawn(binary, options)

    async def _spawn(self, binary: str, options: ExecutionOptions) -> WorkerHandle:
        root = options.root
        args = ["server", str(root)]
        try:
            process = await self._spawner(binary, args, options)
        except OSError as e:
            raise CommandFailed(
                args,
                None,
                stderr=str(e),
                code=ErrorCode.WORKER_SPAWN_FAILED,
                context={"root": str(root)},
                cause=e,
            ) from e

        handle = self.registry.register(WorkerHandle(process=process, root=root))
        if self.registry.closed:
            # register() already killed it; nobody is left to await a monitor
            return handle
        handle.monitor = asyncio.create_task(self._watch(handle))
        logger.info("Started flow server pid=%s for %s", handle.pid, root)
        return handle

    async def _forward(self, stream: asyncio.StreamReader | None) -> None:
        if stream is None:
            return
        while chunk := await stream.read(_CHUNK_SIZE):
            logger.debug("flow server: %s", chunk.decode("utf-8", errors="replace").rstrip())

    async def _watch(self, handle: WorkerHandle) -> ExitStatus:
        process = handle.process
        try:
            await asyncio.gather(self._forward(process.stdout), self._forward(process.stderr))
        except (OSError, ValueError) as e:
            logger.warning("Lost output of flow server for %s: %s", handle.root, e)
        returncode = await process.wait()
        self.registry.discard(handle)
        status = ExitStatus.from_returncode(returncode)
        self.health.observe_exit(handle.root, status)
        return status
