"""FlowService - the supervisor editor features talk to.

One FlowService owns the root health tracker, the registry of started
servers and the command executor. Construct it once per process and pass it
to whatever needs flow; dispose() (or leaving `async with`) kills every
server it started.

Example:
    async with FlowService() as flow:
        location = await flow.find_definition(path, buffer, line, column)
        diagnostics = await flow.find_diagnostics(path, buffer)
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from flowkeeper.flow.executor import CommandExecutor, Runner, Spawner
from flowkeeper.flow.health import CrashPolicy, RootHealthTracker
from flowkeeper.flow.helpers import RootResolver
from flowkeeper.flow.process import run_process, spawn_process
from flowkeeper.flow.registry import WorkerRegistry
from flowkeeper.flow.requests import (
    AutocompleteRequest,
    DefinitionRequest,
    DiagnosticsRequest,
    FlowRequest,
    TypeAtPositionRequest,
)
from flowkeeper.flow.types import Completion, Diagnostic, Location
from flowkeeper.foundation.config import FlowConfig, get_config
from flowkeeper.foundation.errors import CommandFailed

logger = logging.getLogger(__name__)


class FlowService:
    """Supervises flow servers and answers editor requests.

    Public request methods never raise: every failure degrades to the
    request's empty value and is logged.
    """

    def __init__(
        self,
        config: FlowConfig | None = None,
        *,
        resolver: RootResolver | None = None,
        health: RootHealthTracker | None = None,
        registry: WorkerRegistry | None = None,
        runner: Runner = run_process,
        spawner: Spawner = spawn_process,
    ):
        self.config = config or get_config().flow
        self.resolver = resolver or RootResolver(
            marker=self.config.config_marker,
            path_to_flow=self.config.path_to_flow,
            extra_env=self.config.extra_env,
        )
        self.health = health or RootHealthTracker(CrashPolicy.from_pairs(self.config.crash_signatures))
        self.registry = registry or WorkerRegistry()
        self.executor = CommandExecutor(
            self.resolver,
            self.health,
            self.registry,
            self.config,
            runner=runner,
            spawner=spawner,
        )

    async def __aenter__(self) -> FlowService:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.dispose()

    async def dispose(self) -> None:
        """Kill every flow server this service started and wait for them to exit."""
        monitors = self.registry.kill_all()
        if not monitors:
            return
        results = await asyncio.gather(*monitors, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, asyncio.CancelledError):
                logger.warning("flow server monitor failed during teardown: %s", result)

    async def dispatch(self, request: FlowRequest) -> Any:
        """Run request through build -> execute -> decode."""
        try:
            args = request.build_args()
            stdin = request.build_stdin()
        except ValueError as e:
            logger.error("Could not build flow %s request for %s: %s", request.kind.value, request.file, e)
            return request.empty()

        try:
            result = await self.executor.execute(args, request.file, stdin)
        except CommandFailed as e:
            result = request.recover(e)

        if result is None:
            return request.empty()

        try:
            return request.decode(result)
        except (ValueError, KeyError, TypeError) as e:
            # json.JSONDecodeError is a ValueError
            logger.error("Could not decode flow %s output for %s: %s", request.kind.value, request.file, e)
            return request.empty()

    async def find_definition(
        self,
        file: str | Path,
        contents: str,
        line: int,
        column: int,
    ) -> Location | None:
        return await self.dispatch(DefinitionRequest(str(file), contents, line, column))

    async def find_diagnostics(
        self,
        file: str | Path,
        contents: str | None = None,
    ) -> list[Diagnostic]:
        """Diagnostics for file.

        A None contents means the file has not changed since it was saved,
        so flow can check it on disk without piping the buffer.
        """
        return await self.dispatch(DiagnosticsRequest(str(file), contents))

    async def get_autocomplete_suggestions(
        self,
        file: str | Path,
        contents: str,
        line: int,
        column: int,
        prefix: str,
    ) -> list[Completion]:
        return await self.dispatch(
            AutocompleteRequest(
                str(file),
                contents,
                line,
                column,
                prefix,
                token=self.config.autocomplete_token,
            )
        )

    async def get_type(
        self,
        file: str | Path,
        contents: str,
        line: int,
        column: int,
    ) -> str | None:
        return await self.dispatch(TypeAtPositionRequest(str(file), contents, line, column))
