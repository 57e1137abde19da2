"""Pytest fixtures for Flowkeeper tests.

No real flow binary is needed: FakeFlow stands in for both the one-shot
command runner and the server spawner.
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import pytest

from flowkeeper.flow import FlowService
from flowkeeper.flow.process import ProcessError
from flowkeeper.flow.types import ExecutionOptions, ProcessResult
from flowkeeper.foundation.config import FlowConfig

NO_SERVER = "There is no flow server running in '/project'.\n"


class FakeProcess:
    """Just enough of asyncio.subprocess.Process for a spawned server.

    Must be created inside a running event loop.
    """

    def __init__(self, pid: int):
        self.pid = pid
        self.returncode: int | None = None
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        self.kill_calls = 0
        self._exited = asyncio.Event()

    def exit(self, returncode: int) -> None:
        if self.returncode is not None:
            return
        self.returncode = returncode
        self.stdout.feed_eof()
        self.stderr.feed_eof()
        self._exited.set()

    def kill(self) -> None:
        self.kill_calls += 1
        self.exit(-int(signal.SIGKILL))

    async def wait(self) -> int:
        await self._exited.wait()
        return self.returncode


@dataclass(frozen=True)
class Call:
    binary: str
    args: tuple[str, ...]
    options: ExecutionOptions
    stdin: str | None = None


class FakeFlow:
    """Scripted flow binary.

    Until `ready_after_spawns` servers have been spawned, every command fails
    with the "no server running" message. After that it returns `stdout`, or
    raises `error` if one is set. ready_after_spawns=None means the server
    never comes up.
    """

    def __init__(
        self,
        *,
        stdout: str = "",
        ready_after_spawns: int | None = 0,
        error: ProcessError | None = None,
    ):
        self.stdout = stdout
        self.ready_after_spawns = ready_after_spawns
        self.error = error
        self.run_calls: list[Call] = []
        self.spawn_calls: list[Call] = []
        self.processes: list[FakeProcess] = []
        self.on_spawn: Callable[[FakeProcess, ExecutionOptions], None] | None = None

    @property
    def ready(self) -> bool:
        return self.ready_after_spawns is not None and len(self.spawn_calls) >= self.ready_after_spawns

    async def run(self, binary, args, options, stdin=None) -> ProcessResult:
        self.run_calls.append(Call(binary, tuple(args), options, stdin))
        ready = self.ready
        # readiness is decided at launch, like a real command racing a spawn
        await asyncio.sleep(0)
        if not ready:
            raise ProcessError(args, 6, "", NO_SERVER)
        if self.error is not None:
            raise self.error
        return ProcessResult(args=tuple(args), exit_code=0, stdout=self.stdout, stderr="")

    async def spawn(self, binary, args, options) -> FakeProcess:
        self.spawn_calls.append(Call(binary, tuple(args), options))
        process = FakeProcess(pid=4000 + len(self.processes))
        self.processes.append(process)
        if self.on_spawn is not None:
            self.on_spawn(process, options)
        return process


@dataclass
class FlowProject:
    root: Path
    file: Path
    binary: Path

    def config(self, **overrides) -> FlowConfig:
        return FlowConfig(path_to_flow=str(self.binary), **overrides)


def _make_project(base: Path, name: str, binary: Path) -> FlowProject:
    root = base / name
    (root / "src").mkdir(parents=True)
    (root / ".flowconfig").write_text("[ignore]\n")
    file = root / "src" / "app.js"
    file.write_text("// @flow\nconst answer: number = 42;\nanswer.\n")
    return FlowProject(root=root, file=file, binary=binary)


@pytest.fixture
def flow_binary(tmp_path: Path) -> Path:
    """An executable file standing in for the flow binary on disk."""
    bin_dir = tmp_path.resolve() / "bin"
    bin_dir.mkdir()
    binary = bin_dir / "flow"
    binary.write_text("#!/bin/sh\nexit 0\n")
    binary.chmod(0o755)
    return binary


@pytest.fixture
def project(tmp_path: Path, flow_binary: Path) -> FlowProject:
    """A flow project with a .flowconfig and one source file."""
    return _make_project(tmp_path.resolve(), "project", flow_binary)


@pytest.fixture
def other_project(tmp_path: Path, flow_binary: Path) -> FlowProject:
    """A second, independent flow root."""
    return _make_project(tmp_path.resolve(), "other", flow_binary)


@pytest.fixture
def fake_flow() -> FakeFlow:
    return FakeFlow()


@pytest.fixture
def make_service(project: FlowProject):
    """Build a FlowService wired to a FakeFlow."""

    def _make(fake: FakeFlow, **overrides) -> FlowService:
        return FlowService(project.config(**overrides), runner=fake.run, spawner=fake.spawn)

    return _make


@pytest.fixture
def make_fake_flow():
    """Build a FakeFlow with non-default scripting."""

    def _make(**kwargs) -> FakeFlow:
        return FakeFlow(**kwargs)

    return _make
