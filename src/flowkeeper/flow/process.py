"""Async wrappers for running and spawning flow processes."""

from __future__ import annotations

import asyncio
import subprocess
from collections.abc import Sequence

from flowkeeper.flow.types import ExecutionOptions, ProcessResult


class ProcessError(Exception):
    """A process exited non-zero, or could not be started.

    exit_code is None when the process never ran.
    """

    def __init__(
        self,
        args: Sequence[str],
        exit_code: int | None,
        stdout: str = "",
        stderr: str = "",
    ):
        self.command = tuple(args)
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(f"{' '.join(self.command)} exited with {exit_code}: {stderr.strip()}")

    def to_result(self) -> ProcessResult:
        return ProcessResult(
            args=self.command,
            exit_code=self.exit_code,
            stdout=self.stdout,
            stderr=self.stderr,
        )


async def run_process(
    binary: str,
    args: Sequence[str],
    options: ExecutionOptions,
    stdin: str | None = None,
) -> ProcessResult:
    """Run binary to completion and capture its output.

    Args:
        binary: Executable path
        args: Command arguments
        options: Working directory and environment
        stdin: Text piped to the process, if any

    Returns:
        The captured result of a zero exit

    Raises:
        ProcessError: On non-zero exit or when the process cannot be started
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            binary,
            *args,
            stdin=subprocess.PIPE if stdin is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=options.cwd,
            env=options.env,
        )
    except OSError as e:
        raise ProcessError(args, None, "", str(e)) from e

    stdout, stderr = await proc.communicate(stdin.encode() if stdin is not None else None)
    result = ProcessResult(
        args=tuple(args),
        exit_code=proc.returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
    if proc.returncode != 0:
        raise ProcessError(args, proc.returncode, result.stdout, result.stderr)
    return result


async def spawn_process(
    binary: str,
    args: Sequence[str],
    options: ExecutionOptions,
) -> asyncio.subprocess.Process:
    """Start binary in the background and return without waiting for it.

    `flow server` runs in the foreground of its own process until killed,
    so the caller owns the returned process.
    """
    return await asyncio.create_subprocess_exec(
        binary,
        *args,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        cwd=options.cwd,
        env=options.env,
    )
