"""Running flowkeeper's async commands from click.

Click calls commands synchronously; every flowkeeper command is a coroutine
that opens a FlowService, so each one goes through run_async.
"""

import asyncio
import functools
from collections.abc import Callable, Coroutine
from typing import Any, ParamSpec, TypeVar

import nest_asyncio

T = TypeVar("T")
P = ParamSpec("P")


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run coro to completion and return its result.

    From a plain CLI invocation this is asyncio.run(). When a loop is already
    running (a notebook, or click invoked from async code) the loop is patched
    with nest_asyncio so the command can still block on it.
    """
    loop = _running_loop()
    if loop is None:
        return asyncio.run(coro)
    nest_asyncio.apply(loop)
    return loop.run_until_complete(coro)


def async_command(f: Callable[P, Coroutine[Any, Any, T]]) -> Callable[P, T]:
    """Let an ``async def`` serve as a click command callback.

    Usage:
        @main.command()
        @click.pass_context
        @async_command
        async def check(ctx: click.Context, file: Path) -> None:
            async with FlowService(_config(ctx).flow) as flow:
                ...
    """

    @functools.wraps(f)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        return run_async(f(*args, **kwargs))

    return wrapper
