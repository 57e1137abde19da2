"""CLI Error Handler.

Renders FlowkeeperError for humans (rich, stderr) or as JSON for editor
integrations that parse stderr.
"""

import json
import sys
from typing import NoReturn

from rich.console import Console
from rich.text import Text

from flowkeeper.foundation.errors import ErrorCode, FlowkeeperError


def _as_flowkeeper_error(error: FlowkeeperError | Exception) -> FlowkeeperError:
    if isinstance(error, FlowkeeperError):
        return error
    return FlowkeeperError(
        code=ErrorCode.RUNTIME_STATE_INVALID,
        context={"detail": str(error)},
        cause=error,
    )


def handle_error(
    error: FlowkeeperError | Exception,
    json_output: bool = False,
) -> NoReturn:
    """Report an error and exit.

    Args:
        error: The error to handle (FlowkeeperError or generic Exception)
        json_output: If True, write JSON to stderr for programmatic use

    Raises:
        SystemExit: Always exits with code 1
    """
    error = _as_flowkeeper_error(error)

    if json_output:
        print(format_error_for_json(error), file=sys.stderr)
        sys.exit(1)

    _print_human_error(error)
    sys.exit(1)


def _print_human_error(error: FlowkeeperError) -> None:
    console = Console(stderr=True)

    header = Text()
    header.append(f"{error.error_id}", style="bold red")
    header.append(f" {error.message}")
    console.print(header)

    if error.recovery_hints:
        console.print("\n[bold]What you can do:[/]")
        for i, hint in enumerate(error.recovery_hints, 1):
            console.print(f"  {i}. {hint}")


def format_error_for_json(error: FlowkeeperError | Exception) -> str:
    """Format an error as a JSON string."""
    error = _as_flowkeeper_error(error)
    error_dict = error.to_dict()
    if error.cause:
        error_dict["cause"] = str(error.cause)
    return json.dumps(error_dict, default=str)
