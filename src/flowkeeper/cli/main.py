"""Flowkeeper CLI - ask flow about a file from the terminal.

Provides:
- flowkeeper def: Jump-to-definition
- flowkeeper check: Diagnostics for a file
- flowkeeper complete: Autocomplete suggestions
- flowkeeper type: Type at a position

Positions on the command line and in output are 1-based, like editors show
them. Every command tears down the flow servers it started before exiting.
"""

import json
import sys
from dataclasses import asdict
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from flowkeeper.cli.async_runner import async_command
from flowkeeper.flow import FlowService
from flowkeeper.flow.types import Completion, Diagnostic, Location
from flowkeeper.foundation.config import FlowkeeperConfig, load_config
from flowkeeper.foundation.logging import configure_logging

console = Console()

_FILE = click.Path(exists=True, dir_okay=False, path_type=Path)


def cli_entrypoint() -> None:
    """Wrapped entrypoint with global error handling.

    Called from pyproject.toml [project.scripts].
    """
    try:
        # without standalone mode, ctx.exit(code) comes back as the return value
        exit_code = main(standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.Abort:
        console.print("\n[dim]Interrupted[/dim]")
        sys.exit(130)
    except Exception as e:
        from flowkeeper.cli.error_handler import handle_error

        handle_error(e, json_output=False)
    else:
        sys.exit(exit_code or 0)


@click.group()
@click.option("--debug", is_flag=True, help="Log debug output, including flow server output")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Config file (default: .flowkeeper/config.yaml)",
)
@click.option("--log-file", is_flag=True, help="Also write a session log to .flowkeeper/logs/")
@click.pass_context
def main(ctx: click.Context, debug: bool, config_path: Path | None, log_file: bool) -> None:
    """Flowkeeper - flow server supervision for editor features.

    Examples:

        flowkeeper check src/app.js                 # Diagnostics from disk
        flowkeeper type src/app.js 12 7             # Type at line 12, column 7
        cat buf.js | flowkeeper def --stdin src/app.js 3 10
    """
    config = load_config(config_path)
    configure_logging(debug=debug or config.debug, persist=log_file)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


def _config(ctx: click.Context) -> FlowkeeperConfig:
    return ctx.obj["config"]


def _read_buffer(file: Path, from_stdin: bool) -> str:
    if from_stdin:
        return click.get_text_stream("stdin").read()
    return file.read_text(encoding="utf-8")


def _echo_json(data: object) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def _position(line: int, column: int) -> tuple[int, int]:
    if line < 1 or column < 1:
        raise click.BadParameter("line and column are 1-based")
    return line - 1, column - 1


@main.command("def")
@click.argument("file", type=_FILE)
@click.argument("line", type=int)
@click.argument("column", type=int)
@click.option("--stdin", "from_stdin", is_flag=True, help="Read the buffer from stdin")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
@async_command
async def definition(
    ctx: click.Context,
    file: Path,
    line: int,
    column: int,
    from_stdin: bool,
    json_output: bool,
) -> None:
    """Find where the symbol at LINE:COLUMN is defined."""
    row, col = _position(line, column)
    contents = _read_buffer(file, from_stdin)
    async with FlowService(_config(ctx).flow) as flow:
        location = await flow.find_definition(file.resolve(), contents, row, col)

    if json_output:
        _echo_json(_location_json(location))
        return
    if location is None:
        console.print("[dim]No definition found[/dim]")
        ctx.exit(1)
    console.print(f"{location.file}:{location.line + 1}:{location.column + 1}")


def _location_json(location: Location | None) -> dict | None:
    if location is None:
        return None
    return {"file": location.file, "line": location.line + 1, "column": location.column + 1}


@main.command()
@click.argument("file", type=_FILE)
@click.option("--stdin", "from_stdin", is_flag=True, help="Check the buffer on stdin instead of the saved file")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
@async_command
async def check(ctx: click.Context, file: Path, from_stdin: bool, json_output: bool) -> None:
    """Report flow errors for FILE.

    Exits 1 when flow reports any error.
    """
    contents = _read_buffer(file, True) if from_stdin else None
    async with FlowService(_config(ctx).flow) as flow:
        diagnostics = await flow.find_diagnostics(file.resolve(), contents)

    if json_output:
        _echo_json([_diagnostic_json(d) for d in diagnostics])
    else:
        _print_diagnostics(diagnostics)

    if any(d.level == "error" for d in diagnostics):
        ctx.exit(1)


def _diagnostic_json(diagnostic: Diagnostic) -> dict:
    return {
        "level": diagnostic.level,
        "kind": diagnostic.kind,
        "messages": [asdict(m) for m in diagnostic.messages],
    }


def _print_diagnostics(diagnostics: list[Diagnostic]) -> None:
    if not diagnostics:
        console.print("[green]No errors[/green]")
        return

    table = Table(title=f"flow: {len(diagnostics)} problem(s)")
    table.add_column("Level", style="red")
    table.add_column("Location", style="cyan")
    table.add_column("Message", style="white")

    for diagnostic in diagnostics:
        primary = diagnostic.primary
        where = f"{primary.path}:{primary.line}:{primary.start}" if primary else ""
        table.add_row(diagnostic.level, where, diagnostic.description)

    console.print(table)


@main.command()
@click.argument("file", type=_FILE)
@click.argument("line", type=int)
@click.argument("column", type=int)
@click.option("--prefix", default="", help="Text already typed before the cursor")
@click.option("--stdin", "from_stdin", is_flag=True, help="Read the buffer from stdin")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
@async_command
async def complete(
    ctx: click.Context,
    file: Path,
    line: int,
    column: int,
    prefix: str,
    from_stdin: bool,
    json_output: bool,
) -> None:
    """Autocomplete suggestions at LINE:COLUMN."""
    row, col = _position(line, column)
    contents = _read_buffer(file, from_stdin)
    async with FlowService(_config(ctx).flow) as flow:
        completions = await flow.get_autocomplete_suggestions(file.resolve(), contents, row, col, prefix)

    if json_output:
        _echo_json([asdict(c) for c in completions])
        return
    _print_completions(completions)


def _print_completions(completions: list[Completion]) -> None:
    if not completions:
        console.print("[dim]No suggestions[/dim]")
        return

    table = Table()
    table.add_column("Suggestion", style="cyan")
    table.add_column("Type", style="dim")
    for completion in completions:
        table.add_row(completion.text, completion.right_label)
    console.print(table)


@main.command("type")
@click.argument("file", type=_FILE)
@click.argument("line", type=int)
@click.argument("column", type=int)
@click.option("--stdin", "from_stdin", is_flag=True, help="Read the buffer from stdin")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
@async_command
async def type_at_pos(
    ctx: click.Context,
    file: Path,
    line: int,
    column: int,
    from_stdin: bool,
    json_output: bool,
) -> None:
    """Show the type of the expression at LINE:COLUMN."""
    row, col = _position(line, column)
    contents = _read_buffer(file, from_stdin)
    async with FlowService(_config(ctx).flow) as flow:
        type_string = await flow.get_type(file.resolve(), contents, row, col)

    if json_output:
        _echo_json({"type": type_string})
        return
    if type_string is None:
        console.print("[dim]Unknown type[/dim]")
        ctx.exit(1)
    click.echo(type_string)
