"""Flowkeeper command-line interface."""

from flowkeeper.cli.main import cli_entrypoint, main

__all__ = ["cli_entrypoint", "main"]
