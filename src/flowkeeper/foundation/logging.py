"""Logging setup for the flowkeeper CLI.

Library code only ever calls ``logging.getLogger(__name__)``; handlers are
installed here, once, by the CLI entrypoint.

Level resolution, first match wins:
    1. ``level`` argument
    2. FLOWKEEPER_LOG_LEVEL (DEBUG, INFO, ... or a number)
    3. FLOWKEEPER_DEBUG=true|1|yes
    4. ``debug=True`` (--debug flag or ``debug: true`` in config)
    5. WARNING

At DEBUG the output of every flow server we start is visible too: the
executor forwards it on ``flowkeeper.flow.executor`` as ``flow server: ...``.

With ``persist=True`` a full DEBUG transcript of the session is written to
``.flowkeeper/logs/session_<timestamp>.log``; only the newest sessions are kept.
"""

import logging
import os
import sys
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path

VERBOSE_FORMAT = "%(asctime)s %(name)s [%(levelname)s] %(message)s"
QUIET_FORMAT = "%(name)s: %(message)s"

KEEP_SESSIONS = 10

_TRUTHY = frozenset({"true", "1", "yes"})
_QUIETED = ("asyncio",)


def resolve_level(
    *,
    debug: bool = False,
    level: int | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> int:
    """Work out the console log level from arguments and environment."""
    environ = os.environ if environ is None else environ
    if level is not None:
        return _parse_level(level)
    if env_level := environ.get("FLOWKEEPER_LOG_LEVEL"):
        return _parse_level(env_level)
    if environ.get("FLOWKEEPER_DEBUG", "").lower() in _TRUTHY or debug:
        return logging.DEBUG
    return logging.WARNING


def _parse_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    named = logging.getLevelName(level.upper())
    if isinstance(named, int):
        return named
    try:
        return int(level)
    except ValueError:
        return logging.WARNING


def _session_dir(log_root: Path | None) -> Path:
    directory = (log_root or Path.cwd()) / ".flowkeeper" / "logs"
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def _prune_sessions(directory: Path, keep: int = KEEP_SESSIONS) -> None:
    """Delete all but the newest `keep` session logs in directory."""
    if not directory.is_dir():
        return
    sessions = sorted(directory.glob("session_*.log"), key=lambda p: p.stat().st_mtime)
    for stale in sessions[: max(len(sessions) - keep, 0)]:
        try:
            stale.unlink()
        except FileNotFoundError:
            pass  # a concurrent session pruned it first


def _session_handler(log_root: Path | None) -> logging.Handler:
    directory = _session_dir(log_root)
    _prune_sessions(directory)
    stamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    handler = logging.FileHandler(directory / f"session_{stamp}.log", mode="w", encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(VERBOSE_FORMAT))
    return handler


def configure_logging(
    *,
    debug: bool = False,
    level: int | str | None = None,
    stream: object = None,
    persist: bool = False,
    log_root: Path | None = None,
) -> None:
    """Install console (and optionally session-file) handlers on the root logger.

    Args:
        debug: DEBUG level with timestamps
        level: Explicit level, overriding environment and ``debug``
        stream: Console stream (default: stderr)
        persist: Also write a DEBUG transcript under .flowkeeper/logs/
        log_root: Directory that holds .flowkeeper/ (default: cwd)
    """
    console_level = resolve_level(debug=debug, level=level)

    console = logging.StreamHandler(stream or sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(
        logging.Formatter(VERBOSE_FORMAT if console_level <= logging.DEBUG else QUIET_FORMAT)
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    # the session file wants every record even when the console is quiet
    root.setLevel(logging.DEBUG if persist else console_level)

    if persist:
        try:
            root.addHandler(_session_handler(log_root))
        except OSError as e:
            sys.stderr.write(f"Warning: session log disabled: {e}\n")

    for name in _QUIETED:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        "Logging configured: level=%s persist=%s",
        logging.getLevelName(console_level),
        persist,
    )
