"""Flowkeeper error types.

Every error flowkeeper raises itself is a FlowkeeperError carrying a
numeric ErrorCode, the context its message is rendered from, and the
exception that caused it. The CLI turns them into a short message plus
"what you can do" hints, or JSON for editor integrations.

Codes are XYYY, X being the category:
    1xxx  flow server (worker) lifecycle
    2xxx  one-shot flow commands
    3xxx  decoding flow output
    5xxx  configuration
    6xxx  flowkeeper runtime state
"""

from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Numeric error codes, grouped by category (see module docstring)."""

    WORKER_NOT_INSTALLED = 1001
    WORKER_UNAVAILABLE = 1002
    WORKER_CRASHED = 1003
    WORKER_SPAWN_FAILED = 1004

    COMMAND_FAILED = 2001
    COMMAND_NOT_LAUNCHED = 2002

    DECODE_FAILED = 3001

    CONFIG_INVALID = 5002

    RUNTIME_STATE_INVALID = 6001

    @property
    def category(self) -> str:
        return _CATEGORIES.get(self.value // 1000, "unknown")

    @property
    def is_recoverable(self) -> bool:
        """False when retrying without user action cannot help."""
        return self not in _NEEDS_USER_ACTION


_CATEGORIES = {1: "worker", 2: "command", 3: "decode", 5: "config", 6: "runtime"}

_NEEDS_USER_ACTION = frozenset({
    ErrorCode.WORKER_NOT_INSTALLED,
    ErrorCode.WORKER_CRASHED,
    ErrorCode.CONFIG_INVALID,
})


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.WORKER_NOT_INSTALLED: "Flow binary '{binary}' not found on PATH.",
    ErrorCode.WORKER_UNAVAILABLE: (
        "No flow server became available for '{root}' after {attempts} attempts."
    ),
    ErrorCode.WORKER_CRASHED: "Flow server for '{root}' exited unexpectedly ({status}).",
    ErrorCode.WORKER_SPAWN_FAILED: "Could not start a flow server for '{root}': {detail}",
    ErrorCode.COMMAND_FAILED: "flow {command} failed with exit code {exit_code}: {detail}",
    ErrorCode.COMMAND_NOT_LAUNCHED: "flow {command} could not be launched: {detail}",
    ErrorCode.DECODE_FAILED: "Could not decode output of flow {command}: {detail}",
    ErrorCode.CONFIG_INVALID: "Invalid configuration for '{key}': {detail}",
    ErrorCode.RUNTIME_STATE_INVALID: "Invalid runtime state: {detail}",
}


RECOVERY_HINTS: dict[ErrorCode, list[str]] = {
    ErrorCode.WORKER_NOT_INSTALLED: [
        "Install flow (e.g., 'npm install -g flow-bin')",
        "Point flow.path_to_flow at the binary in .flowkeeper/config.yaml",
    ],
    ErrorCode.WORKER_UNAVAILABLE: [
        "Start the server manually with 'flow server {root}'",
        "Increase flow.max_attempts or flow.retry_delay_seconds",
    ],
    ErrorCode.WORKER_CRASHED: [
        "Run 'flow check' in {root} to see why the server exits",
        "Restart flowkeeper once the root is fixed",
    ],
    ErrorCode.WORKER_SPAWN_FAILED: [
        "Check that flow.path_to_flow is executable",
    ],
    ErrorCode.CONFIG_INVALID: [
        "Check .flowkeeper/config.yaml for typos",
        "Unset FLOWKEEPER_* environment variables to fall back to defaults",
    ],
}


def _render(template: str, context: dict[str, Any]) -> str:
    # A template whose placeholders are not all in context is shown raw
    try:
        return template.format(**context)
    except KeyError:
        return template


class FlowkeeperError(Exception):
    """Base class of flowkeeper's own errors.

    Example:
        >>> err = FlowkeeperError(ErrorCode.WORKER_NOT_INSTALLED, {"binary": "flow"})
        >>> print(err)
        [FK-1001] Flow binary 'flow' not found on PATH.
    """

    def __init__(
        self,
        code: ErrorCode,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        self.code = code
        self.context = context or {}
        self.cause = cause
        super().__init__(str(self))

    @property
    def message(self) -> str:
        return _render(ERROR_MESSAGES.get(self.code, "An error occurred: {detail}"), self.context)

    @property
    def recovery_hints(self) -> list[str]:
        return [_render(hint, self.context) for hint in RECOVERY_HINTS.get(self.code, ())]

    @property
    def is_recoverable(self) -> bool:
        return self.code.is_recoverable

    @property
    def category(self) -> str:
        return self.code.category

    @property
    def error_id(self) -> str:
        """Stable identifier shown to users, e.g. 'FK-2001'."""
        return f"FK-{self.code.value}"

    def __str__(self) -> str:
        return f"[{self.error_id}] {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, context={self.context!r})"

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready form used by ``--json`` error output."""
        return {
            "error_id": self.error_id,
            "code": self.code.value,
            "category": self.category,
            "message": self.message,
            "recoverable": self.is_recoverable,
            "recovery_hints": self.recovery_hints,
            "context": self.context,
        }


class CommandFailed(FlowkeeperError):
    """A one-shot flow invocation failed.

    Carries the captured output so callers can decide whether the payload is
    still usable (``flow status`` exits non-zero when errors exist).
    ``exit_code`` is None when the binary never ran.
    """

    def __init__(
        self,
        args: tuple[str, ...] | list[str],
        exit_code: int | None,
        stdout: str = "",
        stderr: str = "",
        *,
        code: ErrorCode | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        self.args_ = tuple(args)
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        if code is None:
            code = ErrorCode.COMMAND_FAILED if exit_code is not None else ErrorCode.COMMAND_NOT_LAUNCHED
        base_context = {
            "command": self.args_[0] if self.args_ else "",
            "exit_code": exit_code,
            "detail": stderr.strip() or "no output",
        }
        base_context.update(context or {})
        super().__init__(code=code, context=base_context, cause=cause)

    @property
    def command_args(self) -> tuple[str, ...]:
        return self.args_


class WorkerUnavailable(CommandFailed):
    """Raised when every attempt still found no flow server for the root."""

    def __init__(
        self,
        args: tuple[str, ...] | list[str],
        exit_code: int | None,
        stdout: str = "",
        stderr: str = "",
        *,
        root: str,
        attempts: int,
        cause: Exception | None = None,
    ):
        super().__init__(
            args,
            exit_code,
            stdout,
            stderr,
            code=ErrorCode.WORKER_UNAVAILABLE,
            context={"root": root, "attempts": attempts},
            cause=cause,
        )
        self.root = root
        self.attempts = attempts


def config_error(key: str, detail: str = "") -> FlowkeeperError:
    """Create a CONFIG_INVALID error."""
    return FlowkeeperError(
        code=ErrorCode.CONFIG_INVALID,
        context={"key": key, "detail": detail},
    )
