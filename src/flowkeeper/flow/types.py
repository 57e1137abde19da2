"""Types shared across the flow supervision layer."""

from __future__ import annotations

import signal
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class RootHealth(Enum):
    """Health of a flow root as seen by one supervisor."""

    HEALTHY = "healthy"
    BLACKLISTED = "blacklisted"


class RequestKind(Enum):
    """The request shapes the supervisor knows how to issue."""

    DEFINITION = "definition"
    DIAGNOSTICS = "diagnostics"
    AUTOCOMPLETE = "autocomplete"
    TYPE_AT_POSITION = "type_at_position"


@dataclass(frozen=True, slots=True)
class ExecutionOptions:
    """Where and with which environment to run flow for one root."""

    cwd: Path
    """The flow root; every command for the root runs from here."""

    env: dict[str, str] | None = None
    """Full environment for the child, or None to inherit ours."""

    @property
    def root(self) -> Path:
        return self.cwd


@dataclass(frozen=True, slots=True)
class ProcessResult:
    """Captured outcome of a single flow invocation."""

    args: tuple[str, ...]
    exit_code: int | None
    stdout: str = ""
    stderr: str = ""


@dataclass(frozen=True, slots=True)
class ExitStatus:
    """How a spawned server process ended.

    Mirrors the (code, signal) pair reported by process exit events:
    a process killed by a signal has no exit code.
    """

    code: int | None
    signal: str | None = None

    @classmethod
    def from_returncode(cls, returncode: int) -> ExitStatus:
        """Split an asyncio return code into (code, signal).

        Negative return codes mean the process was terminated by a signal.
        """
        if returncode < 0:
            try:
                name = signal.Signals(-returncode).name
            except ValueError:
                name = f"SIG{-returncode}"
            return cls(code=None, signal=name)
        return cls(code=returncode, signal=None)

    @property
    def signature(self) -> tuple[int | None, str | None]:
        return (self.code, self.signal)

    def __str__(self) -> str:
        return f"code={self.code}, signal={self.signal}"


@dataclass(frozen=True, slots=True)
class Location:
    """A 0-based position in a file."""

    file: str
    line: int
    column: int


@dataclass(frozen=True, slots=True)
class DiagnosticMessage:
    """One message fragment of a flow error."""

    descr: str
    path: str = ""
    line: int = 0
    endline: int = 0
    start: int = 0
    end: int = 0

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> DiagnosticMessage:
        if not isinstance(data, dict):
            raise TypeError(f"diagnostic message must be an object, got {type(data).__name__}")
        return cls(
            descr=str(data.get("descr", "")),
            path=str(data.get("path", "")),
            line=int(data.get("line", 0)),
            endline=int(data.get("endline", 0)),
            start=int(data.get("start", 0)),
            end=int(data.get("end", 0)),
        )


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """A flow error or warning, as reported by `flow status --json`."""

    level: str
    kind: str = ""
    messages: tuple[DiagnosticMessage, ...] = ()
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Diagnostic:
        if not isinstance(data, dict):
            raise TypeError(f"diagnostic must be an object, got {type(data).__name__}")
        return cls(
            level=str(data.get("level", "error")),
            kind=str(data.get("kind", "")),
            messages=tuple(DiagnosticMessage.from_json(m) for m in data.get("message", ())),
            raw=data,
        )

    @property
    def description(self) -> str:
        return " ".join(m.descr for m in self.messages if m.descr)

    @property
    def primary(self) -> DiagnosticMessage | None:
        return self.messages[0] if self.messages else None


@dataclass(frozen=True, slots=True)
class Completion:
    """An autocomplete suggestion ready for the editor."""

    text: str
    right_label: str
    replacement_prefix: str
