"""Request kinds issued to flow.

Each request knows how to build its command line and stdin, how to decode a
successful result, what "no result" looks like, and whether a failed command
still carries a usable payload. FlowService.dispatch runs all of them through
the same build -> execute -> decode pipeline.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar

from flowkeeper.flow.helpers import AUTOCOMPLETE_TOKEN, insert_autocomplete_token
from flowkeeper.flow.types import (
    Completion,
    Diagnostic,
    Location,
    ProcessResult,
    RequestKind,
)
from flowkeeper.foundation.errors import CommandFailed

logger = logging.getLogger(__name__)

_WHITESPACE_ONLY = re.compile(r"\s*")
# flow sometimes reports a failed type-at-pos as "Failure" at the start of
# the second line instead of exiting non-zero
_TYPE_FAILURE = re.compile(r"\nFailure")
_UNKNOWN_TYPE = "(unknown)"


@dataclass(frozen=True, slots=True)
class FlowRequest(ABC):
    """Base class for the request kinds."""

    kind: ClassVar[RequestKind]

    file: str

    @abstractmethod
    def build_args(self) -> list[str]:
        """Command-line arguments for flow, without the no-auto-start flag."""
        ...

    def build_stdin(self) -> str | None:
        """Text piped to flow, or None to run against the file on disk."""
        return None

    @abstractmethod
    def decode(self, result: ProcessResult) -> Any:
        """Turn a successful result into the typed response."""
        ...

    def empty(self) -> Any:
        """The "no result" value for this kind."""
        return None

    def recover(self, error: CommandFailed) -> ProcessResult | None:
        """Turn a failed command into a usable result, if it carries one."""
        logger.error("flow %s failed for %s: %s", self.kind.value, self.file, error.stderr.strip() or error)
        return None


@dataclass(frozen=True, slots=True)
class DefinitionRequest(FlowRequest):
    """Jump-to-definition at a 0-based position.

    The live buffer goes to flow on stdin so get-def works on unsaved
    contents rather than what is on disk.
    """

    kind: ClassVar[RequestKind] = RequestKind.DEFINITION

    contents: str
    line: int
    column: int

    def build_args(self) -> list[str]:
        """Command-line arguments for flow, without the no-auto-start flag."""
        return ["get-def", "--json", "--path", self.file, str(self.line), str(self.column)]

    def build_stdin(self) -> str | None:
        return self.contents

    def decode(self, result: ProcessResult) -> Location | None:
        if result.exit_code != 0:
            logger.error("flow get-def exited %s: %s", result.exit_code, result.stderr)
            return None
        data = json.loads(result.stdout)
        if not isinstance(data, dict) or not data.get("path"):
            return None
        # flow positions are 1-based
        return Location(
            file=data["path"],
            line=int(data["line"]) - 1,
            column=int(data["start"]) - 1,
        )


@dataclass(frozen=True, slots=True)
class DiagnosticsRequest(FlowRequest):
    """Errors for a file.

    With contents, checks the live buffer (`flow check-contents`, which
    reports errors for the whole project). Without, `flow status` is used,
    which may be stale relative to an unsaved buffer.
    """

    kind: ClassVar[RequestKind] = RequestKind.DIAGNOSTICS

    contents: str | None = None

    def build_args(self) -> list[str]:
        """Command-line arguments for flow, without the no-auto-start flag."""
        if self.contents:
            return ["check-contents", "--json", self.file]
        return ["status", "--json", self.file]

    def build_stdin(self) -> str | None:
        return self.contents or None

    def decode(self, result: ProcessResult) -> list[Diagnostic]:
        data = json.loads(result.stdout)
        errors = data.get("errors") if isinstance(data, dict) else None
        if not isinstance(errors, list):
            raise ValueError("flow output has no 'errors' list")
        return [Diagnostic.from_json(error) for error in errors]

    def empty(self) -> list[Diagnostic]:
        return []

    def recover(self, error: CommandFailed) -> ProcessResult | None:
        # flow exits non-zero when it finds type errors, so the payload is the
        # answer. Without an exit code the command never ran.
        if error.exit_code is not None:
            return ProcessResult(
                args=error.command_args,
                exit_code=error.exit_code,
                stdout=error.stdout,
                stderr=error.stderr,
            )
        logger.error("flow diagnostics failed for %s: %s", self.file, error)
        return None


@dataclass(frozen=True, slots=True)
class AutocompleteRequest(FlowRequest):
    """Completions at a 0-based cursor position."""

    kind: ClassVar[RequestKind] = RequestKind.AUTOCOMPLETE

    contents: str
    line: int
    column: int
    prefix: str = ""
    token: str = AUTOCOMPLETE_TOKEN

    def build_args(self) -> list[str]:
        """Command-line arguments for flow, without the no-auto-start flag."""
        return ["autocomplete", "--json", self.file]

    def build_stdin(self) -> str | None:
        return insert_autocomplete_token(self.contents, self.line, self.column, self.token)

    @property
    def replacement_prefix(self) -> str:
        return "" if _WHITESPACE_ONLY.fullmatch(self.prefix) else self.prefix

    def decode(self, result: ProcessResult) -> list[Completion]:
        if result.exit_code != 0:
            return []
        items = json.loads(result.stdout)
        if not isinstance(items, list):
            raise ValueError("flow autocomplete output is not a list")
        replacement_prefix = self.replacement_prefix
        return [
            Completion(
                text=item["name"],
                right_label=item.get("type", ""),
                replacement_prefix=replacement_prefix,
            )
            for item in items
        ]

    def empty(self) -> list[Completion]:
        return []

    def recover(self, error: CommandFailed) -> ProcessResult | None:
        logger.debug("flow autocomplete failed for %s: %s", self.file, error)
        return None


@dataclass(frozen=True, slots=True)
class TypeAtPositionRequest(FlowRequest):
    """The type of the expression at a 0-based position."""

    kind: ClassVar[RequestKind] = RequestKind.TYPE_AT_POSITION

    contents: str
    line: int
    column: int

    def build_args(self) -> list[str]:
        """Command-line arguments for flow, without the no-auto-start flag."""
        return ["type-at-pos", str(self.line + 1), str(self.column + 1)]

    def build_stdin(self) -> str | None:
        return self.contents

    def decode(self, result: ProcessResult) -> str | None:
        output = result.stdout
        if _TYPE_FAILURE.search(output):
            return None
        type_string = output.split("\n")[0]
        if type_string in (_UNKNOWN_TYPE, ""):
            return None
        return type_string

    def recover(self, error: CommandFailed) -> ProcessResult | None:
        logger.error(
            "flow type-at-pos failed: %s:%d:%d %s",
            self.file,
            self.line + 1,
            self.column + 1,
            error,
        )
        return None
