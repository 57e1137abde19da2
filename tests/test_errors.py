"""Tests for the structured error types."""

from __future__ import annotations

import json

import pytest

from flowkeeper.cli.error_handler import format_error_for_json, handle_error
from flowkeeper.foundation.errors import (
    CommandFailed,
    ErrorCode,
    FlowkeeperError,
    WorkerUnavailable,
    config_error,
)


class TestErrorCode:
    def test_categories(self):
        assert ErrorCode.WORKER_UNAVAILABLE.category == "worker"
        assert ErrorCode.COMMAND_FAILED.category == "command"
        assert ErrorCode.DECODE_FAILED.category == "decode"
        assert ErrorCode.CONFIG_INVALID.category == "config"

    def test_recoverable(self):
        assert ErrorCode.WORKER_UNAVAILABLE.is_recoverable
        assert not ErrorCode.WORKER_CRASHED.is_recoverable


class TestFlowkeeperError:
    def test_message_and_id(self):
        error = FlowkeeperError(ErrorCode.WORKER_NOT_INSTALLED, {"binary": "flow"})

        assert str(error) == "[FK-1001] Flow binary 'flow' not found on PATH."
        assert error.error_id == "FK-1001"

    def test_missing_context_keeps_template(self):
        error = FlowkeeperError(ErrorCode.WORKER_NOT_INSTALLED)

        assert "{binary}" in error.message

    def test_to_dict(self):
        data = config_error("flow.max_attempts", "must be a positive integer").to_dict()

        assert data["code"] == 5002
        assert data["category"] == "config"
        assert data["recoverable"] is False
        assert "flow.max_attempts" in data["message"]
        assert data["recovery_hints"]


class TestCommandFailed:
    def test_fields(self):
        error = CommandFailed(["status", "--json"], 2, '{"errors": []}', "Found 1 error\n")

        assert error.command_args == ("status", "--json")
        assert error.exit_code == 2
        assert error.stdout == '{"errors": []}'
        assert error.code == ErrorCode.COMMAND_FAILED
        assert "flow status failed with exit code 2: Found 1 error" in str(error)

    def test_not_launched(self):
        error = CommandFailed(["status"], None, stderr="No such file or directory")

        assert error.code == ErrorCode.COMMAND_NOT_LAUNCHED

    def test_worker_unavailable(self):
        error = WorkerUnavailable(["status"], 6, "", "no server", root="/p", attempts=5)

        assert isinstance(error, CommandFailed)
        assert error.code == ErrorCode.WORKER_UNAVAILABLE
        assert error.message == "No flow server became available for '/p' after 5 attempts."
        assert error.recovery_hints[0] == "Start the server manually with 'flow server /p'"
        assert error.exit_code == 6


class TestErrorHandler:
    def test_json_format(self):
        cause = OSError("boom")
        error = CommandFailed(["status"], None, stderr="boom", cause=cause)

        data = json.loads(format_error_for_json(error))

        assert data["error_id"] == "FK-2002"
        assert data["cause"] == "boom"

    def test_generic_exception_wrapped(self):
        data = json.loads(format_error_for_json(RuntimeError("bad state")))

        assert data["code"] == ErrorCode.RUNTIME_STATE_INVALID.value
        assert "bad state" in data["message"]

    def test_handle_error_exits(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            handle_error(config_error("flow", "unknown keys: nope"), json_output=True)

        assert exc_info.value.code == 1
        assert json.loads(capsys.readouterr().err)["code"] == 5002

    def test_handle_error_human(self, capsys):
        with pytest.raises(SystemExit):
            handle_error(WorkerUnavailable(["status"], 6, root="/p", attempts=5))

        err = capsys.readouterr().err
        assert "FK-1002" in err
        assert "What you can do" in err
