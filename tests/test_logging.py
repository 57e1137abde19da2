"""Tests for logging configuration."""

from __future__ import annotations

import io
import logging
import os

import pytest

from flowkeeper.foundation.logging import _parse_level, _prune_sessions, configure_logging, resolve_level


@pytest.fixture(autouse=True)
def restore_root_logger(monkeypatch):
    monkeypatch.delenv("FLOWKEEPER_LOG_LEVEL", raising=False)
    monkeypatch.delenv("FLOWKEEPER_DEBUG", raising=False)
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestConfigureLogging:
    def test_quiet_by_default(self):
        stream = io.StringIO()
        configure_logging(stream=stream)

        logging.getLogger("flowkeeper.test").info("hidden")
        logging.getLogger("flowkeeper.test").warning("shown")

        assert "hidden" not in stream.getvalue()
        assert "flowkeeper.test: shown" in stream.getvalue()

    def test_debug_flag(self):
        stream = io.StringIO()
        configure_logging(debug=True, stream=stream)

        logging.getLogger("flowkeeper.flow.executor").debug("flow server: ready")

        assert "[DEBUG] flow server: ready" in stream.getvalue()

    def test_env_level_beats_flag(self, monkeypatch):
        monkeypatch.setenv("FLOWKEEPER_LOG_LEVEL", "ERROR")
        stream = io.StringIO()
        configure_logging(debug=True, stream=stream)

        logging.getLogger("flowkeeper.test").warning("hidden")

        assert stream.getvalue() == ""

    def test_env_debug(self, monkeypatch):
        monkeypatch.setenv("FLOWKEEPER_DEBUG", "1")
        configure_logging(stream=io.StringIO())

        assert logging.getLogger().level == logging.DEBUG

    def test_persist_writes_session_log(self, tmp_path):
        configure_logging(stream=io.StringIO(), persist=True, log_root=tmp_path)

        logging.getLogger("flowkeeper.test").debug("to file only")
        for handler in logging.getLogger().handlers:
            handler.flush()

        logs = list((tmp_path / ".flowkeeper" / "logs").glob("session_*.log"))
        assert len(logs) == 1
        assert "to file only" in logs[0].read_text()


class TestHelpers:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("debug", logging.DEBUG),
            ("INFO", logging.INFO),
            (logging.ERROR, logging.ERROR),
            ("15", 15),
            ("nope", logging.WARNING),
        ],
    )
    def test_parse_level(self, value, expected):
        assert _parse_level(value) == expected

    def test_cleanup_keeps_recent(self, tmp_path):
        for i in range(4):
            log = tmp_path / f"session_{i}.log"
            log.write_text("")
            os.utime(log, (1_000_000 + i, 1_000_000 + i))

        _prune_sessions(tmp_path, keep=2)

        assert sorted(p.name for p in tmp_path.glob("*.log")) == ["session_2.log", "session_3.log"]


class TestResolveLevel:
    """Priority of the level sources."""

    def test_default_warning(self):
        assert resolve_level(environ={}) == logging.WARNING

    def test_debug_flag(self):
        assert resolve_level(debug=True, environ={}) == logging.DEBUG

    def test_explicit_level_wins(self):
        environ = {"FLOWKEEPER_LOG_LEVEL": "ERROR", "FLOWKEEPER_DEBUG": "true"}

        assert resolve_level(level="INFO", environ=environ) == logging.INFO

    def test_env_level_beats_env_debug(self):
        environ = {"FLOWKEEPER_LOG_LEVEL": "ERROR", "FLOWKEEPER_DEBUG": "true"}

        assert resolve_level(environ=environ) == logging.ERROR

    def test_env_debug(self):
        assert resolve_level(environ={"FLOWKEEPER_DEBUG": "yes"}) == logging.DEBUG
