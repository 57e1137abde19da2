"""Tests for root discovery and flow helpers."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from flowkeeper.flow.helpers import (
    AUTOCOMPLETE_TOKEN,
    RootResolver,
    build_execution_options,
    find_config_root,
    find_nearest_file,
    insert_autocomplete_token,
    locate_worker_binary,
)


class TestFindNearestFile:
    """Tests for the upward search."""

    def test_finds_marker_in_ancestor(self, project):
        nested = project.root / "src" / "deep" / "er"
        nested.mkdir(parents=True)

        assert find_nearest_file(".flowconfig", nested) == project.root

    def test_innermost_marker_wins(self, project):
        inner = project.root / "packages" / "inner"
        inner.mkdir(parents=True)
        (inner / ".flowconfig").write_text("")

        assert find_nearest_file(".flowconfig", inner) == inner

    def test_none_without_marker(self, tmp_path: Path):
        plain = tmp_path / "plain"
        plain.mkdir()

        assert find_nearest_file("no-such-marker-file.cfg", plain) is None

    def test_directory_named_like_marker_is_ignored(self, tmp_path: Path):
        base = tmp_path.resolve() / "weird"
        (base / "unlikely-marker.cfg").mkdir(parents=True)

        assert find_nearest_file("unlikely-marker.cfg", base) is None


class TestFindConfigRoot:
    def test_uses_directory_of_file(self, project):
        assert find_config_root(project.file) == project.root

    def test_custom_marker(self, project):
        (project.root / "src" / ".altconfig").write_text("")

        assert find_config_root(project.file, ".altconfig") == project.root / "src"


class TestLocateWorkerBinary:
    def test_absolute_executable(self, flow_binary):
        assert locate_worker_binary(str(flow_binary)) == str(flow_binary)

    def test_missing_binary(self, tmp_path: Path):
        assert locate_worker_binary(str(tmp_path / "missing-flow")) is None


class TestBuildExecutionOptions:
    def test_inherits_environment_by_default(self, tmp_path: Path):
        options = build_execution_options(tmp_path)

        assert options.cwd == tmp_path
        assert options.root == tmp_path
        assert options.env is None

    def test_extra_env_merged_over_environment(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("FLOWKEEPER_TEST_INHERITED", "yes")

        options = build_execution_options(tmp_path, {"FLOW_LOG": "debug"})

        assert options.env["FLOW_LOG"] == "debug"
        assert options.env["FLOWKEEPER_TEST_INHERITED"] == "yes"
        assert options.env["PATH"] == os.environ["PATH"]


class TestInsertAutocompleteToken:
    def test_inserts_at_cursor(self):
        contents = "const a = 1;\nfoo.ba\n"

        result = insert_autocomplete_token(contents, 1, 4)

        assert result == f"const a = 1;\nfoo.{AUTOCOMPLETE_TOKEN}ba\n"

    def test_end_of_line(self):
        assert insert_autocomplete_token("foo.", 0, 4) == f"foo.{AUTOCOMPLETE_TOKEN}"

    def test_custom_token(self):
        assert insert_autocomplete_token("ab", 0, 1, token="#") == "a#b"

    def test_line_out_of_range(self):
        with pytest.raises(ValueError, match="line 3"):
            insert_autocomplete_token("one\ntwo", 3, 0)

    def test_column_out_of_range(self):
        with pytest.raises(ValueError, match="column 9"):
            insert_autocomplete_token("one", 0, 9)


class TestRootResolver:
    """Tests for RootResolver.resolve()."""

    def test_resolves_root_and_cwd(self, project):
        resolver = RootResolver(path_to_flow=str(project.binary))

        options = resolver.resolve(project.file)

        assert options is not None
        assert options.cwd == project.root
        assert options.env is None

    def test_absent_without_config_marker(self, tmp_path: Path, flow_binary):
        loose = tmp_path.resolve() / "loose"
        loose.mkdir()
        file = loose / "a.js"
        file.write_text("")
        resolver = RootResolver(marker="no-such-marker-file.cfg", path_to_flow=str(flow_binary))

        assert resolver.resolve(file) is None

    def test_absent_without_binary(self, project, tmp_path: Path):
        resolver = RootResolver(path_to_flow=str(tmp_path / "not-installed"))

        assert resolver.binary is None
        assert resolver.resolve(project.file) is None

    def test_extra_env_applied(self, project):
        resolver = RootResolver(path_to_flow=str(project.binary), extra_env={"FLOW_X": "1"})

        options = resolver.resolve(project.file)

        assert options.env["FLOW_X"] == "1"
