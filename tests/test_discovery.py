"""Tests for datafile discovery and include resolution."""

import os

import pytest

from tinybird_migrate.discovery import (
    ResolvedIncludeFile,
    ResourceDiscovery,
    discover_resource_files,
    kind_from_path,
    resolve_include_files,
)
from tinybird_migrate.discovery.include_paths import glob_root_directory, match_glob_path
from tinybird_migrate.errors import IncludeResolutionError


def write(root, relative_path, content="TYPE kafka\n"):
    path = root / relative_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


class TestKindFromPath:
    """Test extension to kind mapping."""

    def test_known_extensions(self):
        """Test the three supported extensions, case-insensitively."""
        assert kind_from_path("a/events.datasource") == "datasource"
        assert kind_from_path("stats.PIPE") == "pipe"
        assert kind_from_path("kafka.connection") == "connection"

    def test_unknown_extension(self):
        """Test unsupported extensions."""
        assert kind_from_path("notes.txt") is None
        assert kind_from_path("Makefile") is None


class TestResourceDiscovery:
    """Test pattern resolution into resource files."""

    def test_directory_walk(self, tmp_path):
        """Test recursive walks skipping ignored directories and unknown files."""
        write(tmp_path, "b.pipe")
        write(tmp_path, "a.datasource")
        write(tmp_path, "connections/c.connection")
        write(tmp_path, "notes.txt")
        write(tmp_path, "node_modules/pkg/x.datasource")
        write(tmp_path, ".git/y.pipe")

        result = discover_resource_files(["."], str(tmp_path))

        assert result.errors == []
        assert [r.file_path for r in result.resources] == [
            "a.datasource", "b.pipe", "connections/c.connection",
        ]
        connection = result.resources[2]
        assert connection.kind == "connection"
        assert connection.name == "c"
        assert connection.content == "TYPE kafka\n"
        assert os.path.isabs(connection.absolute_path)

    def test_overlapping_patterns_are_deduplicated(self, tmp_path):
        """Test that one file reached by several patterns is listed once."""
        write(tmp_path, "a.datasource")

        result = discover_resource_files(
            [".", "a.datasource", "*.datasource", str(tmp_path / "a.datasource")],
            str(tmp_path),
        )

        assert [r.file_path for r in result.resources] == ["a.datasource"]

    def test_unsupported_file_extension(self, tmp_path):
        """Test that an explicit file with an unknown extension is an error."""
        write(tmp_path, "notes.txt")

        result = discover_resource_files(["notes.txt"], str(tmp_path))

        assert result.resources == []
        assert len(result.errors) == 1
        error = result.errors[0]
        assert error.message == "Unsupported file extension: .txt. Use .datasource, .pipe, or .connection."
        assert error.resource_kind is None
        assert error.file_path == "notes.txt"

    def test_missing_file(self, tmp_path):
        """Test that a missing plain path becomes an error."""
        result = discover_resource_files(["missing.pipe"], str(tmp_path))

        assert result.resources == []
        assert result.errors[0].message.startswith("Include file not found: ")

    def test_glob_without_matches(self, tmp_path):
        """Test that an empty glob becomes an error."""
        result = discover_resource_files(["**/*.pipe"], str(tmp_path))

        assert result.errors[0].message == "Include pattern matched no files: **/*.pipe"

    def test_recursive_glob(self, tmp_path):
        """Test ** patterns."""
        write(tmp_path, "pipes/x.pipe")
        write(tmp_path, "pipes/deep/y.pipe")
        write(tmp_path, "pipes/deep/z.datasource")

        result = discover_resource_files(["pipes/**/*.pipe"], str(tmp_path))

        assert [r.file_path for r in result.resources] == ["pipes/deep/y.pipe", "pipes/x.pipe"]

    def test_errors_do_not_stop_other_patterns(self, tmp_path):
        """Test that a bad pattern does not hide resources from good ones."""
        write(tmp_path, "a.datasource")

        result = discover_resource_files(["missing.pipe", "a.datasource"], str(tmp_path))

        assert [r.file_path for r in result.resources] == ["a.datasource"]
        assert len(result.errors) == 1

    def test_custom_include_resolver(self, tmp_path):
        """Test injecting the include resolver."""
        target = write(tmp_path, "elsewhere/remote.pipe", "NODE a\n")
        calls = []

        def resolver(patterns, cwd):
            calls.append((list(patterns), cwd))
            return [ResolvedIncludeFile(source_path="vendor/remote.pipe", absolute_path=str(target))]

        result = ResourceDiscovery(str(tmp_path), include_resolver=resolver).discover(["vendor:*"])

        assert calls == [(["vendor:*"], str(tmp_path))]
        assert [r.file_path for r in result.resources] == ["vendor/remote.pipe"]
        assert result.resources[0].kind == "pipe"

    def test_resolver_exception_becomes_error(self, tmp_path):
        """Test that resolver failures are recorded, not raised."""
        def resolver(patterns, cwd):
            raise IncludeResolutionError(patterns[0], "bad pattern")

        result = ResourceDiscovery(str(tmp_path), include_resolver=resolver).discover(["[oops"])

        assert result.errors[0].message == "bad pattern"
        assert result.errors[0].file_path == "[oops"


class TestIncludePaths:
    """Test glob helpers of the include resolver."""

    def test_match_glob_path(self):
        """Test segment-wise matching with **."""
        assert match_glob_path("/p/**/*.pipe", "/p/a.pipe")
        assert match_glob_path("/p/**/*.pipe", "/p/x/y/a.pipe")
        assert not match_glob_path("/p/*.pipe", "/p/x/a.pipe")
        assert not match_glob_path("/p/**/*.pipe", "/q/a.pipe")

    def test_glob_root_directory(self):
        """Test the non-glob prefix of a pattern."""
        assert glob_root_directory("/p/data/**/*.pipe") == os.path.join("/p", "data")

    def test_resolve_plain_and_glob(self, tmp_path):
        """Test resolving both kinds of pattern together."""
        write(tmp_path, "a.pipe")
        write(tmp_path, "b.pipe")

        resolved = resolve_include_files(["a.pipe", "*.pipe"], str(tmp_path))

        assert [r.source_path for r in resolved] == ["a.pipe", "b.pipe"]

    def test_resolve_missing_raises(self, tmp_path):
        """Test that resolve_include_files raises on missing files."""
        with pytest.raises(IncludeResolutionError, match="Include file not found"):
            resolve_include_files(["nope.pipe"], str(tmp_path))
