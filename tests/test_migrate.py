"""Tests for the migration pipeline end to end."""

import ast

import pytest

from conftest import EVENTS_DATASOURCE, MAIN_KAFKA_CONNECTION, STATS_PIPE
from tinybird_migrate.discovery import ResolvedIncludeFile
from tinybird_migrate.errors import WriteError
from tinybird_migrate.migrate import DEFAULT_OUTPUT, MigrateOptions, run_migrate, write_output

BROKEN_PIPE = """\
NODE endpoint
SQL >
    SELECT 1 AS x

FOO bar
"""


def options_for(root, *patterns, **kwargs):
    return MigrateOptions(cwd=str(root), patterns=list(patterns), **kwargs)


class TestRunMigrate:
    """Test batch migrations over a project directory."""

    def test_full_project(self, project):
        """Test a connection, a datasource and an endpoint migrating together."""
        result = run_migrate(options_for(project, "."))

        assert result.success
        assert result.errors == []
        assert len(result.migrated) == 3
        assert result.migrated_names() == ["main_kafka", "events", "stats"]

        output_path = project / DEFAULT_OUTPUT
        assert result.output_path == str(output_path)
        content = output_path.read_text()
        assert content == result.output_content
        assert 'create_kafka_connection(\n    "main_kafka",' in content
        assert 'define_datasource(\n    "events",' in content
        assert 'define_pipe(\n    "stats",' in content
        ast.parse(content)

    def test_broken_file_does_not_block_batch(self, tmp_path):
        """Test that one unparseable file only fails itself."""
        (tmp_path / "events.datasource").write_text(EVENTS_DATASOURCE)
        (tmp_path / "broken.pipe").write_text(BROKEN_PIPE)

        result = run_migrate(options_for(tmp_path, "."))

        assert not result.success
        assert len([e for e in result.errors if e.file_path == "broken.pipe"]) == 1
        assert result.migrated_names() == ["events"]
        assert '"events"' in result.output_content
        assert '"broken"' not in result.output_content

        error = result.error_for("broken")
        assert error.file_path == "broken.pipe"
        assert error.resource_kind == "pipe"
        assert '"FOO bar"' in error.message

    def test_several_unknown_directives_give_one_error(self, tmp_path):
        """Test that a file with many unknown directives reports a single error."""
        (tmp_path / "events.datasource").write_text(EVENTS_DATASOURCE + "FOO bar\nBAZ\n")

        result = run_migrate(options_for(tmp_path, ".", dry_run=True))

        assert len(result.errors) == 1
        assert '"FOO bar"' in result.errors[0].message
        assert '"BAZ"' in result.errors[0].message
        assert result.migrated == []

    def test_single_line_schema(self, tmp_path):
        """Test the three-resource project with its schema written on one line."""
        (tmp_path / "events.datasource").write_text(
            "SCHEMA >\n    id String, ts DateTime\n\nENGINE MergeTree\nENGINE_SORTING_KEY id\n")
        (tmp_path / "stats.pipe").write_text(STATS_PIPE)
        (tmp_path / "main_kafka.connection").write_text(MAIN_KAFKA_CONNECTION)

        result = run_migrate(options_for(tmp_path, ".", dry_run=True))

        assert result.errors == []
        assert len(result.migrated) == 3
        events = result.migrated[1]
        assert [c.name for c in events.columns] == ["id", "ts"]
        assert '        "ts": t.date_time(),\n' in result.output_content

    def test_broken_file_still_writes_output(self, tmp_path):
        """Test that partial results are written."""
        (tmp_path / "events.datasource").write_text(EVENTS_DATASOURCE)
        (tmp_path / "broken.pipe").write_text(BROKEN_PIPE)

        run_migrate(options_for(tmp_path, "."))

        assert (tmp_path / DEFAULT_OUTPUT).exists()

    def test_non_strict_skips_unknown_directives(self, tmp_path):
        """Test that non-strict mode migrates files with unknown directives."""
        (tmp_path / "broken.pipe").write_text(BROKEN_PIPE)

        result = run_migrate(options_for(tmp_path, "broken.pipe", strict=False, dry_run=True))

        assert result.success
        assert result.migrated_names("pipe") == ["broken"]

    def test_dry_run_writes_nothing(self, project):
        """Test that dry runs return the module without writing it."""
        result = run_migrate(options_for(project, ".", dry_run=True))

        assert result.dry_run
        assert result.output_content.startswith('"""Generated by tinybird-migrate.')
        assert not (project / DEFAULT_OUTPUT).exists()

    def test_empty_patterns(self, project):
        """Test that at least one pattern is required."""
        result = run_migrate(options_for(project))

        assert not result.success
        assert result.migrated == []
        assert result.output_content is None
        assert result.errors[0].message == "At least one file, directory, or glob pattern is required."
        assert result.errors[0].resource_kind is None

    def test_nothing_migrated_writes_nothing(self, tmp_path):
        """Test that no module is written when every file fails."""
        (tmp_path / "broken.pipe").write_text(BROKEN_PIPE)

        result = run_migrate(options_for(tmp_path, "."))

        assert not result.success
        assert result.output_content is None
        assert not (tmp_path / DEFAULT_OUTPUT).exists()

    def test_discovery_errors_are_collected(self, project):
        """Test missing patterns alongside valid ones."""
        result = run_migrate(options_for(project, "missing.pipe", "events.datasource", dry_run=True))

        assert not result.success
        assert result.migrated_names() == ["events"]
        assert result.errors[0].file_path == "missing.pipe"

    def test_duplicate_names(self, tmp_path):
        """Test that the first definition in path order wins."""
        for folder in ("a", "b"):
            (tmp_path / folder).mkdir()
            (tmp_path / folder / "events.datasource").write_text(EVENTS_DATASOURCE)

        result = run_migrate(options_for(tmp_path, ".", dry_run=True))

        assert [m.file_path for m in result.migrated] == ["a/events.datasource"]
        assert result.errors[0].file_path == "b/events.datasource"
        assert result.output_content.count("define_datasource(") == 1

    def test_render_errors_are_per_file(self, project):
        """Test that a datasource with an unknown type fails alone."""
        (project / "geo.datasource").write_text(
            "SCHEMA >\n    id String,\n    area Geo\n\nENGINE MergeTree\nENGINE_SORTING_KEY id\n")

        result = run_migrate(options_for(project, ".", dry_run=True))

        assert not result.success
        assert result.error_for("geo").message == 'Unsupported column type in strict mode: "Geo"'
        assert len(result.migrated) == 3

    def test_reference_warnings(self, tmp_path):
        """Test that dangling references warn without failing."""
        (tmp_path / "clicks.datasource").write_text(
            EVENTS_DATASOURCE + "KAFKA_CONNECTION_NAME missing\nKAFKA_TOPIC clicks\n")

        result = run_migrate(options_for(tmp_path, ".", dry_run=True))

        assert result.success
        assert len(result.warnings) == 1
        assert "connection=missing," not in result.output_content
        assert '"connection": missing,' in result.output_content

    def test_existing_output_requires_force(self, project):
        """Test overwrite protection."""
        output_path = project / DEFAULT_OUTPUT
        output_path.write_text("# keep me\n")

        with pytest.raises(WriteError, match="Use --force to overwrite"):
            run_migrate(options_for(project, "."))
        assert output_path.read_text() == "# keep me\n"

        result = run_migrate(options_for(project, ".", force=True))
        assert output_path.read_text() == result.output_content

    def test_rerun_is_identical(self, project):
        """Test that migrating twice produces the same module."""
        first = run_migrate(options_for(project, ".", force=True)).output_content
        second = run_migrate(options_for(project, ".", force=True)).output_content

        assert first == second

    def test_custom_output_path(self, project, tmp_path_factory):
        """Test absolute and nested output paths."""
        target = tmp_path_factory.mktemp("out") / "module.py"

        result = run_migrate(options_for(project, ".", out=str(target)))

        assert result.output_path == str(target)
        assert target.read_text() == result.output_content

    def test_custom_include_resolver(self, project):
        """Test injecting the include resolver through run_migrate."""
        def resolver(patterns, cwd):
            return [ResolvedIncludeFile(
                source_path="events.datasource",
                absolute_path=str(project / "events.datasource"),
            )]

        result = run_migrate(options_for(project, "remote:events", dry_run=True), include_resolver=resolver)

        assert result.migrated_names() == ["events"]


class TestWriteOutput:
    """Test writing the generated module."""

    def test_write_new_file(self, tmp_path):
        """Test writing a fresh file."""
        path = tmp_path / "out.py"

        write_output(str(path), "x = 1\n")

        assert path.read_text() == "x = 1\n"

    def test_missing_directory(self, tmp_path):
        """Test that I/O failures raise WriteError."""
        path = tmp_path / "missing" / "out.py"

        with pytest.raises(WriteError, match="Could not write"):
            write_output(str(path), "x = 1\n")
