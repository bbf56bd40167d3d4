"""Shared fixtures for tinybird-migrate tests."""

import textwrap

import pytest

from tinybird_migrate.discovery.base import kind_from_path, resource_name_from_path
from tinybird_migrate.models import ResourceFile
from tinybird_migrate.parsers import parse_resource_file


EVENTS_DATASOURCE = """\
SCHEMA >
    id String,
    ts DateTime

ENGINE MergeTree
ENGINE_SORTING_KEY id
"""

STATS_PIPE = """\
NODE endpoint
SQL >
    SELECT id AS id FROM events

TYPE endpoint
"""

MAIN_KAFKA_CONNECTION = """\
TYPE kafka
KAFKA_BOOTSTRAP_SERVERS localhost:9092
"""


def make_resource(file_path: str, content: str) -> ResourceFile:
    """Build an in-memory datafile from a path and (dedented) content."""
    return ResourceFile(
        kind=kind_from_path(file_path),
        file_path=file_path,
        absolute_path=f"/project/{file_path}",
        name=resource_name_from_path(file_path),
        content=textwrap.dedent(content),
    )


def parse(file_path: str, content: str, strict: bool = True):
    return parse_resource_file(make_resource(file_path, content), strict=strict)


@pytest.fixture
def project(tmp_path):
    """A project directory with a connection, a datasource and an endpoint."""
    (tmp_path / "events.datasource").write_text(EVENTS_DATASOURCE)
    (tmp_path / "stats.pipe").write_text(STATS_PIPE)
    (tmp_path / "main_kafka.connection").write_text(MAIN_KAFKA_CONNECTION)
    return tmp_path
