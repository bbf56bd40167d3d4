"""Exceptions raised by the migration pipeline."""

from __future__ import annotations
from typing import Optional


class MigrationException(Exception):
    """Base class for all migration failures."""


class DiscoveryError(MigrationException):
    """A pattern could not be turned into resource files."""

    def __init__(self, pattern: str, message: str):
        super().__init__(message)
        self.pattern = pattern


class IncludeResolutionError(DiscoveryError):
    """An include/glob pattern matched nothing or is malformed."""

    def __init__(self, pattern: str, message: str):
        super().__init__(pattern, message)


class MigrationParseError(MigrationException):
    """A datafile could not be parsed. Scoped to exactly one file."""

    def __init__(
        self,
        file_path: str,
        resource_kind: Optional[str],
        resource_name: str,
        message: str,
    ):
        super().__init__(message)
        self.file_path = file_path
        self.resource_kind = resource_kind
        self.resource_name = resource_name
        self.message = message


class RenderError(MigrationException):
    """A parsed model cannot be represented in generated code."""


class WriteError(MigrationException):
    """The generated module could not be written. Fatal for the run."""

    def __init__(self, output_path: str, message: str):
        super().__init__(message)
        self.output_path = output_path
