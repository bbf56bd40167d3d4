"""Migration orchestration: discover, parse, normalize, render and write."""

from __future__ import annotations
import logging
import os
from typing import List, Optional

from pydantic import BaseModel, Field

from .discovery import IncludeResolver, ResourceDiscovery
from .errors import MigrationParseError, RenderError, WriteError
from .generator import MigrationCodeGenerator, sort_resources
from .models import MigrationError, MigrationResult, ParsedResource, ResourceFile
from .normalizer import ModelNormalizer
from .parsers import parse_resource_file

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT = "tinybird_migration.py"


class MigrateOptions(BaseModel):
    """Options for one migration run."""

    cwd: str = Field(default_factory=os.getcwd)
    patterns: List[str] = Field(default_factory=list)
    out: str = Field(default=DEFAULT_OUTPUT, description="Output file, relative to cwd unless absolute")
    strict: bool = True
    dry_run: bool = False
    force: bool = False

    @property
    def output_path(self) -> str:
        if os.path.isabs(self.out):
            return self.out
        return os.path.abspath(os.path.join(self.cwd, self.out))


def _error_from(resource: ResourceFile, message: str) -> MigrationError:
    return MigrationError(
        file_path=resource.file_path,
        resource_name=resource.name,
        resource_kind=resource.kind,
        message=message,
    )


def write_output(output_path: str, content: str, force: bool = False) -> None:
    """Write the generated module.

    Raises:
        WriteError: If the file exists and ``force`` is not set, or on I/O failure
    """
    if os.path.exists(output_path) and not force:
        raise WriteError(output_path, f"Output file already exists: {output_path}. Use --force to overwrite.")
    try:
        with open(output_path, "w", encoding="utf-8") as handle:
            handle.write(content)
    except OSError as e:
        raise WriteError(output_path, f"Could not write {output_path}: {e}") from e
    logger.info(f"Wrote migration to {output_path}")


class MigrationRunner:
    """Runs the migration pipeline over a batch of datafiles.

    Each file succeeds or fails on its own: discovery, parse and render
    failures are collected as ``MigrationError`` entries and the remaining
    files are still migrated. Only writing the output can abort a run.
    """

    def __init__(
        self,
        options: MigrateOptions,
        include_resolver: Optional[IncludeResolver] = None,
        normalizer: Optional[ModelNormalizer] = None,
    ):
        self.options = options
        self.discovery = ResourceDiscovery(options.cwd, include_resolver)
        self.normalizer = normalizer or ModelNormalizer()
        self.generator = MigrationCodeGenerator(strict=options.strict)

    def run(self) -> MigrationResult:
        options = self.options
        output_path = options.output_path

        if not options.patterns:
            return MigrationResult(
                success=False,
                output_path=output_path,
                dry_run=options.dry_run,
                errors=[MigrationError(
                    file_path=".",
                    resource_name="patterns",
                    resource_kind=None,
                    message="At least one file, directory, or glob pattern is required.",
                )],
            )

        logger.info(f"Migrating {', '.join(options.patterns)} from {options.cwd}")
        discovered = self.discovery.discover(options.patterns)
        errors: List[MigrationError] = list(discovered.errors)

        parsed: List[ParsedResource] = []
        for resource in discovered.resources:
            try:
                parsed.append(parse_resource_file(resource, strict=options.strict))
            except MigrationParseError as e:
                logger.debug(f"Failed to parse {resource.file_path}: {e}")
                errors.append(MigrationError(
                    file_path=e.file_path,
                    resource_name=e.resource_name,
                    resource_kind=e.resource_kind,
                    message=e.message,
                ))

        normalized = self.normalizer.normalize(parsed)
        errors.extend(normalized.errors)

        migrated: List[ParsedResource] = []
        for model in normalized.models:
            try:
                self.generator.check(model)
            except RenderError as e:
                errors.append(MigrationError(
                    file_path=model.file_path,
                    resource_name=model.name,
                    resource_kind=model.kind,
                    message=str(e),
                ))
                continue
            migrated.append(model)

        migrated = sort_resources(migrated)
        output_content = self.generator.render(migrated) if migrated else None

        if output_content is not None and not options.dry_run:
            write_output(output_path, output_content, force=options.force)

        logger.info(f"Migrated {len(migrated)} resources with {len(errors)} errors")
        return MigrationResult(
            success=not errors,
            output_path=output_path,
            migrated=migrated,
            errors=errors,
            warnings=normalized.warnings,
            dry_run=options.dry_run,
            output_content=output_content,
        )


def run_migrate(options: MigrateOptions, include_resolver: Optional[IncludeResolver] = None) -> MigrationResult:
    """Run a migration.

    Args:
        options: Patterns, working directory and output settings
        include_resolver: Optional replacement for glob/include expansion

    Returns:
        The migration result; ``success`` is False when any file failed

    Raises:
        WriteError: If the generated module cannot be written
    """
    return MigrationRunner(options, include_resolver=include_resolver).run()
