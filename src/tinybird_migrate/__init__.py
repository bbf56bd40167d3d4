"""
tinybird-migrate

Converts Tinybird datafiles (.datasource, .pipe, .connection) into a single
Python module of SDK definitions.
"""

from .discovery import ResourceDiscovery, discover_resource_files, resolve_include_files
from .errors import (
    DiscoveryError,
    IncludeResolutionError,
    MigrationException,
    MigrationParseError,
    RenderError,
    WriteError,
)
from .generator import MigrationCodeGenerator, render_migration_module
from .inference import HeuristicOutputInferrer, OutputColumnInferrer
from .migrate import MigrateOptions, MigrationRunner, run_migrate
from .models import (
    DatasourceModel,
    KafkaConnectionModel,
    MigrationError,
    MigrationResult,
    MigrationWarning,
    PipeModel,
    ResourceFile,
    S3ConnectionModel,
)
from .normalizer import ModelNormalizer
from .parsers import parse_resource_file

__version__ = "0.1.0"

__all__ = [
    # Orchestration
    "MigrateOptions",
    "MigrationRunner",
    "run_migrate",

    # Pipeline stages
    "ResourceDiscovery",
    "discover_resource_files",
    "resolve_include_files",
    "parse_resource_file",
    "ModelNormalizer",
    "OutputColumnInferrer",
    "HeuristicOutputInferrer",
    "MigrationCodeGenerator",
    "render_migration_module",

    # Models
    "ResourceFile",
    "DatasourceModel",
    "PipeModel",
    "KafkaConnectionModel",
    "S3ConnectionModel",
    "MigrationError",
    "MigrationWarning",
    "MigrationResult",

    # Errors
    "MigrationException",
    "DiscoveryError",
    "IncludeResolutionError",
    "MigrationParseError",
    "RenderError",
    "WriteError",
]
