"""Datafile discovery."""

from .base import (
    SUPPORTED_EXTENSIONS,
    DiscoveryResult,
    IncludeResolver,
    ResourceDiscovery,
    discover_resource_files,
    kind_from_path,
)
from .include_paths import ResolvedIncludeFile, resolve_include_files

__all__ = [
    "SUPPORTED_EXTENSIONS",
    "DiscoveryResult",
    "IncludeResolver",
    "ResourceDiscovery",
    "discover_resource_files",
    "kind_from_path",
    "ResolvedIncludeFile",
    "resolve_include_files",
]
