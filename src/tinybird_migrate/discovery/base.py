"""Discovery of Tinybird datafiles from paths, directories and glob patterns."""

from __future__ import annotations
import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from ..errors import DiscoveryError
from ..models import MigrationError, ResourceFile, ResourceKind
from .include_paths import ResolvedIncludeFile, normalize_path, resolve_include_files, walk_files

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS: Dict[str, ResourceKind] = {
    ".datasource": "datasource",
    ".pipe": "pipe",
    ".connection": "connection",
}

IncludeResolver = Callable[[Sequence[str], str], List[ResolvedIncludeFile]]


def kind_from_path(file_path: str) -> Optional[ResourceKind]:
    """Map a file extension to a resource kind, or None if unsupported."""
    _, ext = os.path.splitext(file_path)
    return SUPPORTED_EXTENSIONS.get(ext.lower())


def resource_name_from_path(file_path: str) -> str:
    base = os.path.basename(file_path)
    name, _ = os.path.splitext(base)
    return name


@dataclass
class DiscoveryResult:
    """Resources found for a set of patterns, plus per-pattern failures."""
    resources: List[ResourceFile] = field(default_factory=list)
    errors: List[MigrationError] = field(default_factory=list)


class ResourceDiscovery:
    """Resolves patterns into a deduplicated, path-ordered list of datafiles."""

    def __init__(self, cwd: str, include_resolver: Optional[IncludeResolver] = None):
        self.cwd = os.path.abspath(cwd)
        self.include_resolver = include_resolver or resolve_include_files

    def discover(self, patterns: Sequence[str]) -> DiscoveryResult:
        """Discover resource files for all patterns.

        A pattern that names an existing directory is walked recursively, an
        existing file must carry a supported extension, and anything else is
        handed to the include resolver.
        """
        result = DiscoveryResult()
        seen = set()

        for pattern in patterns:
            absolute_pattern = pattern if os.path.isabs(pattern) else os.path.join(self.cwd, pattern)
            absolute_pattern = os.path.normpath(absolute_pattern)

            if os.path.isdir(absolute_pattern):
                for absolute_file in walk_files(absolute_pattern):
                    kind = kind_from_path(absolute_file)
                    if kind is None:
                        continue
                    self._add(result, seen, kind, absolute_file, self._relative(absolute_file))
                continue

            if os.path.isfile(absolute_pattern):
                kind = kind_from_path(absolute_pattern)
                if kind is None:
                    _, ext = os.path.splitext(absolute_pattern)
                    result.errors.append(MigrationError(
                        file_path=pattern,
                        resource_name=os.path.basename(absolute_pattern),
                        resource_kind=None,
                        message=(
                            f"Unsupported file extension: {ext or '(none)'}. "
                            "Use .datasource, .pipe, or .connection."
                        ),
                    ))
                    continue
                self._add(result, seen, kind, absolute_pattern, self._relative(absolute_pattern))
                continue

            try:
                matched = self.include_resolver([pattern], self.cwd)
            except (DiscoveryError, OSError) as e:
                logger.debug(f"Could not resolve pattern '{pattern}': {e}")
                result.errors.append(MigrationError(
                    file_path=pattern,
                    resource_name=os.path.basename(pattern),
                    resource_kind=None,
                    message=str(e),
                ))
                continue

            for entry in matched:
                kind = kind_from_path(entry.absolute_path)
                if kind is None:
                    continue
                self._add(result, seen, kind, entry.absolute_path, normalize_path(entry.source_path))

        result.resources.sort(key=lambda resource: resource.file_path)
        logger.info(f"Discovered {len(result.resources)} datafiles")
        return result

    def _relative(self, absolute_path: str) -> str:
        return normalize_path(os.path.relpath(absolute_path, self.cwd))

    def _add(
        self,
        result: DiscoveryResult,
        seen: set,
        kind: ResourceKind,
        absolute_path: str,
        file_path: str,
    ) -> None:
        key = normalize_path(os.path.normpath(os.path.abspath(absolute_path)))
        if key in seen:
            return
        seen.add(key)

        name = resource_name_from_path(absolute_path)
        try:
            with open(absolute_path, "r", encoding="utf-8") as handle:
                content = handle.read()
        except (OSError, UnicodeDecodeError) as e:
            result.errors.append(MigrationError(
                file_path=file_path,
                resource_name=name,
                resource_kind=kind,
                message=f"Could not read file: {e}",
            ))
            return

        result.resources.append(ResourceFile(
            kind=kind,
            file_path=file_path,
            absolute_path=absolute_path,
            name=name,
            content=content,
        ))


def discover_resource_files(
    patterns: Sequence[str],
    cwd: str,
    include_resolver: Optional[IncludeResolver] = None,
) -> DiscoveryResult:
    """Discover datafiles for the given patterns relative to ``cwd``."""
    return ResourceDiscovery(cwd, include_resolver).discover(patterns)
