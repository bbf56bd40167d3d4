"""Resolution of include paths and glob patterns against a project root."""

from __future__ import annotations
import fnmatch
import logging
import os
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Dict, List, Sequence, Tuple

from ..errors import IncludeResolutionError

logger = logging.getLogger(__name__)

GLOB_CHARACTERS = ("*", "?", "[")
IGNORED_DIRECTORIES = frozenset({
    ".git", ".hg", ".svn", "node_modules", "__pycache__", ".venv", "venv",
})


@dataclass(frozen=True)
class ResolvedIncludeFile:
    """A file matched by an include pattern."""
    source_path: str
    absolute_path: str


def has_glob_pattern(value: str) -> bool:
    return any(char in value for char in GLOB_CHARACTERS)


def normalize_path(value: str) -> str:
    """Use POSIX separators regardless of platform."""
    return value.replace("\\", "/")


def _split_absolute(path: str) -> Tuple[str, List[str]]:
    parts = PurePath(os.path.abspath(path)).parts
    root, segments = parts[0], list(parts[1:])
    return normalize_path(root), segments


def _match_segments(
    pattern: Sequence[str],
    path: Sequence[str],
    pattern_index: int,
    path_index: int,
    memo: Dict[Tuple[int, int], bool],
) -> bool:
    key = (pattern_index, path_index)
    if key in memo:
        return memo[key]

    if pattern_index == len(pattern):
        matches = path_index == len(path)
    elif pattern[pattern_index] == "**":
        matches = _match_segments(pattern, path, pattern_index + 1, path_index, memo)
        if not matches and path_index < len(path):
            matches = _match_segments(pattern, path, pattern_index, path_index + 1, memo)
    elif path_index < len(path) and _match_segment(pattern[pattern_index], path[path_index]):
        matches = _match_segments(pattern, path, pattern_index + 1, path_index + 1, memo)
    else:
        matches = False

    memo[key] = matches
    return matches


def _match_segment(pattern_segment: str, value_segment: str) -> bool:
    if not has_glob_pattern(pattern_segment):
        return pattern_segment == value_segment
    return fnmatch.fnmatchcase(value_segment, pattern_segment)


def match_glob_path(absolute_pattern: str, absolute_path: str) -> bool:
    """Check whether an absolute path matches an absolute glob pattern."""
    pattern_root, pattern_segments = _split_absolute(absolute_pattern)
    path_root, path_segments = _split_absolute(absolute_path)
    if pattern_root.lower() != path_root.lower():
        return False
    return _match_segments(pattern_segments, path_segments, 0, 0, {})


def glob_root_directory(absolute_pattern: str) -> str:
    """Longest leading directory of a pattern that contains no glob characters."""
    root, segments = _split_absolute(absolute_pattern)
    base: List[str] = []
    for segment in segments:
        if has_glob_pattern(segment):
            break
        base.append(segment)
    return os.path.join(root, *base)


def walk_files(directory: str) -> List[str]:
    """Recursively list files below a directory, skipping VCS and dependency folders."""
    files: List[str] = []
    for current, dirnames, filenames in os.walk(directory):
        dirnames[:] = sorted(d for d in dirnames if d not in IGNORED_DIRECTORIES)
        for filename in sorted(filenames):
            files.append(os.path.join(current, filename))
    return files


def expand_glob_pattern(absolute_pattern: str) -> List[str]:
    root_directory = glob_root_directory(absolute_pattern)
    if not os.path.isdir(root_directory):
        return []
    matched = [
        path for path in walk_files(root_directory)
        if match_glob_path(absolute_pattern, path)
    ]
    return sorted(matched)


def resolve_include_files(patterns: Sequence[str], cwd: str) -> List[ResolvedIncludeFile]:
    """Expand include paths and glob patterns into concrete files.

    Args:
        patterns: File paths or glob patterns, absolute or relative to ``cwd``
        cwd: Project root used to resolve relative patterns

    Returns:
        Matched files in pattern order, each listed once

    Raises:
        IncludeResolutionError: If a glob matches nothing or a plain path does not exist
    """
    resolved: List[ResolvedIncludeFile] = []
    seen = set()

    for pattern in patterns:
        is_absolute = os.path.isabs(pattern)
        absolute_pattern = pattern if is_absolute else os.path.abspath(os.path.join(cwd, pattern))

        if has_glob_pattern(pattern):
            matched_files = expand_glob_pattern(absolute_pattern)
            if not matched_files:
                raise IncludeResolutionError(pattern, f"Include pattern matched no files: {pattern}")

            logger.debug(f"Pattern '{pattern}' matched {len(matched_files)} files")
            for matched_file in matched_files:
                if matched_file in seen:
                    continue
                seen.add(matched_file)
                source_path = matched_file if is_absolute else os.path.relpath(matched_file, cwd)
                resolved.append(ResolvedIncludeFile(
                    source_path=normalize_path(source_path),
                    absolute_path=matched_file,
                ))
            continue

        if not Path(absolute_pattern).exists():
            raise IncludeResolutionError(pattern, f"Include file not found: {absolute_pattern}")

        if absolute_pattern in seen:
            continue
        seen.add(absolute_pattern)
        resolved.append(ResolvedIncludeFile(
            source_path=normalize_path(pattern),
            absolute_path=absolute_pattern,
        ))

    return resolved
