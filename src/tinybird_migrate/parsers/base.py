"""Directive scanning shared by the datasource, pipe and connection grammars."""

from __future__ import annotations
import logging
import textwrap
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Tuple

from pydantic import ValidationError

from ..errors import MigrationParseError
from ..models import ParsedResource, ResourceFile, ResourceKind

logger = logging.getLogger(__name__)

BLOCK_MARKER = ">"


@dataclass(frozen=True)
class Directive:
    """One keyword-led statement of a datafile.

    Inline directives carry ``value``; block directives (``KEYWORD >``) carry
    the dedented block lines in ``block`` and an empty ``value``.
    """
    keyword: str
    value: str
    line_number: int
    block: Optional[Tuple[str, ...]] = None

    @property
    def is_block(self) -> bool:
        return self.block is not None

    @property
    def text(self) -> str:
        """Block content joined with newlines, or the inline value."""
        if self.block is not None:
            return "\n".join(self.block)
        return self.value

    @property
    def source(self) -> str:
        """The directive as it appeared on its first line."""
        if self.block is not None:
            return f"{self.keyword} {BLOCK_MARKER}"
        return f"{self.keyword} {self.value}".strip()


def split_lines(content: str) -> List[str]:
    return content.replace("\r\n", "\n").split("\n")


def is_blank(line: str) -> bool:
    return not line.strip()


def starts_at_column_zero(line: str) -> bool:
    return bool(line) and not line[0].isspace()


def split_directive_line(line: str) -> Tuple[str, str]:
    """Split a stripped line into its keyword and the rest of the line."""
    parts = line.split(None, 1)
    if not parts:
        return "", ""
    if len(parts) == 1:
        return parts[0], ""
    return parts[0], parts[1].strip()


def read_block(lines: List[str], start: int) -> Tuple[List[str], int]:
    """Read an indented block starting at ``start``.

    The block ends at the first non-blank line that returns to column zero.
    Leading and trailing blank lines are dropped and the common indentation
    removed.

    Returns:
        The block lines and the index of the first line after the block
    """
    end = start
    while end < len(lines) and not starts_at_column_zero(lines[end]):
        end += 1

    collected = lines[start:end]
    while collected and is_blank(collected[0]):
        collected.pop(0)
    while collected and is_blank(collected[-1]):
        collected.pop()

    if not collected:
        return [], end

    dedented = textwrap.dedent("\n".join(line.rstrip() for line in collected))
    return dedented.split("\n"), end


class DirectiveScanner:
    """Tokenizes datafile text into an ordered list of directives."""

    def scan(self, content: str) -> List[Directive]:
        lines = split_lines(content)
        directives: List[Directive] = []
        i = 0

        while i < len(lines):
            stripped = lines[i].strip()
            if not stripped or stripped.startswith("#"):
                i += 1
                continue

            keyword, value = split_directive_line(stripped)
            if value == BLOCK_MARKER:
                block, next_index = read_block(lines, i + 1)
                directives.append(Directive(
                    keyword=keyword, value="", line_number=i + 1, block=tuple(block)))
                i = next_index
                continue

            directives.append(Directive(keyword=keyword, value=value, line_number=i + 1))
            i += 1

        return directives


# =============================================================================
# VALUE HELPERS
# =============================================================================

def parse_quoted_value(value: str) -> str:
    """Strip one pair of surrounding double quotes, if present."""
    trimmed = value.strip()
    if len(trimmed) >= 2 and trimmed.startswith('"') and trimmed.endswith('"'):
        return trimmed[1:-1]
    return trimmed


def split_comma_separated(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def split_top_level_comma(value: str) -> List[str]:
    """Split on commas that are outside parentheses, quotes and backticks."""
    parts: List[str] = []
    current: List[str] = []
    depth = 0
    in_single = False
    in_double = False
    in_backtick = False
    prev = ""

    for char in value:
        if char == "`" and not in_single and not in_double:
            in_backtick = not in_backtick
        elif in_backtick:
            pass
        elif char == "'" and not in_double and prev != "\\":
            in_single = not in_single
        elif char == '"' and not in_single and prev != "\\":
            in_double = not in_double
        elif not in_single and not in_double:
            if char == "(":
                depth += 1
            elif char == ")":
                depth -= 1
            elif char == "," and depth == 0:
                part = "".join(current).strip()
                if part:
                    parts.append(part)
                current = []
                prev = char
                continue
        current.append(char)
        prev = char

    part = "".join(current).strip()
    if part:
        parts.append(part)
    return parts


def find_outside_contexts(value: str, token: str) -> int:
    """Index of ``token`` outside quotes, backticks and parentheses, or -1."""
    depth = 0
    in_single = in_double = in_backtick = False

    for i, char in enumerate(value):
        prev = value[i - 1] if i > 0 else ""
        if char == "'" and not in_double and not in_backtick and prev != "\\":
            in_single = not in_single
        elif char == '"' and not in_single and not in_backtick and prev != "\\":
            in_double = not in_double
        elif char == "`" and not in_single and not in_double:
            in_backtick = not in_backtick
        elif not (in_single or in_double or in_backtick):
            if char == "(":
                depth += 1
            elif char == ")":
                depth -= 1

        if not (in_single or in_double or in_backtick) and depth == 0:
            if value.startswith(token, i):
                return i
    return -1


def parse_boolean_flag(value: str) -> Optional[bool]:
    normalized = value.strip().lower()
    if normalized in ("true", "1"):
        return True
    if normalized in ("false", "0"):
        return False
    return None


# =============================================================================
# BASE PARSER
# =============================================================================

class BaseResourceParser(ABC):
    """Base class for the per-kind datafile grammars.

    Subclasses declare the directives they understand and build a model from
    the scanned directive stream. Any failure is raised as a
    ``MigrationParseError`` scoped to the file being parsed.
    """

    kind: ResourceKind
    directives: FrozenSet[str] = frozenset()

    def __init__(self, strict: bool = True, scanner: Optional[DirectiveScanner] = None):
        self.strict = strict
        self.scanner = scanner or DirectiveScanner()

    def parse(self, resource: ResourceFile) -> ParsedResource:
        """Parse one datafile into its model."""
        logger.debug(f"Parsing {self.kind} '{resource.name}' from {resource.file_path}")
        directives = self._filter_known(resource, self.scanner.scan(resource.content))
        try:
            return self.build(resource, directives)
        except ValidationError as e:
            messages = "; ".join(err["msg"] for err in e.errors())
            raise self.error(resource, f"Invalid {self.kind} definition: {messages}") from e

    @abstractmethod
    def build(self, resource: ResourceFile, directives: List[Directive]) -> ParsedResource:
        """Populate the model from recognized directives."""
        pass

    def error(self, resource: ResourceFile, message: str) -> MigrationParseError:
        return MigrationParseError(resource.file_path, self.kind, resource.name, message)

    def require_block(self, resource: ResourceFile, directive: Directive) -> List[str]:
        if directive.block is None:
            raise self.error(
                resource, f"{directive.keyword} must be a block ({directive.keyword} >).")
        return list(directive.block)

    def require_inline(self, resource: ResourceFile, directive: Directive) -> str:
        if directive.block is not None:
            raise self.error(resource, f"{directive.keyword} does not accept a block value.")
        return directive.value

    def _filter_known(self, resource: ResourceFile, directives: List[Directive]) -> List[Directive]:
        known = [d for d in directives if d.keyword in self.directives]
        unknown = [d for d in directives if d.keyword not in self.directives]
        if not unknown:
            return known

        if not self.strict:
            for directive in unknown:
                logger.warning(
                    f"Skipping unsupported {self.kind} directive '{directive.source}' "
                    f"in {resource.file_path}:{directive.line_number}")
            return known

        quoted = ", ".join(f'"{d.source}"' for d in unknown)
        plural = "directives" if len(unknown) > 1 else "directive"
        raise self.error(resource, f"Unsupported {self.kind} {plural} in strict mode: {quoted}")
