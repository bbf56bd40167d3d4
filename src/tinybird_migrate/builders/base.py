"""Shared rendering helpers for generated Python source."""

from __future__ import annotations
import json
import keyword
import logging
import math
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ..errors import RenderError
from ..models import ParsedResource, ResourceKind

logger = logging.getLogger(__name__)

INDENT = "    "

# Names imported into the generated module
SDK_NAMES = (
    "create_kafka_connection",
    "create_s3_connection",
    "define_datasource",
    "define_pipe",
    "define_materialized_view",
    "define_copy_pipe",
    "node",
    "t",
    "p",
    "engine",
    "column",
)

CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
INVALID_IDENTIFIER_CHARS = re.compile(r"[^0-9a-zA-Z_]+")


# =============================================================================
# LITERALS
# =============================================================================

def py_string(value: str) -> str:
    """Double-quoted string literal, valid both as JSON and as Python."""
    return json.dumps(value, ensure_ascii=False)


def py_literal(value: Any) -> str:
    """Render a JSON-like value (None, bool, number, str, list, dict) as Python."""
    if value is None:
        return "None"
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise RenderError(f"Unsupported numeric literal: {value}")
        return repr(value)
    if isinstance(value, str):
        return py_string(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(py_literal(item) for item in value) + "]"
    if isinstance(value, dict):
        items = ", ".join(f"{py_string(str(k))}: {py_literal(v)}" for k, v in value.items())
        return "{" + items + "}"
    raise RenderError(f"Unsupported literal value: {value!r}")


def sql_literal(sql: str) -> str:
    """String literal for SQL text; multi-line SQL keeps its layout in a triple-quoted string."""
    if "\n" not in sql:
        return py_string(sql)
    escaped = sql.replace("\\", "\\\\").replace('"', '\\"')
    return f'"""{escaped}"""'


def key_or_keys(values: Sequence[str]) -> str:
    """A single key as a string, several keys as a list."""
    if len(values) == 1:
        return py_string(values[0])
    return py_literal(list(values))


# =============================================================================
# IDENTIFIERS
# =============================================================================

def to_identifier(name: str) -> str:
    """Convert a resource name into a snake_case Python identifier.

    ``userEvents`` and ``user-events`` both become ``user_events``; keywords
    and SDK names get a trailing underscore and leading digits a leading one.
    """
    snake = CAMEL_BOUNDARY.sub("_", name)
    snake = INVALID_IDENTIFIER_CHARS.sub("_", snake).lower()
    snake = re.sub(r"_{2,}", "_", snake).strip("_")
    if not snake:
        snake = "resource"
    if snake[0].isdigit():
        snake = f"_{snake}"
    if keyword.iskeyword(snake) or snake in SDK_NAMES:
        snake = f"{snake}_"
    return snake


class IdentifierRegistry:
    """Assigns unique module-level identifiers to resources.

    Registration order decides who keeps the plain name: a later resource of
    another kind with the same identifier gets a ``_<kind>`` suffix, then a
    numeric suffix.
    """

    def __init__(self):
        self._by_resource: Dict[Tuple[str, str], str] = {}
        self._taken = set()

    def register(self, kind: ResourceKind, name: str) -> str:
        key = (kind, name)
        if key in self._by_resource:
            return self._by_resource[key]

        base = to_identifier(name)
        candidate = base
        if candidate in self._taken:
            candidate = f"{base}_{kind}"
            suffix = 2
            while candidate in self._taken:
                candidate = f"{base}_{kind}_{suffix}"
                suffix += 1

        self._taken.add(candidate)
        self._by_resource[key] = candidate
        return candidate

    def register_all(self, models: Iterable[ParsedResource]) -> None:
        for model in models:
            self.register(model.kind, model.name)

    def lookup(self, kind: ResourceKind, name: str) -> str:
        """Identifier of a registered resource, or the converted name for unknown references."""
        return self._by_resource.get((kind, name), to_identifier(name))


# =============================================================================
# CALL RENDERING
# =============================================================================

def render_block(items: Sequence[str], opener: str, closer: str, level: int) -> str:
    """Render items one per line with trailing commas, indented one level deeper."""
    if not items:
        return f"{opener}{closer}"
    inner = INDENT * (level + 1)
    body = "".join(f"{inner}{item},\n" for item in items)
    return f"{opener}\n{body}{INDENT * level}{closer}"


def render_mapping(entries: Sequence[Tuple[str, str]], level: int) -> str:
    """Render a dict literal from already-rendered (key, value) pairs."""
    return render_block([f"{py_string(k)}: {v}" for k, v in entries], "{", "}", level)


def render_call(function: str, args: Sequence[str], level: int = 0) -> str:
    return render_block(args, f"{function}(", ")", level)


class BaseResourceBuilder(ABC):
    """Base class for the per-kind renderers."""

    def __init__(self, registry: IdentifierRegistry, strict: bool = True):
        self.registry = registry
        self.strict = strict

    @abstractmethod
    def render(self, model: ParsedResource) -> str:
        """Render the assignment statement defining ``model``."""
        pass

    @abstractmethod
    def imports(self, model: ParsedResource) -> List[str]:
        """SDK names the rendered statement uses."""
        pass

    def assignment(self, model: ParsedResource, function: str, kwargs: List[Tuple[str, Optional[str]]]) -> str:
        """``identifier = function("name", key=value, ...)`` skipping None values."""
        identifier = self.registry.register(model.kind, model.name)
        args = [py_string(model.name)]
        args.extend(f"{key}={value}" for key, value in kwargs if value is not None)
        return f"{identifier} = {render_call(function, args)}\n"
