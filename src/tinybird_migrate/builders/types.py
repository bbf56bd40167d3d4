"""ClickHouse column types and pipe parameter types to SDK builder expressions."""

from __future__ import annotations
import json
import re
from typing import Any, Optional

from ..errors import RenderError
from ..models import ParamDefault
from ..parsers.base import split_top_level_comma
from .base import py_literal, py_string


class UnsupportedTypeError(RenderError):
    """A type has no SDK builder equivalent."""

    def __init__(self, type_name: str, message: Optional[str] = None):
        super().__init__(message or f'Unsupported column type in strict mode: "{type_name}"')
        self.type_name = type_name


SIMPLE_TYPES = {
    "String": "t.string()",
    "UUID": "t.uuid()",
    "Int8": "t.int8()",
    "Int16": "t.int16()",
    "Int32": "t.int32()",
    "Int64": "t.int64()",
    "Int128": "t.int128()",
    "Int256": "t.int256()",
    "UInt8": "t.uint8()",
    "UInt16": "t.uint16()",
    "UInt32": "t.uint32()",
    "UInt64": "t.uint64()",
    "UInt128": "t.uint128()",
    "UInt256": "t.uint256()",
    "Float32": "t.float32()",
    "Float64": "t.float64()",
    "Bool": "t.bool()",
    "Boolean": "t.bool()",
    "Date": "t.date()",
    "Date32": "t.date32()",
    "DateTime": "t.date_time()",
    "JSON": "t.json()",
    "Object": "t.json()",
    "IPv4": "t.ipv4()",
    "IPv6": "t.ipv6()",
}

# Fixed precision of the DecimalN aliases
DECIMAL_PRECISION = {"32": 9, "64": 18, "128": 38, "256": 76}

NULLABLE = re.compile(r"^Nullable\((.+)\)$")
LOW_CARDINALITY = re.compile(r"^LowCardinality\((.+)\)$")
DATETIME_TZ = re.compile(r"^DateTime\('([^']+)'\)$")
DATETIME64 = re.compile(r"^DateTime64\((\d+)(?:,\s*'([^']+)')?\)$")
FIXED_STRING = re.compile(r"^FixedString\((\d+)\)$")
DECIMAL = re.compile(r"^Decimal\((\d+)(?:,\s*(\d+))?\)$")
DECIMAL_N = re.compile(r"^Decimal(32|64|128|256)\((\d+)\)$")
ARRAY = re.compile(r"^Array\((.+)\)$")
TUPLE = re.compile(r"^Tuple\((.+)\)$")
MAP = re.compile(r"^Map\((.+)\)$")
ENUM = re.compile(r"^Enum(8|16)\((.+)\)$")
ENUM_VALUE = re.compile(r"'([^']+)'\s*=\s*-?\d+")
SIMPLE_AGGREGATE = re.compile(r"^SimpleAggregateFunction\((\w+),\s*(.+)\)$")
AGGREGATE = re.compile(r"^AggregateFunction\((\w+),\s*(.+)\)$")
AGGREGATE_NO_ARGS = re.compile(r"^AggregateFunction\((\w+)\)$")

NUMBER_LITERAL = re.compile(r"^-?\d+(\.\d+)?$")


def column_type_builder(type_name: str) -> str:
    """Map a ClickHouse type to a ``t.*`` builder expression.

    Wrappers become chained modifiers: ``LowCardinality(Nullable(String))``
    renders as ``t.string().nullable().low_cardinality()``.

    Raises:
        UnsupportedTypeError: If the type (or a nested type) is not known
    """
    ch_type = type_name.strip()

    match = NULLABLE.match(ch_type)
    if match:
        return f"{column_type_builder(match.group(1))}.nullable()"
    match = LOW_CARDINALITY.match(ch_type)
    if match:
        return f"{column_type_builder(match.group(1))}.low_cardinality()"

    if ch_type in SIMPLE_TYPES:
        return SIMPLE_TYPES[ch_type]

    match = DATETIME_TZ.match(ch_type)
    if match:
        return f"t.date_time({py_string(match.group(1))})"
    match = DATETIME64.match(ch_type)
    if match:
        precision, timezone = match.group(1), match.group(2)
        if timezone:
            return f"t.date_time64({precision}, {py_string(timezone)})"
        return f"t.date_time64({precision})"
    if ch_type == "DateTime64":
        return "t.date_time64(3)"

    match = FIXED_STRING.match(ch_type)
    if match:
        return f"t.fixed_string({match.group(1)})"
    match = DECIMAL.match(ch_type)
    if match:
        return f"t.decimal({match.group(1)}, {match.group(2) or '0'})"
    match = DECIMAL_N.match(ch_type)
    if match:
        return f"t.decimal({DECIMAL_PRECISION[match.group(1)]}, {match.group(2)})"

    match = ARRAY.match(ch_type)
    if match:
        return f"t.array({column_type_builder(match.group(1))})"
    match = TUPLE.match(ch_type)
    if match:
        elements = split_top_level_comma(match.group(1))
        if not elements:
            raise UnsupportedTypeError(type_name)
        return f"t.tuple({', '.join(column_type_builder(e) for e in elements)})"
    match = MAP.match(ch_type)
    if match:
        args = split_top_level_comma(match.group(1))
        if len(args) != 2:
            raise UnsupportedTypeError(type_name)
        return f"t.map({column_type_builder(args[0])}, {column_type_builder(args[1])})"

    match = ENUM.match(ch_type)
    if match:
        values = ENUM_VALUE.findall(match.group(2))
        if not values:
            raise UnsupportedTypeError(type_name)
        return f"t.enum{match.group(1)}({', '.join(py_string(v) for v in values)})"

    match = SIMPLE_AGGREGATE.match(ch_type)
    if match:
        return (
            f"t.simple_aggregate_function({py_string(match.group(1))}, "
            f"{column_type_builder(match.group(2))})"
        )
    match = AGGREGATE.match(ch_type)
    if match:
        return f"t.aggregate_function({py_string(match.group(1))}, {column_type_builder(match.group(2))})"
    match = AGGREGATE_NO_ARGS.match(ch_type)
    if match and match.group(1) == "count":
        return 't.aggregate_function("count", t.uint64())'

    if ch_type.startswith("Nested("):
        return "t.json()"

    raise UnsupportedTypeError(type_name)


def base_type_name(type_name: str) -> str:
    """Strip Nullable/LowCardinality wrappers."""
    current = type_name.strip()
    while True:
        match = NULLABLE.match(current) or LOW_CARDINALITY.match(current)
        if not match:
            return current
        current = match.group(1).strip()


def is_boolean_type(type_name: str) -> bool:
    return base_type_name(type_name) in ("Bool", "Boolean")


def parse_default_literal(expression: str) -> Any:
    """Parse a column DEFAULT expression as a literal value.

    Supports NULL, numbers, single-quoted strings and JSON objects or arrays.

    Raises:
        RenderError: For expressions that are not plain literals
    """
    trimmed = expression.strip()
    if trimmed == "NULL":
        return None
    if NUMBER_LITERAL.match(trimmed):
        return float(trimmed) if "." in trimmed else int(trimmed)
    if len(trimmed) >= 2 and trimmed.startswith("'") and trimmed.endswith("'"):
        return trimmed[1:-1].replace("\\'", "'")
    if (trimmed.startswith("{") and trimmed.endswith("}")) or (trimmed.startswith("[") and trimmed.endswith("]")):
        try:
            return json.loads(trimmed)
        except ValueError as e:
            raise RenderError(f"Unsupported literal value: {expression}") from e
    raise RenderError(f"Unsupported literal value: {expression}")


def column_default(type_name: str, expression: str, column_name: str) -> str:
    """Render the ``.default(...)`` argument for a column."""
    value = parse_default_literal(expression)
    if is_boolean_type(type_name) and isinstance(value, int) and not isinstance(value, bool):
        if value not in (0, 1):
            raise RenderError(f'Boolean default value must be 0 or 1 for column "{column_name}".')
        value = value == 1
    return py_literal(value)


PARAM_TYPES = {
    "String": "p.string()",
    "UUID": "p.uuid()",
    "Int8": "p.int8()",
    "Int16": "p.int16()",
    "Int32": "p.int32()",
    "Int64": "p.int64()",
    "UInt8": "p.uint8()",
    "UInt16": "p.uint16()",
    "UInt32": "p.uint32()",
    "UInt64": "p.uint64()",
    "Float32": "p.float32()",
    "Float64": "p.float64()",
    "Boolean": "p.boolean()",
    "Bool": "p.boolean()",
    "Date": "p.date()",
    "DateTime": "p.date_time()",
    "DateTime64": "p.date_time64()",
    "Array": "p.array(p.string())",
}


def param_type_builder(
    param_type: str,
    required: bool = True,
    default_value: Optional[ParamDefault] = None,
    strict: bool = True,
) -> str:
    """Map a parameter type to a ``p.*`` builder, optional when it has a default.

    Raises:
        UnsupportedTypeError: In strict mode, for types without a ``p.*`` builder
    """
    builder = PARAM_TYPES.get(param_type)
    if builder is None:
        if strict:
            raise UnsupportedTypeError(
                param_type, f'Unsupported parameter type in strict mode: "{param_type}"')
        builder = "p.string()"

    if default_value is not None:
        return f"{builder}.optional({py_literal(default_value)})"
    if not required:
        return f"{builder}.optional()"
    return builder
