"""Extraction of typed endpoint parameters from ``{{ ... }}`` SQL templates."""

from __future__ import annotations
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..models import ParamDefault, PipeParamModel
from .base import split_top_level_comma

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")
CALL_PATTERN = re.compile(r"([a-zA-Z_][a-zA-Z0-9_]*)\s*\(([^()]*)\)")
IDENTIFIER_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
NUMBER_PATTERN = re.compile(r"^-?\d+(\.\d+)?$")

IGNORED_FUNCTIONS = frozenset({"error", "custom_error"})

TYPE_ALIASES = {
    "string": "String",
    "uuid": "UUID",
    "int": "Int32",
    "integer": "Int32",
    "int8": "Int8",
    "int16": "Int16",
    "int32": "Int32",
    "int64": "Int64",
    "uint8": "UInt8",
    "uint16": "UInt16",
    "uint32": "UInt32",
    "uint64": "UInt64",
    "float32": "Float32",
    "float64": "Float64",
    "boolean": "Boolean",
    "bool": "Boolean",
    "date": "Date",
    "datetime": "DateTime",
    "datetime64": "DateTime64",
    "array": "Array",
    "column": "column",
    "json": "JSON",
}


class ParamSyntaxError(ValueError):
    """A template placeholder could not be turned into a parameter."""


@dataclass(frozen=True)
class TemplateCall:
    function_name: str
    args_raw: str
    full_call: str
    start: int
    end: int


def map_template_function(function_name: str) -> Optional[str]:
    """Map a template function such as ``Int32`` or ``DateTime64_3`` to a param type."""
    lower = function_name.lower()
    if lower in TYPE_ALIASES:
        return TYPE_ALIASES[lower]
    if lower.startswith("datetime64"):
        return "DateTime64"
    if lower.startswith("datetime"):
        return "DateTime"
    return None


def _mask_quoted_parentheses(expression: str) -> str:
    """Blank out parentheses inside quotes so calls can be matched with a regex."""
    output = []
    in_single = in_double = False
    prev = ""
    for char in expression:
        if char == "'" and not in_double and prev != "\\":
            in_single = not in_single
        elif char == '"' and not in_single and prev != "\\":
            in_double = not in_double
        elif (in_single or in_double) and char in "()":
            output.append(" ")
            prev = char
            continue
        output.append(char)
        prev = char
    return "".join(output)


def extract_template_calls(expression: str) -> List[TemplateCall]:
    """Innermost function calls of a template expression."""
    masked = _mask_quoted_parentheses(expression)
    calls = []
    for match in CALL_PATTERN.finditer(masked):
        full_call = expression[match.start():match.end()]
        open_paren = full_call.index("(")
        calls.append(TemplateCall(
            function_name=match.group(1),
            args_raw=full_call[open_paren + 1:full_call.rindex(")")],
            full_call=full_call,
            start=match.start(),
            end=match.end(),
        ))
    return calls


def _is_param_call(call: TemplateCall) -> bool:
    if call.function_name.lower() in IGNORED_FUNCTIONS:
        return False
    param_type = map_template_function(call.function_name)
    return param_type is not None and param_type != "Array"


def _strip_call_options(expression: str) -> str:
    calls = extract_template_calls(expression)
    rewritten: List[str] = []
    cursor = 0
    for call in calls:
        rewritten.append(expression[cursor:call.start])
        replacement = call.full_call
        if _is_param_call(call):
            args = split_top_level_comma(call.args_raw)
            if args and IDENTIFIER_PATTERN.match(args[0].strip()):
                replacement = f"{call.function_name}({args[0].strip()})"
        rewritten.append(replacement)
        cursor = call.end
    rewritten.append(expression[cursor:])
    return "".join(rewritten).strip()


def normalize_sql_placeholders(sql: str) -> str:
    """Drop defaults and options from typed placeholders.

    ``{{ Int32(limit, 10, required=False) }}`` becomes ``{{ Int32(limit) }}``
    since defaults and requiredness travel with the declared parameter.
    Placeholders without typed parameter calls are left byte-for-byte intact.
    """
    def replace(match: "re.Match[str]") -> str:
        expression = match.group(1)
        rewritten = _strip_call_options(expression)
        if rewritten == expression.strip():
            return match.group(0)
        return f"{{{{ {rewritten} }}}}"

    return PLACEHOLDER_PATTERN.sub(replace, sql)


def parse_param_default(raw_value: str) -> ParamDefault:
    trimmed = raw_value.strip()
    if NUMBER_PATTERN.match(trimmed):
        return float(trimmed) if "." in trimmed else int(trimmed)
    if trimmed.lower() in ("true", "false"):
        return trimmed.lower() == "true"
    if len(trimmed) >= 2 and trimmed[0] == trimmed[-1] and trimmed[0] in ("'", '"'):
        return trimmed[1:-1]
    raise ParamSyntaxError(f'Unsupported parameter default value: "{raw_value}"')


def _parse_required(raw_value: str) -> bool:
    normalized = raw_value.strip().lower()
    if normalized in ("true", "1"):
        return True
    if normalized in ("false", "0"):
        return False
    raise ParamSyntaxError(f'Unsupported required value: "{raw_value}"')


def _split_keyword(raw_arg: str) -> Optional[Tuple[str, str]]:
    key, sep, value = raw_arg.partition("=")
    key, value = key.strip(), value.strip()
    if not sep or not IDENTIFIER_PATTERN.match(key) or not value:
        return None
    return key, value


def parse_param_options(raw_args: List[str]) -> Tuple[Optional[ParamDefault], Optional[bool], Optional[str]]:
    """Parse positional default and ``default=``/``required=``/``description=`` keywords."""
    default_value: Optional[ParamDefault] = None
    required: Optional[bool] = None
    description: Optional[str] = None

    for raw_arg in raw_args:
        trimmed = raw_arg.strip()
        if not trimmed:
            continue
        keyword = _split_keyword(trimmed)
        if keyword is None:
            default_value = parse_param_default(trimmed)
            continue

        key, value = keyword[0].lower(), keyword[1]
        if key == "default":
            default_value = parse_param_default(value)
        elif key == "required":
            required = _parse_required(value)
        elif key == "description":
            parsed = parse_param_default(value)
            if not isinstance(parsed, str):
                raise ParamSyntaxError(f'Unsupported description value: "{value}"')
            description = parsed

    return default_value, required, description


def infer_params_from_sql(sql: str) -> List[PipeParamModel]:
    """Collect typed parameters declared through template placeholders.

    Repeated parameters are merged: the last seen type wins, and a parameter
    that is optional (or has a default) in any usage is optional overall.

    Raises:
        ParamSyntaxError: On unknown template functions or malformed placeholders
    """
    params: Dict[str, dict] = {}

    for placeholder in PLACEHOLDER_PATTERN.finditer(sql):
        for call in extract_template_calls(placeholder.group(1)):
            if call.function_name.lower() in IGNORED_FUNCTIONS:
                continue

            param_type = map_template_function(call.function_name)
            if param_type is None:
                raise ParamSyntaxError(
                    f'Unsupported placeholder function in strict mode: "{call.function_name}"')

            args = split_top_level_comma(call.args_raw)
            if not args:
                raise ParamSyntaxError(f'Invalid template placeholder: "{call.full_call}"')

            name = args[0].strip()
            if not IDENTIFIER_PATTERN.match(name):
                if param_type == "column":
                    continue
                raise ParamSyntaxError(
                    f'Unsupported parameter name in placeholder: "{{{{ {call.full_call} }}}}"')

            default_value = required = description = None
            if len(args) > 1 and param_type != "Array":
                default_value, required, description = parse_param_options(args[1:])

            existing = params.get(name)
            if existing is None:
                params[name] = {
                    "name": name,
                    "type": param_type,
                    "required": required if required is not None else default_value is None,
                    "default_value": default_value,
                    "description": description,
                }
                continue

            existing["type"] = param_type
            if default_value is not None:
                existing["default_value"] = default_value
            if description:
                existing["description"] = description
            optional_anywhere = (
                not existing["required"]
                or required is False
                or existing["default_value"] is not None
            )
            existing["required"] = not optional_anywhere

    return [PipeParamModel(**params[name]) for name in sorted(params)]
