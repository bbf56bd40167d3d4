"""Datafile grammars for datasources, pipes and connections."""

from typing import Dict, Type

from ..models import ParsedResource, ResourceFile
from .base import BaseResourceParser, Directive, DirectiveScanner
from .connection import ConnectionParser
from .datasource import DatasourceParser
from .params import infer_params_from_sql, normalize_sql_placeholders
from .pipe import PipeParser

PARSERS: Dict[str, Type[BaseResourceParser]] = {
    "datasource": DatasourceParser,
    "pipe": PipeParser,
    "connection": ConnectionParser,
}


def get_parser(kind: str, strict: bool = True) -> BaseResourceParser:
    """Get the grammar for a resource kind."""
    parser_class = PARSERS.get(kind)
    if parser_class is None:
        raise ValueError(f"Unsupported resource kind: {kind}")
    return parser_class(strict=strict)


def parse_resource_file(resource: ResourceFile, strict: bool = True) -> ParsedResource:
    """Parse one discovered datafile into its typed model.

    Raises:
        MigrationParseError: If the file cannot be parsed
    """
    return get_parser(resource.kind, strict=strict).parse(resource)


__all__ = [
    "BaseResourceParser",
    "ConnectionParser",
    "DatasourceParser",
    "Directive",
    "DirectiveScanner",
    "PARSERS",
    "PipeParser",
    "get_parser",
    "infer_params_from_sql",
    "normalize_sql_placeholders",
    "parse_resource_file",
]
