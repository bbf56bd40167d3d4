"""Renderers turning parsed models into SDK definitions."""

from .base import BaseResourceBuilder, IdentifierRegistry, py_literal, sql_literal, to_identifier
from .connection import ConnectionBuilder
from .datasource import DatasourceBuilder
from .pipe import PipeBuilder
from .types import UnsupportedTypeError, column_type_builder, param_type_builder

__all__ = [
    "BaseResourceBuilder",
    "IdentifierRegistry",
    "ConnectionBuilder",
    "DatasourceBuilder",
    "PipeBuilder",
    "UnsupportedTypeError",
    "column_type_builder",
    "param_type_builder",
    "py_literal",
    "sql_literal",
    "to_identifier",
]
