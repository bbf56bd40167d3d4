"""Renders datasources as ``define_datasource`` calls."""

from __future__ import annotations
import logging
from typing import List, Optional, Tuple

from ..errors import RenderError
from ..models import DatasourceColumnModel, DatasourceEngineModel, DatasourceModel
from .base import (
    INDENT,
    BaseResourceBuilder,
    key_or_keys,
    py_literal,
    py_string,
    render_block,
    render_call,
    render_mapping,
    sql_literal,
)
from .types import UnsupportedTypeError, column_default, column_type_builder

logger = logging.getLogger(__name__)

ENGINE_FUNCTIONS = {
    "MergeTree": "merge_tree",
    "ReplacingMergeTree": "replacing_merge_tree",
    "SummingMergeTree": "summing_merge_tree",
    "AggregatingMergeTree": "aggregating_merge_tree",
    "CollapsingMergeTree": "collapsing_merge_tree",
    "VersionedCollapsingMergeTree": "versioned_collapsing_merge_tree",
}


class DatasourceBuilder(BaseResourceBuilder):
    """Builder for datasource definitions.

    Columns map 1:1 onto ``t.*`` builders in declaration order. In strict
    mode an unknown column type or a DEFAULT that is not a plain literal
    raises ``RenderError``; otherwise the column falls back to
    ``t.string()`` (or drops the default) and a trailing comment records what
    was not migrated.
    """

    def imports(self, model: DatasourceModel) -> List[str]:
        names = ["define_datasource", "t", "engine"]
        if any(c.json_path for c in model.columns):
            names.append("column")
        return names

    def render(self, model: DatasourceModel) -> str:
        has_json_path = any(c.json_path is not None for c in model.columns)
        missing_json_path = any(c.json_path is None for c in model.columns)
        if has_json_path and missing_json_path:
            raise RenderError(
                f'Datasource "{model.name}" has mixed json path usage. '
                "This is not representable in strict mode.")

        kwargs: List[Tuple[str, Optional[str]]] = [
            ("description", py_string(model.description) if model.description else None),
            ("json_paths", None if has_json_path else "False"),
            ("schema", self._render_schema(model)),
            ("engine", self.render_engine(model.engine)),
            ("kafka", self._render_kafka(model)),
            ("s3", self._render_s3(model)),
            ("forward_query", sql_literal(model.forward_query) if model.forward_query else None),
            ("tokens", self._render_tokens(model)),
            ("shared_with", py_literal(model.shared_with) if model.shared_with else None),
        ]
        return self.assignment(model, "define_datasource", kwargs)

    # =========================================================================
    # SCHEMA
    # =========================================================================

    def _render_schema(self, model: DatasourceModel) -> str:
        lines = ["{"]
        for column in model.columns:
            value, notes = self._render_column(model, column)
            line = f"{INDENT * 2}{py_string(column.name)}: {value},"
            if notes:
                line += "  # " + "; ".join(notes)
            lines.append(line)
        lines.append(f"{INDENT}}}")
        return "\n".join(lines)

    def _render_column(self, model: DatasourceModel, column: DatasourceColumnModel) -> Tuple[str, List[str]]:
        notes: List[str] = []
        try:
            builder = column_type_builder(column.type)
        except UnsupportedTypeError:
            if self.strict:
                raise
            logger.debug(f"Column '{column.name}' of '{model.name}' falls back to t.string()")
            builder = "t.string()"
            notes.append(f"unsupported type: {column.type}")

        if column.default_expression is not None:
            try:
                builder += f".default({column_default(column.type, column.default_expression, column.name)})"
            except RenderError:
                if self.strict:
                    raise
                notes.append(f"default not migrated: {column.default_expression}")

        if column.codec:
            builder += f".codec({py_string(column.codec)})"

        if column.json_path:
            builder = f"column({builder}, json_path={py_string(column.json_path)})"
        return builder, notes

    # =========================================================================
    # ENGINE AND INGESTION
    # =========================================================================

    def render_engine(self, engine_model: DatasourceEngineModel) -> str:
        function = ENGINE_FUNCTIONS.get(engine_model.type)
        if function is None:
            raise RenderError(f'Unsupported engine type in strict mode: "{engine_model.type}"')

        options = [f"sorting_key={key_or_keys(engine_model.sorting_key)}"]
        if engine_model.partition_key:
            options.append(f"partition_key={py_string(engine_model.partition_key)}")
        if engine_model.primary_key:
            options.append(f"primary_key={key_or_keys(engine_model.primary_key)}")
        for field_name in ("ttl", "ver", "is_deleted", "sign", "version"):
            value = getattr(engine_model, field_name)
            if value:
                options.append(f"{field_name}={py_string(value)}")
        if engine_model.summing_columns:
            options.append(f"columns={py_literal(engine_model.summing_columns)}")
        if engine_model.settings:
            options.append(f"settings={py_literal(engine_model.settings)}")

        return render_call(f"engine.{function}", options, level=1)

    def _render_kafka(self, model: DatasourceModel) -> Optional[str]:
        kafka = model.kafka
        if kafka is None:
            return None
        entries = [
            ("connection", self.registry.lookup("connection", kafka.connection_name)),
            ("topic", py_string(kafka.topic)),
        ]
        if kafka.group_id:
            entries.append(("group_id", py_string(kafka.group_id)))
        if kafka.auto_offset_reset:
            entries.append(("auto_offset_reset", py_string(kafka.auto_offset_reset)))
        if kafka.store_raw_value is not None:
            entries.append(("store_raw_value", py_literal(kafka.store_raw_value)))
        return render_mapping(entries, level=1)

    def _render_s3(self, model: DatasourceModel) -> Optional[str]:
        s3 = model.s3
        if s3 is None:
            return None
        entries = [
            ("connection", self.registry.lookup("connection", s3.connection_name)),
            ("bucket_uri", py_string(s3.bucket_uri)),
        ]
        if s3.schedule:
            entries.append(("schedule", py_string(s3.schedule)))
        if s3.from_timestamp:
            entries.append(("from_timestamp", py_string(s3.from_timestamp)))
        return render_mapping(entries, level=1)

    def _render_tokens(self, model: DatasourceModel) -> Optional[str]:
        if not model.tokens:
            return None
        items = [
            py_literal({"name": token.name, "permissions": [token.scope]})
            for token in model.tokens
        ]
        return render_block(items, "[", "]", level=1)
