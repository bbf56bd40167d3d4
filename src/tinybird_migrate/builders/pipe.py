"""Renders pipes, endpoints, materialized views and copy pipes."""

from __future__ import annotations
from typing import List, Optional, Tuple

from ..models import PipeModel, PipeNodeModel
from .base import (
    BaseResourceBuilder,
    py_literal,
    py_string,
    render_block,
    render_call,
    render_mapping,
    sql_literal,
)
from .types import param_type_builder

PIPE_FUNCTIONS = {
    "pipe": "define_pipe",
    "endpoint": "define_pipe",
    "materialized": "define_materialized_view",
    "copy": "define_copy_pipe",
}


class PipeBuilder(BaseResourceBuilder):
    """Builder for pipe definitions, nodes kept in declared order."""

    def imports(self, model: PipeModel) -> List[str]:
        names = [PIPE_FUNCTIONS[model.type], "node"]
        if model.params and model.type in ("pipe", "endpoint"):
            names.append("p")
        if model.type == "endpoint" and model.inferred_output_columns:
            names.append("t")
        return names

    def render(self, model: PipeModel) -> str:
        kwargs: List[Tuple[str, Optional[str]]] = [
            ("description", py_string(model.description) if model.description else None),
        ]

        if model.type in ("pipe", "endpoint"):
            kwargs.append(("params", self._render_params(model)))
        elif model.type == "materialized":
            kwargs.append(("datasource", self.registry.lookup("datasource", model.materialized_datasource)))
            if model.deployment_method:
                kwargs.append(("deployment_method", py_string(model.deployment_method)))
        elif model.type == "copy":
            kwargs.append(("datasource", self.registry.lookup("datasource", model.copy_target_datasource)))
            if model.copy_mode:
                kwargs.append(("copy_mode", py_string(model.copy_mode)))
            if model.copy_schedule:
                kwargs.append(("copy_schedule", py_string(model.copy_schedule)))

        nodes = [self._render_node(n) for n in model.nodes]
        kwargs.append(("nodes", render_block(nodes, "[", "]", level=1)))

        if model.type == "endpoint":
            kwargs.append(("endpoint", self._render_endpoint(model)))
            if model.inferred_output_columns:
                kwargs.append(("output", render_mapping(
                    [(name, "t.string()") for name in model.inferred_output_columns], level=1)))

        if model.tokens:
            tokens = [py_literal({"name": token.name}) for token in model.tokens]
            kwargs.append(("tokens", render_block(tokens, "[", "]", level=1)))

        return self.assignment(model, PIPE_FUNCTIONS[model.type], kwargs)

    def _render_params(self, model: PipeModel) -> Optional[str]:
        if not model.params:
            return None
        entries = [
            (param.name, param_type_builder(param.type, param.required, param.default_value, self.strict))
            for param in model.params
        ]
        return render_mapping(entries, level=1)

    @staticmethod
    def _render_node(node_model: PipeNodeModel) -> str:
        args = [f"name={py_string(node_model.name)}"]
        if node_model.description:
            args.append(f"description={py_string(node_model.description)}")
        args.append(f"sql={sql_literal(node_model.sql)}")
        return render_call("node", args, level=2)

    @staticmethod
    def _render_endpoint(model: PipeModel) -> str:
        if model.cache_ttl is None:
            return "True"
        return py_literal({"enabled": True, "cache": {"enabled": True, "ttl": model.cache_ttl}})
