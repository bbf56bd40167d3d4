"""Grammar for .pipe files."""

from __future__ import annotations
import logging
import re
from typing import Dict, List, Optional

from ..models import PipeModel, PipeNodeModel, PipeTokenModel, PipeType, ResourceFile
from .base import BaseResourceParser, Directive, parse_quoted_value
from .params import ParamSyntaxError, infer_params_from_sql, normalize_sql_placeholders

logger = logging.getLogger(__name__)

TEMPLATE_MARKER = "%"
PIPE_TYPES: Dict[str, PipeType] = {
    "endpoint": "endpoint",
    "materialized": "materialized",
    "copy": "copy",
}
QUOTED_TOKEN_PATTERN = re.compile(r'^"([^"]+)"(?:\s+(\S+))?$')


class _PendingNode:
    """A NODE whose SQL block has not been read yet."""

    def __init__(self, name: str):
        self.name = name
        self.description: Optional[str] = None


class PipeParser(BaseResourceParser):
    """Parses NODE/SQL sequences plus endpoint, materialized and copy settings.

    Nodes are consumed as a small state machine: ``NODE`` opens a node, an
    optional ``DESCRIPTION`` describes it, and the following ``SQL >`` block
    closes it. Any other directive between ``NODE`` and ``SQL`` fails the file.
    """

    kind = "pipe"
    directives = frozenset({
        "DESCRIPTION",
        "NODE",
        "SQL",
        "TYPE",
        "CACHE",
        "DATASOURCE",
        "DEPLOYMENT_METHOD",
        "TARGET_DATASOURCE",
        "COPY_SCHEDULE",
        "COPY_MODE",
        "TOKEN",
    })

    def build(self, resource: ResourceFile, directives: List[Directive]) -> PipeModel:
        nodes: List[PipeNodeModel] = []
        raw_sqls: List[str] = []
        pending: Optional[_PendingNode] = None
        tokens: List[PipeTokenModel] = []

        description: Optional[str] = None
        pipe_type: PipeType = "pipe"
        cache_ttl: Optional[int] = None
        materialized_datasource: Optional[str] = None
        deployment_method: Optional[str] = None
        copy_target_datasource: Optional[str] = None
        copy_schedule: Optional[str] = None
        copy_mode: Optional[str] = None

        for directive in directives:
            keyword = directive.keyword

            if pending is not None and keyword not in ("DESCRIPTION", "SQL"):
                raise self.error(resource, f'Node "{pending.name}" is missing SQL > block.')

            if keyword == "NODE":
                name = parse_quoted_value(self.require_inline(resource, directive))
                if not name:
                    raise self.error(resource, "NODE directive requires a name.")
                if any(node.name == name for node in nodes):
                    raise self.error(resource, f'Duplicate node name: "{name}"')
                pending = _PendingNode(name)
            elif keyword == "SQL":
                if pending is None:
                    raise self.error(resource, "SQL block must follow a NODE directive.")
                sql = self._read_sql(resource, pending.name, directive)
                raw_sqls.append(sql)
                nodes.append(PipeNodeModel(
                    name=pending.name,
                    description=pending.description,
                    sql=normalize_sql_placeholders(sql),
                ))
                pending = None
            elif keyword == "DESCRIPTION":
                text = directive.text if directive.is_block else parse_quoted_value(directive.value)
                if pending is not None:
                    pending.description = text
                elif description is None:
                    description = text
                elif nodes:
                    nodes[-1] = nodes[-1].model_copy(update={"description": text})
                else:
                    raise self.error(
                        resource, "DESCRIPTION block is not attached to a node or pipe header.")
            elif keyword == "TYPE":
                raw_type = parse_quoted_value(self.require_inline(resource, directive))
                if raw_type.lower() not in PIPE_TYPES:
                    raise self.error(resource, f'Unsupported TYPE value in strict mode: "{raw_type}"')
                pipe_type = PIPE_TYPES[raw_type.lower()]
            elif keyword == "CACHE":
                cache_ttl = self._parse_cache(resource, self.require_inline(resource, directive))
            elif keyword == "DATASOURCE":
                materialized_datasource = parse_quoted_value(self.require_inline(resource, directive))
            elif keyword == "DEPLOYMENT_METHOD":
                value = parse_quoted_value(self.require_inline(resource, directive))
                if value != "alter":
                    raise self.error(resource, f'Unsupported DEPLOYMENT_METHOD: "{value}"')
                deployment_method = value
            elif keyword == "TARGET_DATASOURCE":
                copy_target_datasource = parse_quoted_value(self.require_inline(resource, directive))
            elif keyword == "COPY_SCHEDULE":
                copy_schedule = parse_quoted_value(self.require_inline(resource, directive))
            elif keyword == "COPY_MODE":
                value = parse_quoted_value(self.require_inline(resource, directive))
                if value not in ("append", "replace"):
                    raise self.error(resource, f'Unsupported COPY_MODE: "{value}"')
                copy_mode = value
            elif keyword == "TOKEN":
                tokens.append(self._parse_token(resource, self.require_inline(resource, directive)))

        if pending is not None:
            raise self.error(resource, f'Node "{pending.name}" is missing SQL > block.')
        if not nodes:
            raise self.error(resource, "At least one NODE is required.")

        if pipe_type != "endpoint" and cache_ttl is not None:
            raise self.error(resource, "CACHE is only supported for TYPE endpoint.")
        if pipe_type == "materialized" and not materialized_datasource:
            raise self.error(resource, "DATASOURCE is required for TYPE MATERIALIZED.")
        if pipe_type == "copy" and not copy_target_datasource:
            raise self.error(resource, "TARGET_DATASOURCE is required for TYPE COPY.")

        params = []
        if pipe_type not in ("materialized", "copy"):
            try:
                params = infer_params_from_sql("\n".join(raw_sqls))
            except ParamSyntaxError as e:
                raise self.error(resource, str(e)) from e
            logger.debug(f"Pipe '{resource.name}' declares {len(params)} parameters")

        return PipeModel(
            name=resource.name,
            file_path=resource.file_path,
            description=description,
            type=pipe_type,
            nodes=nodes,
            cache_ttl=cache_ttl,
            materialized_datasource=materialized_datasource,
            deployment_method=deployment_method,
            copy_target_datasource=copy_target_datasource,
            copy_schedule=copy_schedule,
            copy_mode=copy_mode,
            tokens=tokens,
            params=params,
        )

    def _read_sql(self, resource: ResourceFile, node_name: str, directive: Directive) -> str:
        if not directive.is_block:
            raise self.error(resource, f'Node "{node_name}" is missing SQL > block.')

        lines = list(directive.block)
        if not lines:
            raise self.error(resource, f'Node "{node_name}" has an empty SQL block.')
        if lines[0].strip() == TEMPLATE_MARKER:
            lines = lines[1:]

        sql = "\n".join(lines).strip()
        if not sql:
            raise self.error(resource, f"Node \"{node_name}\" has SQL marker '%' but no SQL body.")
        return sql

    def _parse_cache(self, resource: ResourceFile, value: str) -> int:
        raw = value.strip()
        try:
            ttl = int(raw)
        except ValueError:
            raise self.error(resource, f'Invalid CACHE value: "{value}"') from None
        if ttl < 0:
            raise self.error(resource, f'Invalid CACHE value: "{value}"')
        return ttl

    def _parse_token(self, resource: ResourceFile, value: str) -> PipeTokenModel:
        trimmed = value.strip()
        quoted = QUOTED_TOKEN_PATTERN.match(trimmed)
        if quoted:
            name, scope = quoted.group(1), quoted.group(2) or "READ"
        else:
            parts = trimmed.split()
            if not parts:
                raise self.error(resource, "Invalid TOKEN line.")
            if len(parts) > 2:
                raise self.error(resource, f'Unsupported TOKEN syntax in strict mode: "{value}"')
            name = parse_quoted_value(parts[0])
            scope = parts[1] if len(parts) > 1 else "READ"

        if scope != "READ":
            raise self.error(resource, f'Unsupported pipe token scope: "{scope}"')
        return PipeTokenModel(name=name, scope="READ")
