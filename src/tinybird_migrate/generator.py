"""Assembly of the generated migration module."""

from __future__ import annotations
import logging
from typing import Dict, List, Sequence

from .builders import BaseResourceBuilder, ConnectionBuilder, DatasourceBuilder, IdentifierRegistry, PipeBuilder
from .builders.base import SDK_NAMES
from .models import ParsedResource

logger = logging.getLogger(__name__)

SDK_MODULE = "tinybird_sdk"
KIND_ORDER = {"connection": 0, "datasource": 1, "pipe": 2}
SECTION_TITLES = (
    ("connection", "Connections"),
    ("datasource", "Datasources"),
    ("pipe", "Pipes"),
)

HEADER = '''"""Generated by tinybird-migrate.

Review endpoint output schemas and any defaults before production use.
"""
'''


def sort_resources(models: Sequence[ParsedResource]) -> List[ParsedResource]:
    """Connections, then datasources, then pipes; each group by name."""
    return sorted(models, key=lambda m: (KIND_ORDER[m.kind], m.name))


class MigrationCodeGenerator:
    """Renders parsed models into one Python module.

    Rendering is a pure function of the models: the same models always
    produce byte-identical text. References between resources are not
    validated here.
    """

    def __init__(self, strict: bool = True):
        self.strict = strict

    def _builders(self, registry: IdentifierRegistry) -> Dict[str, BaseResourceBuilder]:
        return {
            "connection": ConnectionBuilder(registry, self.strict),
            "datasource": DatasourceBuilder(registry, self.strict),
            "pipe": PipeBuilder(registry, self.strict),
        }

    def check(self, model: ParsedResource) -> None:
        """Render one model on its own.

        Raises:
            RenderError: If the model cannot be represented
        """
        registry = IdentifierRegistry()
        self._builders(registry)[model.kind].render(model)

    def render(self, models: Sequence[ParsedResource]) -> str:
        ordered = sort_resources(models)
        registry = IdentifierRegistry()
        registry.register_all(ordered)
        builders = self._builders(registry)

        used = set()
        sections: List[str] = []
        for kind, title in SECTION_TITLES:
            group = [m for m in ordered if m.kind == kind]
            if not group:
                continue
            builder = builders[kind]
            statements = []
            for model in group:
                used.update(builder.imports(model))
                statements.append(builder.render(model))
            sections.append(f"# {title}\n\n" + "\n\n".join(statements))

        imports = [name for name in SDK_NAMES if name in used]
        parts = [HEADER]
        if imports:
            parts.append(f"from {SDK_MODULE} import {', '.join(imports)}\n")
        parts.extend(sections)

        logger.debug(f"Rendered {len(ordered)} resources using {len(imports)} SDK names")
        return "\n\n".join(part.rstrip("\n") for part in parts) + "\n"


def render_migration_module(models: Sequence[ParsedResource], strict: bool = True) -> str:
    """Render the migration module for already-parsed models."""
    return MigrationCodeGenerator(strict=strict).render(models)
