"""Batch-level normalization of parsed models."""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .inference import HeuristicOutputInferrer, OutputColumnInferrer
from .models import (
    DatasourceModel,
    KafkaConnectionModel,
    MigrationError,
    MigrationWarning,
    ParsedResource,
    PipeModel,
    S3ConnectionModel,
)

logger = logging.getLogger(__name__)


@dataclass
class NormalizationResult:
    models: List[ParsedResource] = field(default_factory=list)
    errors: List[MigrationError] = field(default_factory=list)
    warnings: List[MigrationWarning] = field(default_factory=list)


class ModelNormalizer:
    """Completes parsed models and checks them against each other.

    Fills inferred output columns for endpoint pipes, rejects duplicate
    names within a kind (the first model in path order wins) and reports
    dangling or mismatched references as warnings. A warning never removes a
    model from the batch.
    """

    def __init__(self, inferrer: Optional[OutputColumnInferrer] = None):
        self.inferrer = inferrer or HeuristicOutputInferrer()

    def normalize(self, models: Sequence[ParsedResource]) -> NormalizationResult:
        result = NormalizationResult()
        seen: Dict[tuple, ParsedResource] = {}

        for model in models:
            key = (model.kind, model.name)
            first = seen.get(key)
            if first is not None:
                result.errors.append(MigrationError(
                    file_path=model.file_path,
                    resource_name=model.name,
                    resource_kind=model.kind,
                    message=f'Duplicate {model.kind} name "{model.name}" (already defined in {first.file_path}).',
                ))
                continue
            seen[key] = model
            result.models.append(self._complete(model))

        result.warnings = self.check_references(result.models)
        for warning in result.warnings:
            logger.warning(f"{warning.file_path}: {warning.message}")
        return result

    def _complete(self, model: ParsedResource) -> ParsedResource:
        if not isinstance(model, PipeModel) or model.type != "endpoint":
            return model
        if model.inferred_output_columns:
            return model

        columns = self.inferrer.infer(model.output_node.sql)
        logger.debug(f"Inferred output columns for pipe '{model.name}': {columns}")
        return model.model_copy(update={"inferred_output_columns": columns})

    def check_references(self, models: Sequence[ParsedResource]) -> List[MigrationWarning]:
        """Report references that do not resolve within the batch."""
        connections = {
            m.name: m for m in models if isinstance(m, (KafkaConnectionModel, S3ConnectionModel))
        }
        datasources = {m.name for m in models if isinstance(m, DatasourceModel)}
        warnings: List[MigrationWarning] = []

        def warn(model: ParsedResource, message: str) -> None:
            warnings.append(MigrationWarning(
                file_path=model.file_path,
                resource_name=model.name,
                resource_kind=model.kind,
                message=message,
            ))

        for model in models:
            if isinstance(model, DatasourceModel) and model.connection_name:
                binding = "kafka" if model.kafka is not None else "s3"
                connection = connections.get(model.connection_name)
                if connection is None:
                    warn(model, f'Connection "{model.connection_name}" is not part of this migration.')
                elif connection.connection_type != binding:
                    warn(
                        model,
                        f'Connection "{model.connection_name}" is of type {connection.connection_type} '
                        f"but the datasource uses {binding} ingestion.",
                    )
            elif isinstance(model, PipeModel) and model.target_datasource:
                if model.target_datasource not in datasources:
                    warn(model, f'Target datasource "{model.target_datasource}" is not part of this migration.')

        return warnings
