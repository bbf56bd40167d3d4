"""Renders Kafka and S3 connections."""

from __future__ import annotations
from typing import List, Optional, Tuple

from ..models import ConnectionModel, KafkaConnectionModel
from .base import BaseResourceBuilder, py_string


def _optional(value: Optional[str]) -> Optional[str]:
    return py_string(value) if value else None


class ConnectionBuilder(BaseResourceBuilder):
    """Builder for ``create_kafka_connection`` / ``create_s3_connection`` calls."""

    def imports(self, model: ConnectionModel) -> List[str]:
        return [self._function(model)]

    def render(self, model: ConnectionModel) -> str:
        kwargs: List[Tuple[str, Optional[str]]]
        if isinstance(model, KafkaConnectionModel):
            kwargs = [
                ("bootstrap_servers", py_string(model.bootstrap_servers)),
                ("security_protocol", _optional(model.security_protocol)),
                ("sasl_mechanism", _optional(model.sasl_mechanism)),
                ("key", _optional(model.key)),
                ("secret", _optional(model.secret)),
                ("schema_registry_url", _optional(model.schema_registry_url)),
                ("ssl_ca_pem", _optional(model.ssl_ca_pem)),
            ]
        else:
            kwargs = [
                ("region", py_string(model.region)),
                ("arn", _optional(model.arn)),
                ("access_key", _optional(model.access_key)),
                ("secret", _optional(model.secret)),
            ]
        return self.assignment(model, self._function(model), kwargs)

    @staticmethod
    def _function(model: ConnectionModel) -> str:
        if model.connection_type == "kafka":
            return "create_kafka_connection"
        return "create_s3_connection"
