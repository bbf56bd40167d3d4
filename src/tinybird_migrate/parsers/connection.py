"""Grammar for .connection files."""

from __future__ import annotations
from typing import Dict, List, Optional

from ..models import ConnectionModel, KafkaConnectionModel, ResourceFile, S3ConnectionModel
from .base import BaseResourceParser, Directive, parse_quoted_value

SECURITY_PROTOCOLS = ("SASL_SSL", "PLAINTEXT", "SASL_PLAINTEXT")
SASL_MECHANISMS = ("PLAIN", "SCRAM-SHA-256", "SCRAM-SHA-512", "OAUTHBEARER")

KAFKA_FIELDS = {
    "KAFKA_BOOTSTRAP_SERVERS": "bootstrap_servers",
    "KAFKA_SECURITY_PROTOCOL": "security_protocol",
    "KAFKA_SASL_MECHANISM": "sasl_mechanism",
    "KAFKA_KEY": "key",
    "KAFKA_SECRET": "secret",
    "KAFKA_SCHEMA_REGISTRY_URL": "schema_registry_url",
    "KAFKA_SSL_CA_PEM": "ssl_ca_pem",
}
S3_FIELDS = {
    "S3_REGION": "region",
    "S3_ARN": "arn",
    "S3_ACCESS_KEY": "access_key",
    "S3_SECRET": "secret",
}


class ConnectionParser(BaseResourceParser):
    """Parses a ``TYPE kafka`` or ``TYPE s3`` connection."""

    kind = "connection"
    directives = frozenset({"TYPE", *KAFKA_FIELDS, *S3_FIELDS})

    def build(self, resource: ResourceFile, directives: List[Directive]) -> ConnectionModel:
        connection_type: Optional[str] = None
        kafka: Dict[str, str] = {}
        s3: Dict[str, str] = {}

        for directive in directives:
            keyword = directive.keyword
            if keyword == "TYPE":
                connection_type = parse_quoted_value(self.require_inline(resource, directive)).lower()
            elif keyword == "KAFKA_SSL_CA_PEM" and directive.is_block:
                kafka["ssl_ca_pem"] = directive.text
            elif keyword in KAFKA_FIELDS:
                kafka[KAFKA_FIELDS[keyword]] = parse_quoted_value(self.require_inline(resource, directive))
            elif keyword in S3_FIELDS:
                s3[S3_FIELDS[keyword]] = parse_quoted_value(self.require_inline(resource, directive))

        if not connection_type:
            raise self.error(resource, "TYPE directive is required.")

        if connection_type == "kafka":
            return self._build_kafka(resource, kafka, s3)
        if connection_type == "s3":
            return self._build_s3(resource, kafka, s3)
        raise self.error(resource, f'Unsupported connection type in strict mode: "{connection_type}"')

    def _build_kafka(
        self,
        resource: ResourceFile,
        kafka: Dict[str, str],
        s3: Dict[str, str],
    ) -> KafkaConnectionModel:
        if any(s3.values()):
            raise self.error(resource, "S3 directives are not valid for kafka connections.")
        if not kafka.get("bootstrap_servers"):
            raise self.error(resource, "KAFKA_BOOTSTRAP_SERVERS is required for kafka connections.")

        protocol = kafka.get("security_protocol")
        if protocol is not None and protocol not in SECURITY_PROTOCOLS:
            raise self.error(resource, f'Unsupported KAFKA_SECURITY_PROTOCOL: "{protocol}"')
        mechanism = kafka.get("sasl_mechanism")
        if mechanism is not None and mechanism not in SASL_MECHANISMS:
            raise self.error(resource, f'Unsupported KAFKA_SASL_MECHANISM: "{mechanism}"')

        return KafkaConnectionModel(name=resource.name, file_path=resource.file_path, **kafka)

    def _build_s3(
        self,
        resource: ResourceFile,
        kafka: Dict[str, str],
        s3: Dict[str, str],
    ) -> S3ConnectionModel:
        if any(kafka.values()):
            raise self.error(resource, "Kafka directives are not valid for s3 connections.")
        if not s3.get("region"):
            raise self.error(resource, "S3_REGION is required for s3 connections.")

        access_key, secret = s3.get("access_key"), s3.get("secret")
        if not s3.get("arn") and not (access_key and secret):
            raise self.error(
                resource, "S3 connections require S3_ARN or both S3_ACCESS_KEY and S3_SECRET.")
        if bool(access_key) != bool(secret):
            raise self.error(resource, "S3_ACCESS_KEY and S3_SECRET must be provided together.")

        return S3ConnectionModel(name=resource.name, file_path=resource.file_path, **s3)
