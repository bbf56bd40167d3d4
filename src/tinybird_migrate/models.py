"""Data models for Tinybird datafile resources and migration results."""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

ResourceKind = Literal["datasource", "pipe", "connection"]
SettingValue = Union[bool, int, float, str]
ParamDefault = Union[bool, int, float, str]


@dataclass(frozen=True)
class ResourceFile:
    """A discovered datafile, read once and never modified."""
    kind: ResourceKind
    file_path: str  # relative to the working directory, POSIX separators
    absolute_path: str
    name: str
    content: str


@dataclass(frozen=True)
class MigrationError:
    """A file (or pattern) that could not be migrated."""
    file_path: str
    resource_name: str
    resource_kind: Optional[ResourceKind]
    message: str


@dataclass(frozen=True)
class MigrationWarning:
    """A batch-level consistency issue that does not block migration."""
    file_path: str
    resource_name: str
    resource_kind: Optional[ResourceKind]
    message: str


class ResourceModel(BaseModel):
    """Common fields of every parsed resource."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    file_path: str


# =============================================================================
# DATASOURCES
# =============================================================================

class DatasourceColumnModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    type: str
    json_path: Optional[str] = None
    default_expression: Optional[str] = None
    codec: Optional[str] = None


class DatasourceEngineModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    type: str
    sorting_key: List[str] = Field(default_factory=list)
    partition_key: Optional[str] = None
    primary_key: List[str] = Field(default_factory=list)
    ttl: Optional[str] = None
    ver: Optional[str] = None
    is_deleted: Optional[str] = None
    sign: Optional[str] = None
    version: Optional[str] = None
    summing_columns: List[str] = Field(default_factory=list)
    settings: Dict[str, SettingValue] = Field(default_factory=dict)


class DatasourceKafkaModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    connection_name: str = Field(..., min_length=1)
    topic: str = Field(..., min_length=1)
    group_id: Optional[str] = None
    auto_offset_reset: Optional[Literal["earliest", "latest"]] = None
    store_raw_value: Optional[bool] = None


class DatasourceS3Model(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    connection_name: str = Field(..., min_length=1)
    bucket_uri: str = Field(..., min_length=1)
    schedule: Optional[str] = None
    from_timestamp: Optional[str] = None


class DatasourceTokenModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    scope: Literal["READ", "APPEND"]


class DatasourceModel(ResourceModel):
    """A parsed .datasource file."""

    kind: Literal["datasource"] = "datasource"
    description: Optional[str] = None
    columns: List[DatasourceColumnModel]
    engine: DatasourceEngineModel
    kafka: Optional[DatasourceKafkaModel] = None
    s3: Optional[DatasourceS3Model] = None
    forward_query: Optional[str] = None
    tokens: List[DatasourceTokenModel] = Field(default_factory=list)
    shared_with: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_ingestion(self):
        if self.kafka is not None and self.s3 is not None:
            raise ValueError("Datasource cannot mix Kafka and S3 ingestion")
        return self

    @property
    def connection_name(self) -> Optional[str]:
        """Name of the connection this datasource ingests from, if any."""
        if self.kafka is not None:
            return self.kafka.connection_name
        if self.s3 is not None:
            return self.s3.connection_name
        return None


# =============================================================================
# PIPES
# =============================================================================

PipeType = Literal["pipe", "endpoint", "materialized", "copy"]


class PipeNodeModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    description: Optional[str] = None
    sql: str


class PipeTokenModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    scope: Literal["READ"] = "READ"


class PipeParamModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    type: str
    required: bool = True
    default_value: Optional[ParamDefault] = None
    description: Optional[str] = None


class PipeModel(ResourceModel):
    """A parsed .pipe file."""

    kind: Literal["pipe"] = "pipe"
    description: Optional[str] = None
    type: PipeType = "pipe"
    nodes: List[PipeNodeModel] = Field(..., min_length=1)
    cache_ttl: Optional[int] = None
    materialized_datasource: Optional[str] = None
    deployment_method: Optional[Literal["alter"]] = None
    copy_target_datasource: Optional[str] = None
    copy_schedule: Optional[str] = None
    copy_mode: Optional[Literal["append", "replace"]] = None
    tokens: List[PipeTokenModel] = Field(default_factory=list)
    params: List[PipeParamModel] = Field(default_factory=list)
    inferred_output_columns: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_type_requirements(self):
        if self.type == "materialized" and not self.materialized_datasource:
            raise ValueError("materialized pipes require a target datasource")
        if self.type == "copy" and not self.copy_target_datasource:
            raise ValueError("copy pipes require a target datasource")
        return self

    @property
    def output_node(self) -> PipeNodeModel:
        """The last declared node, whose result is the pipe's output."""
        return self.nodes[-1]

    @property
    def target_datasource(self) -> Optional[str]:
        """Datasource written by a materialized or copy pipe."""
        if self.type == "materialized":
            return self.materialized_datasource
        if self.type == "copy":
            return self.copy_target_datasource
        return None


# =============================================================================
# CONNECTIONS
# =============================================================================

class KafkaConnectionModel(ResourceModel):
    """A parsed .connection file with TYPE kafka."""

    kind: Literal["connection"] = "connection"
    connection_type: Literal["kafka"] = "kafka"
    bootstrap_servers: str = Field(..., min_length=1)
    security_protocol: Optional[Literal["SASL_SSL", "PLAINTEXT", "SASL_PLAINTEXT"]] = None
    sasl_mechanism: Optional[Literal["PLAIN", "SCRAM-SHA-256", "SCRAM-SHA-512", "OAUTHBEARER"]] = None
    key: Optional[str] = None
    secret: Optional[str] = None
    schema_registry_url: Optional[str] = None
    ssl_ca_pem: Optional[str] = None


class S3ConnectionModel(ResourceModel):
    """A parsed .connection file with TYPE s3."""

    kind: Literal["connection"] = "connection"
    connection_type: Literal["s3"] = "s3"
    region: str = Field(..., min_length=1)
    arn: Optional[str] = None
    access_key: Optional[str] = None
    secret: Optional[str] = None

    @model_validator(mode="after")
    def validate_credentials(self):
        if not self.arn and not (self.access_key and self.secret):
            raise ValueError("S3 connections require an ARN or an access key and secret")
        return self


ConnectionModel = Union[KafkaConnectionModel, S3ConnectionModel]
ParsedResource = Union[DatasourceModel, PipeModel, KafkaConnectionModel, S3ConnectionModel]


class MigrationResult(BaseModel):
    """Outcome of one migration run."""

    success: bool
    output_path: str
    migrated: List[ParsedResource] = Field(default_factory=list)
    errors: List[MigrationError] = Field(default_factory=list)
    warnings: List[MigrationWarning] = Field(default_factory=list)
    dry_run: bool = False
    output_content: Optional[str] = None

    def migrated_names(self, kind: Optional[ResourceKind] = None) -> List[str]:
        """Names of migrated resources, optionally filtered by kind."""
        return [r.name for r in self.migrated if kind is None or r.kind == kind]

    def error_for(self, name: str) -> Optional[MigrationError]:
        """First error recorded for the given resource name."""
        for error in self.errors:
            if error.resource_name == name:
                return error
        return None
