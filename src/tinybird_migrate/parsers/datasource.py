"""Grammar for .datasource files."""

from __future__ import annotations
import logging
import re
from typing import Any, Dict, List, Optional

from ..models import (
    DatasourceColumnModel,
    DatasourceEngineModel,
    DatasourceKafkaModel,
    DatasourceModel,
    DatasourceS3Model,
    DatasourceTokenModel,
    ResourceFile,
    SettingValue,
)
from .base import (
    BaseResourceParser,
    Directive,
    find_outside_contexts,
    parse_boolean_flag,
    parse_quoted_value,
    split_comma_separated,
    split_top_level_comma,
)

logger = logging.getLogger(__name__)

DEFAULT_ENGINE = "MergeTree"

CODEC_PATTERN = re.compile(r"\s+CODEC\((.+)\)\s*$")
JSON_PATH_PATTERN = re.compile(r"`json:([^`]+)`")
NUMBER_PATTERN = re.compile(r"^-?\d+(\.\d+)?$")
QUOTED_TOKEN_PATTERN = re.compile(r'^"([^"]+)"\s+(\S+)$')

# Inline directives that map one-to-one onto engine fields
ENGINE_SCALARS = {
    "ENGINE_PARTITION_KEY": "partition_key",
    "ENGINE_TTL": "ttl",
    "ENGINE_VER": "ver",
    "ENGINE_IS_DELETED": "is_deleted",
    "ENGINE_SIGN": "sign",
    "ENGINE_VERSION": "version",
}
ENGINE_LISTS = {
    "ENGINE_SORTING_KEY": "sorting_key",
    "ENGINE_PRIMARY_KEY": "primary_key",
    "ENGINE_SUMMING_COLUMNS": "summing_columns",
}


class DatasourceParser(BaseResourceParser):
    """Parses SCHEMA, ENGINE_*, KAFKA_*, IMPORT_* and TOKEN directives."""

    kind = "datasource"
    directives = frozenset({
        "DESCRIPTION",
        "SCHEMA",
        "FORWARD_QUERY",
        "SHARED_WITH",
        "ENGINE",
        "ENGINE_SETTINGS",
        "KAFKA_CONNECTION_NAME",
        "KAFKA_TOPIC",
        "KAFKA_GROUP_ID",
        "KAFKA_AUTO_OFFSET_RESET",
        "KAFKA_STORE_RAW_VALUE",
        "IMPORT_CONNECTION_NAME",
        "IMPORT_BUCKET_URI",
        "IMPORT_SCHEDULE",
        "IMPORT_FROM_TIMESTAMP",
        "TOKEN",
        *ENGINE_SCALARS,
        *ENGINE_LISTS,
    })

    def build(self, resource: ResourceFile, directives: List[Directive]) -> DatasourceModel:
        description: Optional[str] = None
        forward_query: Optional[str] = None
        columns: List[DatasourceColumnModel] = []
        shared_with: List[str] = []
        tokens: List[DatasourceTokenModel] = []
        has_schema = False

        engine_type: Optional[str] = None
        engine: Dict[str, Any] = {}
        kafka: Dict[str, Any] = {}
        s3: Dict[str, Any] = {}

        for directive in directives:
            keyword = directive.keyword

            if keyword == "DESCRIPTION":
                description = directive.text if directive.is_block else parse_quoted_value(directive.value)
            elif keyword == "SCHEMA":
                has_schema = True
                block = self.require_block(resource, directive)
                if not block:
                    raise self.error(resource, "SCHEMA block is empty.")
                for line in block:
                    if not line.strip() or line.strip().startswith("#"):
                        continue
                    for definition in split_top_level_comma(line):
                        columns.append(self._parse_column(resource, definition))
            elif keyword == "FORWARD_QUERY":
                block = self.require_block(resource, directive)
                if not block:
                    raise self.error(resource, "FORWARD_QUERY block is empty.")
                forward_query = "\n".join(block)
            elif keyword == "SHARED_WITH":
                for line in self.require_block(resource, directive):
                    workspace = line.strip().rstrip(",").strip()
                    if workspace:
                        shared_with.append(workspace)
            elif keyword == "ENGINE":
                engine_type = parse_quoted_value(self.require_inline(resource, directive))
            elif keyword in ENGINE_SCALARS:
                engine[ENGINE_SCALARS[keyword]] = parse_quoted_value(
                    self.require_inline(resource, directive))
            elif keyword in ENGINE_LISTS:
                engine[ENGINE_LISTS[keyword]] = split_comma_separated(
                    parse_quoted_value(self.require_inline(resource, directive)))
            elif keyword == "ENGINE_SETTINGS":
                engine["settings"] = self._parse_engine_settings(
                    resource, self.require_inline(resource, directive))
            elif keyword.startswith("KAFKA_"):
                self._apply_kafka(resource, directive, kafka)
            elif keyword.startswith("IMPORT_"):
                field_name = keyword[len("IMPORT_"):].lower()
                s3[field_name] = parse_quoted_value(self.require_inline(resource, directive))
            elif keyword == "TOKEN":
                tokens.append(self._parse_token(resource, self.require_inline(resource, directive)))

        if not has_schema or not columns:
            raise self.error(resource, "SCHEMA block is required.")

        if engine_type is None:
            if not any(engine.values()):
                raise self.error(resource, "ENGINE directive is required.")
            # Engine options without ENGINE imply the service default
            engine_type = DEFAULT_ENGINE
        if not engine.get("sorting_key"):
            raise self.error(resource, "ENGINE_SORTING_KEY directive is required.")

        kafka_model = None
        if kafka:
            if not kafka.get("connection_name") or not kafka.get("topic"):
                raise self.error(
                    resource,
                    "KAFKA_CONNECTION_NAME and KAFKA_TOPIC are required when Kafka directives are used.")
            kafka_model = DatasourceKafkaModel(**kafka)

        s3_model = None
        if s3:
            if not s3.get("connection_name") or not s3.get("bucket_uri"):
                raise self.error(
                    resource,
                    "IMPORT_CONNECTION_NAME and IMPORT_BUCKET_URI are required when import directives are used.")
            s3_model = DatasourceS3Model(**s3)

        if kafka_model and s3_model:
            raise self.error(resource, "Datasource cannot mix Kafka directives with import directives.")

        return DatasourceModel(
            name=resource.name,
            file_path=resource.file_path,
            description=description,
            columns=columns,
            engine=DatasourceEngineModel(type=engine_type, **engine),
            kafka=kafka_model,
            s3=s3_model,
            forward_query=forward_query,
            tokens=tokens,
            shared_with=shared_with,
        )

    def _parse_column(self, resource: ResourceFile, raw_line: str) -> DatasourceColumnModel:
        line = raw_line.strip()

        parts = line.split(None, 1)
        if len(parts) < 2:
            raise self.error(resource, f'Invalid schema column definition: "{raw_line.strip()}"')

        name = parts[0]
        if len(name) >= 2 and name[0] == name[-1] and name[0] in ("`", '"'):
            name = name[1:-1]
        if not name:
            raise self.error(resource, f'Invalid schema column name: "{raw_line.strip()}"')
        rest = parts[1].strip()

        codec = None
        codec_match = CODEC_PATTERN.search(rest)
        if codec_match:
            codec = codec_match.group(1).strip()
            rest = rest[:codec_match.start()].strip()

        default_expression = None
        default_index = find_outside_contexts(rest, " DEFAULT ")
        if default_index >= 0:
            default_expression = rest[default_index + len(" DEFAULT "):].strip()
            rest = rest[:default_index].strip()

        json_path = None
        json_match = JSON_PATH_PATTERN.search(rest)
        if json_match:
            json_path = json_match.group(1).strip()
            rest = JSON_PATH_PATTERN.sub("", rest, count=1).strip()

        if not rest:
            raise self.error(resource, f'Missing type in schema column: "{raw_line.strip()}"')

        return DatasourceColumnModel(
            name=name,
            type=rest,
            json_path=json_path,
            default_expression=default_expression,
            codec=codec,
        )

    def _parse_engine_settings(self, resource: ResourceFile, value: str) -> Dict[str, SettingValue]:
        settings: Dict[str, SettingValue] = {}
        for part in split_top_level_comma(parse_quoted_value(value)):
            key, sep, raw_value = part.partition("=")
            key, raw_value = key.strip(), raw_value.strip()
            if not sep:
                raise self.error(resource, f'Invalid ENGINE_SETTINGS part: "{part}"')
            if not key:
                raise self.error(resource, f'Invalid ENGINE_SETTINGS key in "{part}"')

            if len(raw_value) >= 2 and raw_value.startswith("'") and raw_value.endswith("'"):
                settings[key] = raw_value[1:-1].replace("\\'", "'")
            elif NUMBER_PATTERN.match(raw_value):
                settings[key] = float(raw_value) if "." in raw_value else int(raw_value)
            elif raw_value in ("true", "false"):
                settings[key] = raw_value == "true"
            else:
                raise self.error(resource, f'Unsupported ENGINE_SETTINGS value: "{raw_value}"')
        return settings

    def _apply_kafka(self, resource: ResourceFile, directive: Directive, kafka: Dict[str, Any]) -> None:
        value = self.require_inline(resource, directive).strip()
        keyword = directive.keyword

        if keyword == "KAFKA_AUTO_OFFSET_RESET":
            if value not in ("earliest", "latest"):
                raise self.error(resource, f'Invalid KAFKA_AUTO_OFFSET_RESET value: "{value}"')
            kafka["auto_offset_reset"] = value
        elif keyword == "KAFKA_STORE_RAW_VALUE":
            flag = parse_boolean_flag(value)
            if flag is None:
                raise self.error(resource, f'Invalid KAFKA_STORE_RAW_VALUE value: "{value}"')
            kafka["store_raw_value"] = flag
        else:
            # KAFKA_CONNECTION_NAME, KAFKA_TOPIC, KAFKA_GROUP_ID
            kafka[keyword[len("KAFKA_"):].lower()] = parse_quoted_value(value)

    def _parse_token(self, resource: ResourceFile, value: str) -> DatasourceTokenModel:
        trimmed = value.strip()
        quoted = QUOTED_TOKEN_PATTERN.match(trimmed)
        if quoted:
            name, scope = quoted.group(1), quoted.group(2)
        else:
            parts = trimmed.split()
            if len(parts) < 2:
                raise self.error(resource, f'Invalid TOKEN line: "{value}"')
            if len(parts) > 2:
                raise self.error(resource, f'Unsupported TOKEN syntax in strict mode: "{value}"')
            name, scope = parse_quoted_value(parts[0]), parts[1]

        if scope not in ("READ", "APPEND"):
            raise self.error(resource, f'Unsupported datasource token scope: "{scope}"')
        return DatasourceTokenModel(name=name, scope=scope)
