from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DEFAULT_EXTENSIONS,
    DEFAULT_MAX_FILE_SIZE,
    BackendConfig,
    DataRules,
    DatePair,
    FileRules,
    MappingRules,
    ReconciliationConfig,
    ValueRange,
    WizardConfig,
)

"""Config loader.

Responsibilities:
- Load YAML config/wizard.yml
- Validate against src/config/config_schema.json
- Apply defaults for omitted sections and keys
"""

SCHEMA_PATH = Path(__file__).parent / "config_schema.json"
DEFAULT_CONFIG_PATH = Path("config/wizard.yml")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: If the schema file is missing or not valid JSON, or the
            config data fails schema validation.
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _tuple(values: Any) -> tuple[str, ...]:
    return tuple(str(v) for v in (values or []))


def _build_backend(raw: dict[str, Any]) -> BackendConfig:
    defaults = BackendConfig()
    return BackendConfig(
        base_url=raw.get("base_url", defaults.base_url).rstrip("/"),
        token=raw.get("token"),
        timeout_seconds=float(raw.get("timeout_seconds", defaults.timeout_seconds)),
        page_size=int(raw.get("page_size", defaults.page_size)),
        retries=int(raw.get("retries", defaults.retries)),
    )


def _build_file_rules(raw: dict[str, Any]) -> FileRules:
    defaults = FileRules()
    extensions = raw.get("allowed_extensions")
    return FileRules(
        max_file_size_bytes=int(raw.get("max_file_size_bytes", DEFAULT_MAX_FILE_SIZE)),
        allowed_extensions=tuple(e.lower() for e in extensions) if extensions else DEFAULT_EXTENSIONS,
        encoding_sample_bytes=int(raw.get("encoding_sample_bytes", defaults.encoding_sample_bytes)),
        row_sample_size=int(raw.get("row_sample_size", defaults.row_sample_size)),
        required_columns=_tuple(raw.get("required_columns")),
    )


def _build_mapping_rules(raw: dict[str, Any]) -> MappingRules:
    defaults = MappingRules()
    keywords = raw.get("compatibility_keywords")
    return MappingRules(
        required_target_fields=_tuple(raw.get("required_target_fields")),
        min_auto_mapping_ratio=float(raw.get("min_auto_mapping_ratio", defaults.min_auto_mapping_ratio)),
        compatibility_keywords=_tuple(keywords) if keywords else defaults.compatibility_keywords,
    )


def _build_patterns(raw: dict[str, Any]) -> dict[str, str]:
    """Compile each pattern once so a bad expression fails at load time."""
    patterns = {str(k): str(v) for k, v in raw.items()}
    for name, pattern in patterns.items():
        try:
            re.compile(pattern)
        except re.error as e:
            raise ConfigError(f"config validation failed: data_rules.patterns.{name}: {e}") from e
    return patterns


def _build_data_rules(raw: dict[str, Any]) -> DataRules:
    defaults = DataRules()
    emails = raw.get("email_fields")
    return DataRules(
        required_fields=_tuple(raw.get("required_fields")),
        email_fields=_tuple(emails) if emails is not None else defaults.email_fields,
        numeric_fields=_tuple(raw.get("numeric_fields")),
        date_pairs=tuple(DatePair(start=p["start"], end=p["end"]) for p in raw.get("date_pairs", [])),
        duplicate_key_fields=_tuple(raw.get("duplicate_key_fields")),
        character_limits={str(k): int(v) for k, v in (raw.get("character_limits") or {}).items()},
        whitespace_fields=_tuple(raw.get("whitespace_fields")),
        value_ranges={
            str(k): ValueRange(minimum=v.get("min"), maximum=v.get("max"))
            for k, v in (raw.get("value_ranges") or {}).items()
        },
        patterns=_build_patterns(raw.get("patterns") or {}),
        reference_values={
            str(k): _tuple(v) for k, v in (raw.get("reference_values") or {}).items()
        },
    )


def _build_reconciliation(raw: dict[str, Any]) -> ReconciliationConfig:
    defaults = ReconciliationConfig()
    keywords = raw.get("product_like_keywords")
    return ReconciliationConfig(
        product_like_keywords=tuple(k.lower() for k in keywords) if keywords else defaults.product_like_keywords,
        full_name_alias=raw.get("full_name_alias", defaults.full_name_alias),
    )


def build_config(data: dict[str, Any]) -> WizardConfig:
    """Validate a decoded config mapping and build the typed WizardConfig."""
    _validate_config_schema(data)
    defaults = WizardConfig()
    return WizardConfig(
        session_directory=data.get("session_directory", defaults.session_directory),
        row_id_column=data.get("row_id_column", defaults.row_id_column),
        backend=_build_backend(data.get("backend") or {}),
        file_rules=_build_file_rules(data.get("file_rules") or {}),
        mapping_rules=_build_mapping_rules(data.get("mapping_rules") or {}),
        data_rules=_build_data_rules(data.get("data_rules") or {}),
        reconciliation=_build_reconciliation(data.get("reconciliation") or {}),
    )


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> WizardConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config validation failed: top level must be a mapping, got {type(data).__name__}")
    return build_config(data)
