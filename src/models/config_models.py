from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the import wizard.

These are the typed, defaulted form of config/wizard.yml. The loader in
src/config/loader.py validates the YAML and builds them; rules and services
only ever see these dataclasses.
"""

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MiB
DEFAULT_EXTENSIONS = (".csv", ".xls", ".xlsx")


@dataclass(frozen=True)
class BackendConfig:
    """Backend collaborator connection settings.

    Environment variables WIZARD_BACKEND_URL / WIZARD_API_TOKEN take
    precedence over these values.
    """
    base_url: str = "http://localhost"
    token: str | None = None
    timeout_seconds: float = 30.0
    page_size: int = 50
    retries: int = 1


@dataclass(frozen=True)
class FileRules:
    max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE
    allowed_extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    encoding_sample_bytes: int = 64 * 1024
    row_sample_size: int = 100
    required_columns: tuple[str, ...] = ()


@dataclass(frozen=True)
class MappingRules:
    required_target_fields: tuple[str, ...] = ()
    min_auto_mapping_ratio: float = 0.5
    compatibility_keywords: tuple[str, ...] = ("email", "date", "phone")


@dataclass(frozen=True)
class DatePair:
    start: str
    end: str


@dataclass(frozen=True)
class ValueRange:
    minimum: float | None = None
    maximum: float | None = None


@dataclass(frozen=True)
class DataRules:
    required_fields: tuple[str, ...] = ()
    email_fields: tuple[str, ...] = ("email",)
    numeric_fields: tuple[str, ...] = ()
    date_pairs: tuple[DatePair, ...] = ()
    duplicate_key_fields: tuple[str, ...] = ()
    character_limits: dict[str, int] = field(default_factory=dict)
    whitespace_fields: tuple[str, ...] = ()
    value_ranges: dict[str, ValueRange] = field(default_factory=dict)
    patterns: dict[str, str] = field(default_factory=dict)
    reference_values: dict[str, tuple[str, ...]] = field(default_factory=dict)


@dataclass(frozen=True)
class ReconciliationConfig:
    product_like_keywords: tuple[str, ...] = ("product",)
    full_name_alias: str = "Full Name (First Name Last Name)"


@dataclass(frozen=True)
class WizardConfig:
    session_directory: str = "./sessions"
    row_id_column: str = "RowID"
    backend: BackendConfig = field(default_factory=BackendConfig)
    file_rules: FileRules = field(default_factory=FileRules)
    mapping_rules: MappingRules = field(default_factory=MappingRules)
    data_rules: DataRules = field(default_factory=DataRules)
    reconciliation: ReconciliationConfig = field(default_factory=ReconciliationConfig)
