from __future__ import annotations

import math
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from ..models.check_result import AffectedRow, CheckResult, CheckStatus, Severity
from ..models.config_models import WizardConfig
from ..models.import_session import ColumnMapping
from ..models.record import Record

"""Shared rule-engine types and helpers.

Datasets are plain frozen containers so a rule can never mutate what the next
rule sees. RULE_NAMES is the catalogue of display names keyed by rule id.
"""

RULE_NAMES: dict[str, str] = {
    # FileUpload
    "file-size": "File Size Limit",
    "file-type": "File Format Check",
    "file-encoding": "Character Encoding",
    "file-integrity": "File Integrity Check",
    "header-uniqueness": "Header Uniqueness",
    "row-length": "Row Length Consistency",
    "required-columns": "Required Columns",
    "min-rows": "Minimum Row Count",
    # FieldMapping
    "required-mapping": "Required Fields Mapping",
    "duplicate-mapping": "Duplicate Mapping Prevention",
    "field-type-compatibility": "Field Type Compatibility",
    "auto-mapping-accuracy": "Auto-Mapping Accuracy",
    # DataPreflight
    "required-fields": "Required Fields",
    "numeric-values": "Numeric Fields",
    "cross-field": "Cross-Field Validation",
    "character-limit": "Character Limit",
    # DataValidation
    "email-format": "Email Format",
    "duplicate-row": "Duplicate Row Detection",
    "whitespace": "Whitespace Detection",
    "value-range": "Value Range Check",
    "regex-pattern": "Regex Pattern Validation",
    "reference-data": "Reference Data Check",
    # DataVerification
    "master-data-resolved": "Master Data Reconciliation",
    # FinalReview
    "manual-corrections-review": "Manual Corrections Review",
    "auto-corrections-review": "Auto-corrections Review",
    "missing-data-review": "Missing Data Review",
    "override-review": "Override Review",
    # ImportPush
    "schema-compatibility": "Schema Compatibility Check",
    "data-integrity": "Data Integrity Verification",
}


@dataclass(frozen=True)
class UploadedFile:
    name: str
    content: bytes


@dataclass(frozen=True)
class MappingPlan:
    source_columns: tuple[str, ...]
    mappings: tuple[ColumnMapping, ...]


@dataclass(frozen=True)
class ReconciliationProgress:
    """Unresolved candidate counts keyed by section display name."""
    total_sections: int
    unresolved: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class ReviewSummary:
    manual_corrections: int = 0
    auto_corrections: int = 0
    reconciled_values: int = 0
    overridden_stages: tuple[str, ...] = ()
    empty_cells: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class PushDataset:
    records: tuple[Record, ...]
    mappings: tuple[ColumnMapping, ...]


@dataclass(frozen=True)
class RuleContext:
    config: WizardConfig = field(default_factory=WizardConfig)


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and value.strip() == ""


_JS_NUMBER = re.compile(
    r"^[+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)$"
    r"|^0(?:[xX][0-9a-fA-F]+|[oO][0-7]+|[bB][01]+)$"
)


def is_numeric(value: Any) -> bool:
    """True unless ``isNaN(Number(value))`` would hold.

    Empty and whitespace-only strings convert to 0 and therefore count as
    numeric; emptiness is the required-fields rule's concern.
    """
    if value is None or isinstance(value, bool):
        return True
    if isinstance(value, (int, float)):
        return not (isinstance(value, float) and math.isnan(value))
    text = str(value).strip()
    if text == "":
        return True
    return bool(_JS_NUMBER.match(text))


def to_number(value: Any) -> float | None:
    if is_empty(value) or not is_numeric(value):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    if text.lstrip("+-") == "Infinity":
        return -math.inf if text.startswith("-") else math.inf
    if text[:2].lower() in ("0x", "0o", "0b"):
        return float(int(text, 0))
    return float(text)


def affected(record: Record, column: str | None, suggested: Any = None) -> AffectedRow:
    return AffectedRow(
        row_index=record.row_index,
        value=record.get(column) if column else None,
        row_data=dict(record.values),
        suggested_value=suggested,
        column=column,
    )


def make_result(
    rule_id: str,
    *,
    passed: bool,
    failed_status: CheckStatus,
    severity: Severity,
    ok_message: str,
    fail_message: str,
    details: Iterable[str] = (),
    affected_rows: list[AffectedRow] | None = None,
    field_name: str | None = None,
) -> CheckResult:
    return CheckResult(
        id=rule_id,
        name=RULE_NAMES.get(rule_id, rule_id),
        status=CheckStatus.PASS if passed else failed_status,
        severity=severity,
        message=ok_message if passed else fail_message,
        technical_details=list(details),
        affected_rows=affected_rows if affected_rows else None,
        field=field_name,
    )
