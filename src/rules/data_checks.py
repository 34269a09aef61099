from __future__ import annotations

import re
from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime
from typing import Any

import pandas as pd

from ..models.check_result import AffectedRow, CheckResult, CheckStatus, Severity
from ..models.record import Record
from .common import RuleContext, affected, is_empty, is_numeric, make_result, to_number

"""Row-level data checks.

DataPreflight runs the blocking-class checks (fail/high), DataValidation the
advisory ones (warning). Every check reads the same Record snapshot and
reports offending rows as AffectedRow entries; where a rule can propose a
fix it sets suggested_value.
"""

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _single_field(fields: Sequence[str]) -> str | None:
    return fields[0] if len(fields) == 1 else None


def _parse_date(value: Any) -> datetime | None:
    if is_empty(value):
        return None
    ts = pd.to_datetime(str(value).strip(), errors="coerce")
    if ts is pd.NaT or pd.isna(ts):
        return None
    return ts.to_pydatetime().replace(tzinfo=None)


# --- DataPreflight -----------------------------------------------------------


def check_required_fields(records: Sequence[Record], ctx: RuleContext) -> CheckResult:
    fields = ctx.config.data_rules.required_fields
    rows = [affected(r, f) for r in records for f in fields if is_empty(r.get(f))]
    return make_result(
        "required-fields",
        passed=not rows,
        failed_status=CheckStatus.FAIL,
        severity=Severity.HIGH,
        ok_message="All required fields contain values",
        fail_message=f"{len(rows)} required value(s) are empty",
        details=[f"fields={list(fields)}"],
        affected_rows=rows,
        field_name=_single_field(fields),
    )


def check_numeric_values(records: Sequence[Record], ctx: RuleContext) -> CheckResult:
    fields = ctx.config.data_rules.numeric_fields
    rows = [affected(r, f) for r in records for f in fields if not is_numeric(r.get(f))]
    return make_result(
        "numeric-values",
        passed=not rows,
        failed_status=CheckStatus.FAIL,
        severity=Severity.HIGH,
        ok_message="All numeric fields contain valid numbers",
        fail_message=f"{len(rows)} record(s) have non-numeric values in numeric fields",
        details=[f"fields={list(fields)}"],
        affected_rows=rows,
        field_name=_single_field(fields),
    )


def check_cross_field(records: Sequence[Record], ctx: RuleContext) -> CheckResult:
    pairs = ctx.config.data_rules.date_pairs
    rows: list[AffectedRow] = []
    for r in records:
        for pair in pairs:
            start = _parse_date(r.get(pair.start))
            end = _parse_date(r.get(pair.end))
            if start is not None and end is not None and end < start:
                rows.append(affected(r, pair.end))
    return make_result(
        "cross-field",
        passed=not rows,
        failed_status=CheckStatus.FAIL,
        severity=Severity.HIGH,
        ok_message="All date ranges are logically consistent",
        fail_message=f"{len(rows)} record(s) have an end date before the start date",
        details=[f"{p.start} <= {p.end}" for p in pairs],
        affected_rows=rows,
        field_name=pairs[0].end if len(pairs) == 1 else None,
    )


def check_character_limit(records: Sequence[Record], ctx: RuleContext) -> CheckResult:
    limits = ctx.config.data_rules.character_limits
    rows: list[AffectedRow] = []
    for r in records:
        for f, limit in limits.items():
            value = r.get(f)
            if value is not None and len(str(value)) > limit:
                rows.append(affected(r, f, suggested=str(value)[:limit]))
    return make_result(
        "character-limit",
        passed=not rows,
        failed_status=CheckStatus.FAIL,
        severity=Severity.HIGH,
        ok_message="All values are within their character limits",
        fail_message=f"{len(rows)} value(s) exceed their character limit",
        details=[f"{f} <= {n}" for f, n in limits.items()],
        affected_rows=rows,
        field_name=_single_field(list(limits)),
    )


# --- DataValidation ----------------------------------------------------------


def check_email_format(records: Sequence[Record], ctx: RuleContext) -> CheckResult:
    fields = ctx.config.data_rules.email_fields
    rows: list[AffectedRow] = []
    for r in records:
        for f in fields:
            value = r.get(f)
            if is_empty(value) or EMAIL_PATTERN.match(str(value)):
                continue
            candidate = str(value).strip().lower()
            suggestion = candidate if EMAIL_PATTERN.match(candidate) else None
            rows.append(affected(r, f, suggested=suggestion))
    return make_result(
        "email-format",
        passed=not rows,
        failed_status=CheckStatus.WARNING,
        severity=Severity.MEDIUM,
        ok_message="All email addresses are properly formatted",
        fail_message=f"{len(rows)} record(s) have invalid email format",
        details=["Valid emails must contain @ and domain (e.g., user@example.com)"] if rows else [],
        affected_rows=rows,
        field_name=_single_field(fields),
    )


def check_duplicate_row(records: Sequence[Record], ctx: RuleContext) -> CheckResult:
    key_fields = ctx.config.data_rules.duplicate_key_fields
    groups: dict[str, list[Record]] = defaultdict(list)
    if key_fields:
        for r in records:
            key = "|".join(str(r.get(f) or "").strip().lower() for f in key_fields)
            groups[key].append(r)
    duplicates = {k: rs for k, rs in groups.items() if len(rs) > 1}
    rows = [affected(r, None) for rs in duplicates.values() for r in rs]
    details = [
        f"key '{k}' at rows {[r.row_index for r in rs]}" for k, rs in duplicates.items()
    ]
    return make_result(
        "duplicate-row",
        passed=not duplicates,
        failed_status=CheckStatus.WARNING,
        severity=Severity.MEDIUM,
        ok_message="No duplicate rows found",
        fail_message=f"{len(duplicates)} duplicate key(s) found across {len(rows)} rows",
        details=details,
        affected_rows=rows,
    )


def check_whitespace(records: Sequence[Record], ctx: RuleContext) -> CheckResult:
    fields = ctx.config.data_rules.whitespace_fields
    rows = [
        affected(r, f, suggested=r.get(f).strip())
        for r in records
        for f in fields
        if isinstance(r.get(f), str) and r.get(f) != r.get(f).strip()
    ]
    return make_result(
        "whitespace",
        passed=not rows,
        failed_status=CheckStatus.WARNING,
        severity=Severity.LOW,
        ok_message="No leading or trailing whitespace in text fields",
        fail_message=f"{len(rows)} value(s) have leading or trailing whitespace",
        affected_rows=rows,
        field_name=_single_field(fields),
    )


def check_value_range(records: Sequence[Record], ctx: RuleContext) -> CheckResult:
    ranges = ctx.config.data_rules.value_ranges
    rows: list[AffectedRow] = []
    for r in records:
        for f, bounds in ranges.items():
            number = to_number(r.get(f))
            if number is None:
                continue
            if (bounds.minimum is not None and number < bounds.minimum) or (
                bounds.maximum is not None and number > bounds.maximum
            ):
                rows.append(affected(r, f))
    return make_result(
        "value-range",
        passed=not rows,
        failed_status=CheckStatus.WARNING,
        severity=Severity.MEDIUM,
        ok_message="All values are within acceptable ranges",
        fail_message=f"{len(rows)} value(s) are outside their acceptable range",
        details=[f"{f}: [{b.minimum}, {b.maximum}]" for f, b in ranges.items()],
        affected_rows=rows,
        field_name=_single_field(list(ranges)),
    )


def check_regex_pattern(records: Sequence[Record], ctx: RuleContext) -> CheckResult:
    patterns = {f: re.compile(p) for f, p in ctx.config.data_rules.patterns.items()}
    rows = [
        affected(r, f)
        for r in records
        for f, rx in patterns.items()
        if not is_empty(r.get(f)) and not rx.fullmatch(str(r.get(f)))
    ]
    return make_result(
        "regex-pattern",
        passed=not rows,
        failed_status=CheckStatus.WARNING,
        severity=Severity.MEDIUM,
        ok_message="All values match their expected patterns",
        fail_message=f"{len(rows)} value(s) do not match their expected pattern",
        details=[f"{f}: {rx.pattern}" for f, rx in patterns.items()],
        affected_rows=rows,
        field_name=_single_field(list(patterns)),
    )


def check_reference_data(records: Sequence[Record], ctx: RuleContext) -> CheckResult:
    vocabularies = ctx.config.data_rules.reference_values
    rows: list[AffectedRow] = []
    for r in records:
        for f, allowed in vocabularies.items():
            value = r.get(f)
            if is_empty(value) or str(value) in allowed:
                continue
            folded = {a.lower(): a for a in allowed}
            rows.append(affected(r, f, suggested=folded.get(str(value).strip().lower())))
    return make_result(
        "reference-data",
        passed=not rows,
        failed_status=CheckStatus.WARNING,
        severity=Severity.HIGH,
        ok_message="All values match the controlled vocabularies",
        fail_message=f"{len(rows)} value(s) are not in their controlled vocabulary",
        affected_rows=rows,
        field_name=_single_field(list(vocabularies)),
    )


DATA_PREFLIGHT_CHECKS = (
    check_required_fields,
    check_numeric_values,
    check_cross_field,
    check_character_limit,
)

DATA_VALIDATION_CHECKS = (
    check_email_format,
    check_duplicate_row,
    check_whitespace,
    check_value_range,
    check_regex_pattern,
    check_reference_data,
)

# rule id -> check, used to re-validate a corrected value
DATA_CHECKS_BY_ID = {
    "required-fields": check_required_fields,
    "numeric-values": check_numeric_values,
    "cross-field": check_cross_field,
    "character-limit": check_character_limit,
    "email-format": check_email_format,
    "duplicate-row": check_duplicate_row,
    "whitespace": check_whitespace,
    "value-range": check_value_range,
    "regex-pattern": check_regex_pattern,
    "reference-data": check_reference_data,
}
