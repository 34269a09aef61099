from __future__ import annotations

from collections import defaultdict

from ..models.check_result import CheckResult, CheckStatus, Severity
from .common import MappingPlan, RuleContext, make_result

"""FieldMapping stage checks: source column -> target field assignments."""


def check_required_mapping(plan: MappingPlan, ctx: RuleContext) -> CheckResult:
    mapped = {m.target_field.lower() for m in plan.mappings if m.target_field}
    missing = [f for f in ctx.config.mapping_rules.required_target_fields if f.lower() not in mapped]
    return make_result(
        "required-mapping",
        passed=not missing,
        failed_status=CheckStatus.FAIL,
        severity=Severity.CRITICAL,
        ok_message="All required target fields are mapped",
        fail_message=f"Required target fields not mapped: {', '.join(missing)}",
        details=[f"missing={missing}"] if missing else [],
    )


def check_duplicate_mapping(plan: MappingPlan, ctx: RuleContext) -> CheckResult:
    sources_by_target: dict[str, list[str]] = defaultdict(list)
    for m in plan.mappings:
        if m.target_field:
            sources_by_target[m.target_field].append(m.source_column)
    duplicates = {t: s for t, s in sources_by_target.items() if len(s) > 1}
    details = [f"{target} <- {', '.join(sources)}" for target, sources in duplicates.items()]
    return make_result(
        "duplicate-mapping",
        passed=not duplicates,
        failed_status=CheckStatus.FAIL,
        severity=Severity.HIGH,
        ok_message="Each target field receives at most one source column",
        fail_message="Multiple source columns mapped to the same target field: " + "; ".join(details),
        details=details,
    )


def check_field_type_compatibility(plan: MappingPlan, ctx: RuleContext) -> CheckResult:
    keywords = ctx.config.mapping_rules.compatibility_keywords
    mismatches: list[str] = []
    for m in plan.mappings:
        if not m.target_field:
            continue
        source = m.source_column.lower()
        target = m.target_field.lower()
        for kw in keywords:
            if (kw in source) != (kw in target):
                mismatches.append(f"{m.source_column} -> {m.target_field} ({kw})")
                break
    return make_result(
        "field-type-compatibility",
        passed=not mismatches,
        failed_status=CheckStatus.WARNING,
        severity=Severity.MEDIUM,
        ok_message="Mapped columns look compatible with their target fields",
        fail_message=f"{len(mismatches)} mapping(s) may be type-incompatible",
        details=mismatches,
    )


def check_auto_mapping_accuracy(plan: MappingPlan, ctx: RuleContext) -> CheckResult:
    total = len(plan.source_columns)
    mapped_sources = {m.source_column for m in plan.mappings if m.auto_mapped and m.target_field}
    ratio = (len(mapped_sources & set(plan.source_columns)) / total) if total else 1.0
    threshold = ctx.config.mapping_rules.min_auto_mapping_ratio
    return make_result(
        "auto-mapping-accuracy",
        passed=ratio >= threshold,
        failed_status=CheckStatus.WARNING,
        severity=Severity.MEDIUM,
        ok_message=f"{ratio:.0%} of source columns were mapped automatically",
        fail_message=f"Only {ratio:.0%} of source columns were mapped automatically",
        details=[f"auto_mapped={len(mapped_sources)}", f"source_columns={total}"],
    )


FIELD_MAPPING_CHECKS = (
    check_required_mapping,
    check_duplicate_mapping,
    check_field_type_compatibility,
    check_auto_mapping_accuracy,
)
