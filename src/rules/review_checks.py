from __future__ import annotations

from ..models.check_result import CheckResult, CheckStatus, Severity
from ..models.record import RowStatus
from .common import PushDataset, ReconciliationProgress, ReviewSummary, RuleContext, make_result

"""Late-stage checks: DataVerification, FinalReview and ImportPush."""


def check_master_data_resolved(progress: ReconciliationProgress, ctx: RuleContext) -> CheckResult:
    # a negative count marks a section that has not been loaded yet
    open_sections = {name: n for name, n in progress.unresolved.items() if n != 0}
    return make_result(
        "master-data-resolved",
        passed=not open_sections,
        failed_status=CheckStatus.FAIL,
        severity=Severity.CRITICAL,
        ok_message=f"All {progress.total_sections} master-data section(s) reconciled",
        fail_message=f"{len(open_sections)} section(s) still have unresolved values",
        details=[
            f"{name}: {n} unresolved" if n > 0 else f"{name}: not reviewed"
            for name, n in open_sections.items()
        ],
    )


# FinalReview checks are informational; they always pass except override-review.


def check_manual_corrections_review(summary: ReviewSummary, ctx: RuleContext) -> CheckResult:
    return make_result(
        "manual-corrections-review",
        passed=True,
        failed_status=CheckStatus.WARNING,
        severity=Severity.LOW,
        ok_message=f"{summary.manual_corrections} manual correction(s) applied",
        fail_message="",
        details=[f"manual_corrections={summary.manual_corrections}"],
    )


def check_auto_corrections_review(summary: ReviewSummary, ctx: RuleContext) -> CheckResult:
    return make_result(
        "auto-corrections-review",
        passed=True,
        failed_status=CheckStatus.WARNING,
        severity=Severity.LOW,
        ok_message=(
            f"{summary.auto_corrections} suggested correction(s) accepted, "
            f"{summary.reconciled_values} master-data value(s) reconciled"
        ),
        fail_message="",
        details=[
            f"auto_corrections={summary.auto_corrections}",
            f"reconciled_values={summary.reconciled_values}",
        ],
    )


def check_missing_data_review(summary: ReviewSummary, ctx: RuleContext) -> CheckResult:
    total = sum(summary.empty_cells.values())
    return make_result(
        "missing-data-review",
        passed=True,
        failed_status=CheckStatus.WARNING,
        severity=Severity.LOW,
        ok_message=f"{total} empty cell(s) will be imported as blank",
        fail_message="",
        details=[f"{col}: {n} empty" for col, n in summary.empty_cells.items() if n],
    )


def check_override_review(summary: ReviewSummary, ctx: RuleContext) -> CheckResult:
    stages = summary.overridden_stages
    return make_result(
        "override-review",
        passed=not stages,
        failed_status=CheckStatus.WARNING,
        severity=Severity.LOW,
        ok_message="No stage was advanced by override",
        fail_message=f"Stages advanced by override: {', '.join(stages)}",
        details=[f"overridden={list(stages)}"] if stages else [],
    )


def check_schema_compatibility(dataset: PushDataset, ctx: RuleContext) -> CheckResult:
    source_by_target = {m.target_field.lower(): m.source_column for m in dataset.mappings if m.target_field}
    columns: set[str] = set()
    for r in dataset.records:
        columns.update(r.values)
    missing: list[str] = []
    for target in ctx.config.mapping_rules.required_target_fields:
        source = source_by_target.get(target.lower())
        if source is None or (dataset.records and source not in columns):
            missing.append(target)
    return make_result(
        "schema-compatibility",
        passed=not missing,
        failed_status=CheckStatus.FAIL,
        severity=Severity.CRITICAL,
        ok_message="Mapped data matches the target schema",
        fail_message=f"Required target fields missing from the data: {', '.join(missing)}",
        details=[f"missing={missing}"] if missing else [],
    )


def check_data_integrity(dataset: PushDataset, ctx: RuleContext) -> CheckResult:
    bad = [r.row_index for r in dataset.records if r.status is RowStatus.ERROR]
    return make_result(
        "data-integrity",
        passed=not bad,
        failed_status=CheckStatus.FAIL,
        severity=Severity.CRITICAL,
        ok_message="No record carries an unresolved error",
        fail_message=f"{len(bad)} record(s) still carry errors",
        details=[f"rows={bad[:20]}"] if bad else [],
    )


DATA_VERIFICATION_CHECKS = (check_master_data_resolved,)

FINAL_REVIEW_CHECKS = (
    check_manual_corrections_review,
    check_auto_corrections_review,
    check_missing_data_review,
    check_override_review,
)

IMPORT_PUSH_CHECKS = (
    check_schema_compatibility,
    check_data_integrity,
)
