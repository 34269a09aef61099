from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from ..models.check_result import CheckResult, CheckStatus, Severity
from ..models.stage import StageStatus

"""Result classification.

Splits a stage's CheckResults into blocking, advisory, passed and pending
buckets and derives the stage status from them. fail/critical is the only
combination that blocks advancement; a non-critical fail is advisory.
"""

__all__ = [
    "ClassifiedResults",
    "classify",
]


@dataclass(frozen=True)
class ClassifiedResults:
    critical_failures: list[CheckResult] = field(default_factory=list)
    warnings: list[CheckResult] = field(default_factory=list)
    passed: list[CheckResult] = field(default_factory=list)
    pending: list[CheckResult] = field(default_factory=list)

    @property
    def can_advance(self) -> bool:
        return not self.critical_failures

    @property
    def stage_status(self) -> StageStatus:
        if self.critical_failures:
            return StageStatus.ERROR
        if self.warnings:
            return StageStatus.WARNING
        return StageStatus.SUCCESS

    @property
    def total(self) -> int:
        return len(self.critical_failures) + len(self.warnings) + len(self.passed) + len(self.pending)


def classify(results: Iterable[CheckResult]) -> ClassifiedResults:
    critical: list[CheckResult] = []
    warnings: list[CheckResult] = []
    passed: list[CheckResult] = []
    pending: list[CheckResult] = []
    for r in results:
        if r.status is CheckStatus.FAIL and r.severity is Severity.CRITICAL:
            critical.append(r)
        elif r.status in (CheckStatus.FAIL, CheckStatus.WARNING):
            warnings.append(r)
        elif r.status is CheckStatus.PASS:
            passed.append(r)
        else:
            pending.append(r)
    return ClassifiedResults(critical_failures=critical, warnings=warnings, passed=passed, pending=pending)
