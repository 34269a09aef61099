from __future__ import annotations

from typing import Any

from ..models.stage import STAGE_ORDER, Stage, StageStatus
from .classifier import ClassifiedResults

"""Per-session stage status bag.

The tracker is the single source of truth for navigation gating. Only the
stage dispatcher writes to it; everything else reads.
"""

__all__ = [
    "StageStatusTracker",
]

# DataVerification blocked only by these rules is pending reconciliation, not in error
VERIFICATION_PENDING_RULES = frozenset({"master-data-resolved"})


class StageStatusTracker:
    """Status string and critical-failure count per stage.

    A stage whose checks have never run has no critical count and therefore
    cannot advance, even though it has no failures either.
    """

    def __init__(self) -> None:
        self._statuses: dict[Stage, StageStatus] = {s: StageStatus.NOT_STARTED for s in STAGE_ORDER}
        self._critical: dict[Stage, int] = {}

    def get_status(self, stage: Stage) -> StageStatus:
        return self._statuses[stage]

    def set_status(self, stage: Stage, value: StageStatus) -> None:
        self._statuses[stage] = value

    def critical_count(self, stage: Stage) -> int | None:
        return self._critical.get(stage)

    def has_run(self, stage: Stage) -> bool:
        return stage in self._critical

    def can_advance(self, stage: Stage) -> bool:
        return self._critical.get(stage) == 0

    def mark_in_progress(self, stage: Stage) -> None:
        self._statuses[stage] = StageStatus.IN_PROGRESS

    def record_report(self, stage: Stage, report: ClassifiedResults) -> StageStatus:
        """Store the outcome of a rule-engine run and return the derived status."""
        self._critical[stage] = len(report.critical_failures)
        status = report.stage_status
        if (
            stage is Stage.DATA_VERIFICATION
            and report.critical_failures
            and all(r.id in VERIFICATION_PENDING_RULES for r in report.critical_failures)
        ):
            status = StageStatus.VERIFICATION_PENDING
        self._statuses[stage] = status
        return status

    def record_counts(self, stage: Stage, *, errors: int, warnings: int) -> StageStatus:
        """Store an outcome known only by row counts (backend-side validation)."""
        self._critical[stage] = errors
        if errors:
            status = StageStatus.ERROR
        elif warnings:
            status = StageStatus.WARNING
        else:
            status = StageStatus.SUCCESS
        self._statuses[stage] = status
        return status

    def override(self, stage: Stage) -> None:
        """Force a Warning stage to Success. Callers must have checked can_advance."""
        self._statuses[stage] = StageStatus.SUCCESS

    def current_stage(self) -> Stage | None:
        """First stage not yet in Success, or None when every stage succeeded."""
        for stage in STAGE_ORDER:
            if self._statuses[stage] is not StageStatus.SUCCESS:
                return stage
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage_statuses": {s.value: st.value for s, st in self._statuses.items()},
            "critical_counts": {s.value: n for s, n in self._critical.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StageStatusTracker:
        tracker = cls()
        for name, value in (data.get("stage_statuses") or {}).items():
            tracker._statuses[Stage(name)] = StageStatus(value)
        for name, count in (data.get("critical_counts") or {}).items():
            tracker._critical[Stage(name)] = int(count)
        return tracker
