from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..client.backend import BackendClient, DataIntegrityError, StagePage, TransportError
from ..logging.audit_log import AuditLogBuffer
from ..models.audit_record import AuditAction, AuditRecord
from ..models.check_result import CheckResult
from ..models.outcome import ErrorKind, OperationResult
from ..models.stage import ResultFilter, Stage, StageStatus
from ..rules.common import RuleContext
from ..rules.engine import run_checks
from .classifier import ClassifiedResults, classify
from .pagination import PageWindow, page_window, start_index
from .status_tracker import StageStatusTracker

"""Stage dispatcher.

Routes a stage either to the local rule engine or to the backend, classifies
the outcome and records it in the StageStatusTracker. This is the only
component that writes to the tracker. Transport and data-integrity failures
are caught here and returned as failed outcomes; the tracker is left as it
was.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "FetchRequest",
    "LoadedPage",
    "StageDispatcher",
    "StageOutcome",
]


@dataclass(frozen=True)
class StageOutcome:
    stage: Stage
    ok: bool
    status: StageStatus | None = None
    report: ClassifiedResults | None = None
    error_kind: ErrorKind | None = None
    message: str = ""

    @property
    def results(self) -> list[CheckResult]:
        if self.report is None:
            return []
        r = self.report
        return r.critical_failures + r.warnings + r.passed + r.pending


@dataclass(frozen=True)
class FetchRequest:
    token: int
    stage: Stage
    page: int
    page_size: int
    result_filter: ResultFilter = ResultFilter.ALL


@dataclass
class LoadedPage:
    request: FetchRequest
    page: StagePage
    window: PageWindow


class StageDispatcher:
    def __init__(
        self,
        tracker: StageStatusTracker,
        *,
        context: RuleContext | None = None,
        client: BackendClient | None = None,
        audit: AuditLogBuffer | None = None,
        session_id: str = "",
        file_id: str | None = None,
        page_size: int | None = None,
    ) -> None:
        self.tracker = tracker
        self.context = context or RuleContext()
        self.client = client
        self.audit = audit
        self.session_id = session_id
        self.file_id = file_id
        self.page_size = page_size or self.context.config.backend.page_size
        self.overridden: list[Stage] = []
        self.current_page: LoadedPage | None = None
        self._latest_token = 0

    def _audit(self, stage: Stage, action: AuditAction, detail: str) -> None:
        if self.audit is not None:
            self.audit.append(AuditRecord.create(self.session_id, stage.value, action, detail))

    # --- local stages --------------------------------------------------------

    def run_stage(self, stage: Stage, dataset: Any) -> StageOutcome:
        """Run the stage's checks locally and record the classified outcome."""
        self.tracker.mark_in_progress(stage)
        report = classify(run_checks(stage, dataset, self.context))
        status = self.tracker.record_report(stage, report)
        if report.can_advance:
            self._audit(stage, AuditAction.AUTO_PASS, f"status={status.value} warnings={len(report.warnings)}")
        else:
            ids = ", ".join(r.id for r in report.critical_failures)
            self._audit(stage, AuditAction.BLOCKED, f"critical={ids}")
        logger.info(
            "stage %s: %s (critical=%d warnings=%d passed=%d)",
            stage.value,
            status.value,
            len(report.critical_failures),
            len(report.warnings),
            len(report.passed),
        )
        return StageOutcome(stage=stage, ok=report.can_advance, status=status, report=report)

    def override(self, stage: Stage, *, confirmed: bool, reason: str = "") -> OperationResult:
        """Advance a Warning stage as Success on explicit user confirmation.

        Never applies to a stage with critical failures or one that has not run.
        """
        if not confirmed:
            return OperationResult.failure(ErrorKind.INVALID_STATE, "override requires explicit confirmation")
        if not self.tracker.has_run(stage):
            return OperationResult.failure(ErrorKind.INVALID_STATE, f"stage {stage.value} has not been run")
        if not self.tracker.can_advance(stage):
            return OperationResult.failure(
                ErrorKind.BLOCKING, f"stage {stage.value} has critical failures and cannot be overridden"
            )
        previous = self.tracker.get_status(stage)
        self.tracker.override(stage)
        if stage not in self.overridden:
            self.overridden.append(stage)
        self._audit(stage, AuditAction.OVERRIDE, f"from={previous.value} reason={reason}")
        logger.warning("stage %s advanced by override (was %s)", stage.value, previous.value)
        return OperationResult.success(f"stage {stage.value} overridden", data=StageStatus.SUCCESS)

    def can_advance(self, stage: Stage) -> bool:
        return self.tracker.can_advance(stage)

    # --- backend stages ------------------------------------------------------

    def _require_backend(self) -> tuple[BackendClient, str] | OperationResult:
        if self.client is None or not self.file_id:
            return OperationResult.failure(ErrorKind.INVALID_STATE, "no backend client or file id configured")
        return self.client, self.file_id

    def begin_fetch(self, stage: Stage, page: int = 1, result_filter: ResultFilter = ResultFilter.ALL) -> FetchRequest:
        """Issue a new request token; any older outstanding fetch becomes stale."""
        self._latest_token += 1
        return FetchRequest(
            token=self._latest_token,
            stage=stage,
            page=page,
            page_size=self.page_size,
            result_filter=result_filter,
        )

    def complete_fetch(self, request: FetchRequest, page: StagePage) -> bool:
        """Accept ``page`` only if ``request`` is the latest one issued."""
        if request.token != self._latest_token:
            logger.debug("discarding stale page response token=%d latest=%d", request.token, self._latest_token)
            return False
        window = page_window(request.page, request.page_size, page.count, len(page.records))
        self.current_page = LoadedPage(request=request, page=page, window=window)
        return True

    def fetch_page(
        self, stage: Stage, page: int = 1, result_filter: ResultFilter = ResultFilter.ALL
    ) -> OperationResult:
        backend = self._require_backend()
        if isinstance(backend, OperationResult):
            return backend
        client, file_id = backend
        request = self.begin_fetch(stage, page, result_filter)
        try:
            data = client.fetch_stage_data(
                file_id,
                stage,
                start_index=start_index(page, request.page_size),
                page_size=request.page_size,
                result_filter=result_filter,
            )
        except TransportError as e:
            logger.error("fetch %s page %d failed: %s", stage.value, page, e)
            return OperationResult.failure(ErrorKind.TRANSPORT, str(e))
        except DataIntegrityError as e:
            logger.error("fetch %s page %d returned bad data: %s", stage.value, page, e)
            return OperationResult.failure(ErrorKind.DATA_INTEGRITY, str(e))
        if not self.complete_fetch(request, data):
            return OperationResult.failure(ErrorKind.INVALID_STATE, "response superseded by a newer request")
        return OperationResult.success(data=self.current_page)

    def refresh_stage_status(self, stage: Stage) -> StageOutcome:
        """Derive a backend-validated stage's status from its Error / Warning row counts."""
        backend = self._require_backend()
        if isinstance(backend, OperationResult):
            return StageOutcome(stage=stage, ok=False, error_kind=backend.error_kind, message=backend.message)
        client, file_id = backend
        counts: dict[ResultFilter, int] = {}
        try:
            for f in (ResultFilter.ERROR, ResultFilter.WARNING):
                counts[f] = client.fetch_stage_data(file_id, stage, start_index=0, page_size=1, result_filter=f).count
        except TransportError as e:
            logger.error("status refresh for %s failed: %s", stage.value, e)
            return StageOutcome(stage=stage, ok=False, error_kind=ErrorKind.TRANSPORT, message=str(e))
        except DataIntegrityError as e:
            logger.error("status refresh for %s returned bad data: %s", stage.value, e)
            return StageOutcome(stage=stage, ok=False, error_kind=ErrorKind.DATA_INTEGRITY, message=str(e))
        errors, warnings = counts[ResultFilter.ERROR], counts[ResultFilter.WARNING]
        status = self.tracker.record_counts(stage, errors=errors, warnings=warnings)
        action = AuditAction.AUTO_PASS if errors == 0 else AuditAction.BLOCKED
        self._audit(stage, action, f"errors={errors} warnings={warnings}")
        return StageOutcome(
            stage=stage,
            ok=errors == 0,
            status=status,
            message=f"{errors} error row(s), {warnings} warning row(s)",
        )
