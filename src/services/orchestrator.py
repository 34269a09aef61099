from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from ..logging.audit_log import AuditLogBuffer
from ..models.check_result import CheckResult, CheckStatus
from ..models.config_models import WizardConfig
from ..models.processing_result import FileReport, ProcessingResult
from ..models.stage import Stage
from ..rules.common import RuleContext, UploadedFile
from ..tabular.reader import ReaderError, file_extension, read_table
from .dispatcher import StageDispatcher, StageOutcome
from .progress import ProgressTracker
from .status_tracker import StageStatusTracker

"""Local preflight orchestration.

Runs the stages that need no backend (FileUpload, DataPreflight,
DataValidation) over every tabular file found in the given paths, one
StageStatusTracker per file, and aggregates a ProcessingResult for the
SUMMARY line. A file blocked at FileUpload is not parsed further.
"""

logger = logging.getLogger(__name__)

LOCAL_DATA_STAGES = (Stage.DATA_PREFLIGHT, Stage.DATA_VALIDATION)


class ProcessingError(Exception):
    """Fatal error that prevents the run from starting."""


def scan_files(paths: Iterable[Path], extensions: Iterable[str]) -> list[Path]:
    """Expand files and directories (non-recursive) into tabular files.

    Files given explicitly are kept whatever their extension so the
    file-type check can report them.

    Raises:
        ProcessingError: if a path does not exist or a directory can't be read
    """
    allowed = {e.lower() for e in extensions}
    found: list[Path] = []
    for path in paths:
        if not path.exists():
            raise ProcessingError(f"path not found: {path}")
        if path.is_file():
            found.append(path)
            continue
        try:
            found.extend(
                sorted(p for p in path.iterdir() if p.is_file() and file_extension(p.name) in allowed)
            )
        except OSError as e:
            raise ProcessingError(f"error reading directory {path}: {e}") from e
    return found


def _log_results(file_name: str, outcome: StageOutcome) -> None:
    results: list[CheckResult] = outcome.results
    for r in results:
        if r.is_blocking:
            logger.error("%s [%s] %s: %s", file_name, outcome.stage.value, r.name, r.message)
        elif r.status in (CheckStatus.FAIL, CheckStatus.WARNING):
            rows = len(r.affected_rows or [])
            suffix = f" ({rows} row(s))" if rows else ""
            logger.warning("%s [%s] %s: %s%s", file_name, outcome.stage.value, r.name, r.message, suffix)
        else:
            logger.debug("%s [%s] %s: %s", file_name, outcome.stage.value, r.name, r.message)


def _file_report(
    path: Path, tracker: StageStatusTracker, outcomes: list[StageOutcome], rows: int, start: datetime
) -> FileReport:
    reports = [o.report for o in outcomes if o.report is not None]
    return FileReport(
        file_name=path.name,
        advanceable=all(o.ok for o in outcomes),
        stage_statuses={o.stage.value: tracker.get_status(o.stage).value for o in outcomes},
        critical_failures=sum(len(r.critical_failures) for r in reports),
        warnings=sum(len(r.warnings) for r in reports),
        rows=rows,
        elapsed_seconds=(datetime.now(UTC) - start).total_seconds(),
        blocked_by=tuple(c.id for r in reports for c in r.critical_failures),
    )


def preflight_file(path: Path, config: WizardConfig, audit: AuditLogBuffer | None = None) -> FileReport:
    start = datetime.now(UTC)
    tracker = StageStatusTracker()
    dispatcher = StageDispatcher(tracker, context=RuleContext(config=config), audit=audit, session_id=path.name)
    outcomes: list[StageOutcome] = []
    try:
        content = path.read_bytes()
    except OSError as e:
        logger.error("%s: cannot read file: %s", path.name, e)
        return FileReport(file_name=path.name, advanceable=False, blocked_by=("file-integrity",))

    upload = dispatcher.run_stage(Stage.FILE_UPLOAD, UploadedFile(name=path.name, content=content))
    outcomes.append(upload)
    _log_results(path.name, upload)
    if not upload.ok:
        return _file_report(path, tracker, outcomes, 0, start)

    try:
        table = read_table(path.name, content)
    except ReaderError as e:
        # file-integrity passed on the same bytes, so this is not expected
        logger.error("%s: %s", path.name, e)
        return FileReport(file_name=path.name, advanceable=False, blocked_by=("file-integrity",))

    for stage in LOCAL_DATA_STAGES:
        outcome = dispatcher.run_stage(stage, table.records)
        outcomes.append(outcome)
        _log_results(path.name, outcome)
    return _file_report(path, tracker, outcomes, len(table.records), start)


def process_all(paths: Iterable[Path], config: WizardConfig, audit: AuditLogBuffer | None = None) -> ProcessingResult:
    """Preflight every file under ``paths``.

    Raises:
        ProcessingError: if a path is missing or unreadable
    """
    start_time = datetime.now(UTC)
    files = scan_files(paths, config.file_rules.allowed_extensions)
    reports: list[FileReport] = []

    with ProgressTracker(len(files)) as progress:
        for path in files:
            progress.start_file(path)
            file_report = preflight_file(path, config, audit)
            reports.append(file_report)
            state = "advanceable" if file_report.advanceable else "blocked"
            logger.info(
                "%s: %s rows=%d critical=%d warnings=%d",
                path.name,
                state,
                file_report.rows,
                file_report.critical_failures,
                file_report.warnings,
            )
            progress.set_postfix(
                ok=sum(1 for r in reports if r.advanceable),
                blocked=sum(1 for r in reports if not r.advanceable),
            )
            progress.finish_file(advanceable=file_report.advanceable)

    end_time = datetime.now(UTC)
    return ProcessingResult(
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=(end_time - start_time).total_seconds(),
        file_reports=reports,
    )
