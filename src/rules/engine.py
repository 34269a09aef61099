from __future__ import annotations

import logging
import re
from collections.abc import Callable
from typing import Any

from ..models.check_result import CheckResult, CheckStatus, Severity
from ..models.stage import Stage
from .common import RULE_NAMES, RuleContext
from .data_checks import DATA_PREFLIGHT_CHECKS, DATA_VALIDATION_CHECKS
from .file_checks import FILE_UPLOAD_CHECKS
from .mapping_checks import FIELD_MAPPING_CHECKS
from .review_checks import DATA_VERIFICATION_CHECKS, FINAL_REVIEW_CHECKS, IMPORT_PUSH_CHECKS

"""Rule engine entry point.

Maps each stage to its ordered tuple of checks and runs all of them on the
same dataset snapshot. There is no short-circuit: a blocking result does not
stop the remaining checks. A check that raises on malformed input is turned
into a fail/high result so callers never see an exception for data shape.

Expected dataset per stage:
    FileUpload        UploadedFile
    FieldMapping      MappingPlan
    DataPreflight     sequence of Record
    DataValidation    sequence of Record
    DataVerification  ReconciliationProgress
    FinalReview       ReviewSummary
    ImportPush        PushDataset
"""

logger = logging.getLogger(__name__)

Check = Callable[[Any, RuleContext], CheckResult]

STAGE_CHECKS: dict[Stage, tuple[Check, ...]] = {
    Stage.FILE_UPLOAD: FILE_UPLOAD_CHECKS,
    Stage.FIELD_MAPPING: FIELD_MAPPING_CHECKS,
    Stage.DATA_PREFLIGHT: DATA_PREFLIGHT_CHECKS,
    Stage.DATA_VALIDATION: DATA_VALIDATION_CHECKS,
    Stage.DATA_VERIFICATION: DATA_VERIFICATION_CHECKS,
    Stage.FINAL_REVIEW: FINAL_REVIEW_CHECKS,
    Stage.IMPORT_PUSH: IMPORT_PUSH_CHECKS,
}


def _rule_id(check: Check) -> str:
    name = getattr(check, "__name__", "check").removeprefix("check_")
    return name.replace("_", "-")


def _crashed(check: Check, error: Exception) -> CheckResult:
    rule_id = _rule_id(check)
    return CheckResult(
        id=rule_id,
        name=RULE_NAMES.get(rule_id, rule_id),
        status=CheckStatus.FAIL,
        severity=Severity.HIGH,
        message=f"Check could not evaluate the data: {error}",
        technical_details=[f"{type(error).__name__}: {error}"],
    )


def run_check(check: Check, dataset: Any, context: RuleContext) -> CheckResult:
    try:
        return check(dataset, context)
    except (TypeError, ValueError, KeyError, AttributeError, IndexError, re.error) as e:
        logger.warning("check %s failed on malformed input: %s", _rule_id(check), e)
        return _crashed(check, e)


def run_checks(stage: Stage, dataset: Any, context: RuleContext | None = None) -> list[CheckResult]:
    """Run every check of ``stage`` on ``dataset`` in declaration order."""
    ctx = context or RuleContext()
    results = [run_check(check, dataset, ctx) for check in STAGE_CHECKS[stage]]
    logger.debug("stage %s ran %d checks", stage.value, len(results))
    return results
