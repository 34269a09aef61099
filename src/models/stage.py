from __future__ import annotations

from enum import Enum

"""Pipeline stage identifiers and the status vocabulary of the wizard.

Stage order is the declaration order. Status values are strings on the wire
(session store, backend) so the enums carry the exact wire text.
"""

__all__ = [
    "ResultFilter",
    "Stage",
    "StageStatus",
    "STAGE_ORDER",
]


class Stage(Enum):
    FILE_UPLOAD = "FileUpload"
    FIELD_MAPPING = "FieldMapping"
    DATA_PREFLIGHT = "DataPreflight"
    DATA_VALIDATION = "DataValidation"
    DATA_VERIFICATION = "DataVerification"
    FINAL_REVIEW = "FinalReview"
    IMPORT_PUSH = "ImportPush"

    def next(self) -> Stage | None:
        idx = STAGE_ORDER.index(self)
        if idx + 1 < len(STAGE_ORDER):
            return STAGE_ORDER[idx + 1]
        return None


STAGE_ORDER: tuple[Stage, ...] = tuple(Stage)


class StageStatus(Enum):
    """Per-stage status.

    NOT_STARTED / IN_PROGRESS: not yet run to completion.
    WARNING: advisory issues present. ERROR: blocking issues present.
    VERIFICATION_PENDING: master-data reconciliation outstanding.
    """
    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    WARNING = "Warning"
    SUCCESS = "Success"
    ERROR = "Error"
    VERIFICATION_PENDING = "Verification Pending"


class ResultFilter(Enum):
    """Row filter accepted by the backend stage-data fetch."""
    ALL = "All"
    SUCCESS = "Success"
    WARNING = "Warning"
    ERROR = "Error"
