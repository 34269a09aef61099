"""Domain models for the tabular import wizard.

This package contains the domain model classes shared by the rule engine,
the correction session, the master-data reconciler and the stage tracker.
"""

from .audit_record import AuditAction, AuditRecord
from .check_result import AffectedRow, CheckResult, CheckStatus, Severity
from .correction import AppliedCommit, CorrectionItem, PendingCommit
from .import_session import ColumnMapping, ImportSession, SessionState
from .master_data import MasterDataCandidate, MasterDataItem, Section
from .outcome import ErrorKind, OperationResult
from .record import AnnotationKind, CellAnnotation, Record, RowStatus
from .stage import ResultFilter, Stage, StageStatus

__all__ = [
    # Rule engine output
    "AffectedRow",
    "CheckResult",
    "CheckStatus",
    "Severity",
    # Tabular data
    "AnnotationKind",
    "CellAnnotation",
    "Record",
    "RowStatus",
    # Corrections
    "AppliedCommit",
    "CorrectionItem",
    "PendingCommit",
    # Master data
    "MasterDataCandidate",
    "MasterDataItem",
    "Section",
    # Session / pipeline
    "AuditAction",
    "AuditRecord",
    "ColumnMapping",
    "ImportSession",
    "ResultFilter",
    "SessionState",
    "Stage",
    "StageStatus",
    # Results
    "ErrorKind",
    "OperationResult",
]
