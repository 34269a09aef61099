from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

"""CheckResult model produced by the rule engine.

A CheckResult is the only output of a rule: data-shape problems are encoded
as results, never raised. The combination status=fail / severity=critical is
the single blocking condition; every other combination is advisory.
"""

__all__ = [
    "AffectedRow",
    "CheckResult",
    "CheckStatus",
    "Severity",
]


class CheckStatus(Enum):
    PENDING = "pending"
    PASS = "pass"
    WARNING = "warning"
    FAIL = "fail"


class Severity(Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class AffectedRow:
    """One offending row of a check.

    suggested_value is the engine's proposed correction for the inspected
    field, or None when the rule cannot propose one.
    """
    row_index: int  # zero-based
    value: Any
    row_data: dict[str, Any] = field(default_factory=dict)
    suggested_value: Any = None
    column: str | None = None  # offending column, None for whole-row findings


@dataclass(frozen=True)
class CheckResult:
    id: str
    name: str
    status: CheckStatus
    severity: Severity
    message: str
    technical_details: list[str] = field(default_factory=list)
    affected_rows: list[AffectedRow] | None = None
    field: str | None = None  # column inspected, for single-field rules

    @property
    def is_blocking(self) -> bool:
        return self.status is CheckStatus.FAIL and self.severity is Severity.CRITICAL

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["severity"] = self.severity.value
        return data
