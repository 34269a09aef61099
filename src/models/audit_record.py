from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from enum import Enum

"""AuditRecord model for the wizard audit trail.

Every stage gate decision is recorded. An explicit user override is written
with action ``override`` so it can never be confused with an automatic pass.
"""

__all__ = [
    "AuditAction",
    "AuditRecord",
]


class AuditAction(Enum):
    AUTO_PASS = "auto_pass"
    BLOCKED = "blocked"
    OVERRIDE = "override"
    CORRECTION = "correction"
    MASTER_DATA = "master_data"


@dataclass(frozen=True)
class AuditRecord:
    """Structured audit entry, serialized as one JSON line.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        session_id: wizard session (or file name for CLI runs)
        stage: stage wire name, e.g. "DataValidation"
        action: AuditAction value
        detail: free text
    """
    timestamp: str
    session_id: str
    stage: str
    action: str
    detail: str

    @staticmethod
    def create(session_id: str, stage: str, action: AuditAction, detail: str) -> AuditRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return AuditRecord(
            timestamp=ts,
            session_id=session_id,
            stage=stage,
            action=action.value,
            detail=detail,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
