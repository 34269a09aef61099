from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

"""ImportSession domain model and SessionState enum.

The ImportSession is the persisted state of one wizard run: the uploaded file,
its column mapping and the per-stage status bag. It is created on upload and
torn down when the import completes or is cancelled.
"""

__all__ = [
    "ColumnMapping",
    "ImportSession",
    "SessionState",
]


class SessionState(Enum):
    """Lifecycle: active -> (completed | cancelled)."""
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ColumnMapping:
    source_column: str
    target_field: str
    field_id: str | None = None  # backend mapped-field id, needed for submissions
    auto_mapped: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_column": self.source_column,
            "target_field": self.target_field,
            "field_id": self.field_id,
            "auto_mapped": self.auto_mapped,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ColumnMapping:
        fid = raw.get("field_id")
        return cls(
            source_column=raw["source_column"],
            target_field=raw["target_field"],
            field_id=str(fid) if fid is not None else None,
            auto_mapped=bool(raw.get("auto_mapped", False)),
        )


@dataclass
class ImportSession:
    session_id: str
    file_id: str
    file_name: str
    import_type: str
    created_at: datetime
    updated_at: datetime
    state: SessionState = SessionState.ACTIVE
    stage_statuses: dict[str, str] = field(default_factory=dict)
    critical_counts: dict[str, int] = field(default_factory=dict)
    column_mappings: list[ColumnMapping] = field(default_factory=list)

    def field_id_for(self, source_column: str) -> str | None:
        for m in self.column_mappings:
            if m.source_column == source_column:
                return m.field_id
        return None
