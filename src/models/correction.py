from __future__ import annotations

from dataclasses import dataclass
from typing import Any

"""Correction session models.

CorrectionItem is mutable on purpose: it is the user's draft for one cell and
lives only as long as its CorrectionSession. PendingCommit and AppliedCommit
are immutable snapshots of commit decisions.
"""

__all__ = [
    "AppliedCommit",
    "CorrectionItem",
    "PendingCommit",
    "group_id_for",
]


def group_id_for(field_name: str, value: Any) -> str:
    """Items of the same field holding the same original value share a group."""
    return f"{field_name}:{'' if value is None else value}"


@dataclass
class CorrectionItem:
    row_index: int
    field_name: str
    original_value: Any
    corrected_value: Any
    suggested_value: Any = None
    group_id: str | None = None

    @property
    def is_changed(self) -> bool:
        return self.corrected_value != self.original_value

    @property
    def has_suggestion(self) -> bool:
        return self.suggested_value is not None


@dataclass(frozen=True)
class PendingCommit:
    """A commit waiting for the user's propagate / this-cell-only decision."""
    row_index: int
    field_name: str
    old_value: Any
    new_value: Any
    matching_rows: tuple[int, ...]  # rows of the field currently holding old_value


@dataclass(frozen=True)
class AppliedCommit:
    sequence: int
    row_index: int
    field_name: str
    old_value: Any
    new_value: Any
    propagate: bool
    changed_rows: tuple[int, ...]
    submitted: bool = False
