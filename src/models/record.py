from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""Record model and per-cell annotations.

A Record is one input row after reading: an ordered column -> value mapping
plus its zero-based row index. Records are never edited in place; corrections
produce new Records via ``with_values``.

Backend rows carry a ``StatusMessage`` blob. It is parsed exactly once, at the
client boundary, into a tuple of CellAnnotation values. A blob that cannot be
parsed degrades to a single Error annotation on ROW_LEVEL_COLUMN so the row is
treated as an error instead of crashing the caller.
"""

__all__ = [
    "AnnotationKind",
    "CellAnnotation",
    "ROW_LEVEL_COLUMN",
    "Record",
    "RowStatus",
    "STATUS_MESSAGE_KEY",
    "parse_status_message",
]

STATUS_MESSAGE_KEY = "StatusMessage"
ROW_LEVEL_COLUMN = "__row__"


class AnnotationKind(Enum):
    ERROR = "Error"
    WARNING = "Warning"


class RowStatus(Enum):
    ERROR = "Error"
    WARNING = "Warning"
    SUCCESS = "Success"


@dataclass(frozen=True)
class CellAnnotation:
    column: str
    kind: AnnotationKind
    message: str
    raw_value: Any = None

    def to_wire(self) -> dict[str, Any]:
        body: dict[str, Any] = {"Type": self.kind.value, "Message": self.message}
        if self.raw_value is not None:
            body["Value"] = self.raw_value
        return {self.column: body}


def _integrity_error(detail: str) -> tuple[CellAnnotation, ...]:
    return (
        CellAnnotation(
            column=ROW_LEVEL_COLUMN,
            kind=AnnotationKind.ERROR,
            message=f"unreadable status message: {detail}",
        ),
    )


def parse_status_message(raw: Any) -> tuple[CellAnnotation, ...]:
    """Parse a wire StatusMessage into annotations.

    Accepts the JSON string form or an already decoded list. Empty values mean
    no annotations. When a column is annotated twice the Error entry wins,
    otherwise the first entry is kept.
    """
    if raw is None or raw == "" or raw == []:
        return ()
    entries = raw
    if isinstance(raw, str):
        try:
            entries = json.loads(raw)
        except json.JSONDecodeError as e:
            return _integrity_error(str(e))
    if isinstance(entries, dict):
        entries = [entries]
    if not isinstance(entries, list):
        return _integrity_error(f"expected a list, got {type(entries).__name__}")

    by_column: dict[str, CellAnnotation] = {}
    for entry in entries:
        if not isinstance(entry, dict) or len(entry) != 1:
            return _integrity_error(f"malformed entry {entry!r}")
        column, body = next(iter(entry.items()))
        if not isinstance(body, dict):
            return _integrity_error(f"malformed entry for column {column!r}")
        try:
            kind = AnnotationKind(body.get("Type"))
        except ValueError:
            return _integrity_error(f"unknown type {body.get('Type')!r} for column {column!r}")
        annotation = CellAnnotation(
            column=str(column),
            kind=kind,
            message=str(body.get("Message", "")),
            raw_value=body.get("Value"),
        )
        existing = by_column.get(annotation.column)
        if existing is None or (
            existing.kind is AnnotationKind.WARNING and kind is AnnotationKind.ERROR
        ):
            by_column[annotation.column] = annotation
    return tuple(by_column.values())


@dataclass(frozen=True)
class Record:
    """One tabular row.

    Attributes:
        row_index: zero-based position in the source data set
        values: column name -> scalar value (str, number or None for empty)
        annotations: parsed cell annotations, at most one per column
    """
    row_index: int
    values: dict[str, Any]
    annotations: tuple[CellAnnotation, ...] = field(default_factory=tuple)

    @property
    def status(self) -> RowStatus:
        kinds = {a.kind for a in self.annotations}
        if AnnotationKind.ERROR in kinds:
            return RowStatus.ERROR
        if AnnotationKind.WARNING in kinds:
            return RowStatus.WARNING
        return RowStatus.SUCCESS

    def get(self, column: str, default: Any = None) -> Any:
        return self.values.get(column, default)

    def annotation_for(self, column: str) -> CellAnnotation | None:
        for a in self.annotations:
            if a.column == column:
                return a
        return None

    def with_values(self, updates: dict[str, Any], *, clear_columns: bool = True) -> Record:
        """Return a superseding copy with ``updates`` applied.

        Annotations on the updated columns are dropped unless clear_columns is False.
        """
        values = dict(self.values)
        values.update(updates)
        annotations = self.annotations
        if clear_columns:
            annotations = tuple(a for a in self.annotations if a.column not in updates)
        return Record(row_index=self.row_index, values=values, annotations=annotations)

    @classmethod
    def from_wire(cls, row_index: int, raw: dict[str, Any]) -> Record:
        values = {k: v for k, v in raw.items() if k != STATUS_MESSAGE_KEY}
        return cls(
            row_index=row_index,
            values=values,
            annotations=parse_status_message(raw.get(STATUS_MESSAGE_KEY)),
        )

    def status_message_json(self) -> str:
        return json.dumps([a.to_wire() for a in self.annotations], ensure_ascii=False)
