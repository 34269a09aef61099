from __future__ import annotations

from dataclasses import dataclass
from typing import Any

"""Master-data reconciliation models.

A Section is one field category queued for reconciliation. Each observed raw
value of that field which is missing from the canonical master list becomes a
MasterDataCandidate; the user maps it onto a MasterDataItem or leaves it to be
inserted as a new canonical record.
"""

__all__ = [
    "MasterDataCandidate",
    "MasterDataItem",
    "NEW_INSERT_ID",
    "NO_PARENT_TYPE",
    "Section",
]

# updated_id sentinel: keep the original value and insert it as a new master record
NEW_INSERT_ID = "-100"
NO_PARENT_TYPE = -1


@dataclass(frozen=True)
class Section:
    column_name: str
    parent_type: int = NO_PARENT_TYPE
    alias_name: str = ""

    @property
    def display_name(self) -> str:
        return self.alias_name or self.column_name

    @classmethod
    def from_wire(cls, raw: dict[str, Any]) -> Section:
        parent = raw.get("ParentType")
        return cls(
            column_name=str(raw["ColumnName"]),
            parent_type=int(parent) if parent not in (None, "") else NO_PARENT_TYPE,
            alias_name=str(raw.get("AliasName") or ""),
        )


@dataclass(frozen=True)
class MasterDataItem:
    value: str
    display: str
    parent_type: int | None = None

    @classmethod
    def from_wire(cls, raw: dict[str, Any]) -> MasterDataItem:
        parent = raw.get("ParentType")
        return cls(
            value=str(raw["Value"]),
            display=str(raw.get("Display", raw["Value"])),
            parent_type=int(parent) if parent not in (None, "") else None,
        )


@dataclass
class MasterDataCandidate:
    current_value: str
    column_name: str = ""
    updated_value: str = ""
    updated_id: str = ""
    is_new_insert: bool = True
    is_marked: bool = False
    parent_type: int | None = None

    @property
    def is_selected(self) -> bool:
        return self.updated_id != ""

    def clear_selection(self) -> None:
        self.updated_id = ""
        self.updated_value = ""
        self.is_new_insert = True

    def to_wire(self) -> dict[str, Any]:
        """Serialize for submission, applying the new-insert sentinel."""
        updated_id = self.updated_id or NEW_INSERT_ID
        updated_value = self.updated_value if self.updated_id else self.current_value
        return {
            "ColumnName": self.column_name,
            "CurrentValue": self.current_value,
            "UpdatedValue": updated_value,
            "UpdatedID": updated_id,
            "IsNewInsert": updated_id == NEW_INSERT_ID,
            "IsMarked": self.is_marked,
            "ParentType": self.parent_type if self.parent_type is not None else NO_PARENT_TYPE,
        }

    @classmethod
    def from_wire(cls, raw: dict[str, Any], column_name: str = "") -> MasterDataCandidate:
        parent = raw.get("ParentType")
        return cls(
            current_value=str(raw["CurrentValue"]),
            column_name=str(raw.get("ColumnName") or column_name),
            parent_type=int(parent) if parent not in (None, "") else None,
        )
