from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""Result objects returned by session, reconciler and dispatcher operations.

The core never notifies the user itself; it returns an OperationResult and
the presentation layer decides how to surface it.
"""

__all__ = [
    "ErrorKind",
    "OperationResult",
]


class ErrorKind(Enum):
    BLOCKING = "blocking"  # critical fail, must be fixed or overridden
    ADVISORY = "advisory"  # warning, visible but not blocking
    TRANSPORT = "transport"  # backend unreachable or HTTP failure
    DATA_INTEGRITY = "data_integrity"  # unexpected response shape / unreadable data
    INVALID_STATE = "invalid_state"  # operation not allowed in current state


@dataclass(frozen=True)
class OperationResult:
    ok: bool
    message: str = ""
    error_kind: ErrorKind | None = None
    data: Any = None
    details: list[str] = field(default_factory=list)

    @staticmethod
    def success(message: str = "", data: Any = None) -> OperationResult:
        return OperationResult(ok=True, message=message, data=data)

    @staticmethod
    def failure(
        kind: ErrorKind, message: str, *, data: Any = None, details: list[str] | None = None
    ) -> OperationResult:
        return OperationResult(
            ok=False, message=message, error_kind=kind, data=data, details=list(details or [])
        )
