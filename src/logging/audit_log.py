from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from src.models.audit_record import AuditRecord

"""Audit log buffering.

- JSON Lines, fixed schema (see AuditRecord)
- one file per process run: `logs/audit-YYYYMMDD-HHMMSS.log` (UTC)
- records are buffered in memory and appended on flush()
"""

__all__ = [
    "AuditLogBuffer",
    "AuditRecord",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class AuditLogBuffer:
    """In-memory buffer for audit records. Flush writes JSON Lines.

    Single-threaded use only; the wizard core never mutates it concurrently.
    """
    def __init__(self, logs_dir: Path | None = None) -> None:
        self._records: list[AuditRecord] = []
        self._logs_dir = logs_dir or LOGS_DIR
        self._file_path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"audit-{stamp}.log"
        return self._file_path

    def append(self, record: AuditRecord) -> None:
        self._records.append(record)

    @property
    def records(self) -> list[AuditRecord]:
        """Unflushed records, oldest first."""
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def flush(self) -> Path | None:
        """Append buffered records to the log file.

        Returns the file path, or None when there was nothing to write.
        """
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
