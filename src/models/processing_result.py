from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

"""Result models for a local preflight run over one or more files.

FileReport holds one file's outcome; ProcessingResult aggregates a run and
carries everything the SUMMARY line needs.
"""


@dataclass(frozen=True)
class FileReport:
    """Per-file preflight outcome.

    A file is advanceable when none of the stages that ran produced a
    critical failure.
    """
    file_name: str
    advanceable: bool
    stage_statuses: dict[str, str] = field(default_factory=dict)
    critical_failures: int = 0
    warnings: int = 0
    rows: int = 0
    elapsed_seconds: float = 0.0
    blocked_by: tuple[str, ...] = ()  # ids of the critical checks


@dataclass(frozen=True)
class ProcessingResult:
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    file_reports: list[FileReport] = field(default_factory=list)

    @property
    def advanceable_files(self) -> int:
        return sum(1 for r in self.file_reports if r.advanceable)

    @property
    def blocked_files(self) -> int:
        return sum(1 for r in self.file_reports if not r.advanceable)

    @property
    def total_rows(self) -> int:
        return sum(r.rows for r in self.file_reports)

    @property
    def total_warnings(self) -> int:
        return sum(r.warnings for r in self.file_reports)
