from __future__ import annotations

from ..models.processing_result import ProcessingResult

"""SUMMARY line rendering for the preflight CLI.

Format:
    SUMMARY files={total} advanceable={n} blocked={n} rows={n} warnings={n} elapsed_sec={s}
"""


def _format_seconds(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # avoid scientific notation for very small numbers
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(result: ProcessingResult) -> str:
    """Render the SUMMARY line for a preflight run.

    Examples:
        >>> from datetime import datetime, timezone
        >>> t = datetime(2024, 1, 1, tzinfo=timezone.utc)
        >>> render_summary_line(ProcessingResult(start_time=t, end_time=t, elapsed_seconds=2.0))
        'SUMMARY files=0 advanceable=0 blocked=0 rows=0 warnings=0 elapsed_sec=2'
    """
    return (
        f"SUMMARY files={len(result.file_reports)} "
        f"advanceable={result.advanceable_files} "
        f"blocked={result.blocked_files} "
        f"rows={result.total_rows} "
        f"warnings={result.total_warnings} "
        f"elapsed_sec={_format_seconds(result.elapsed_seconds)}"
    )
