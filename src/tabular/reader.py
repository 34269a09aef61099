from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from pathlib import PurePath
from typing import Any

import pandas as pd

from ..models.record import Record

"""Tabular file reader (CSV / XLS / XLSX).

The first row is the header row; every following row is a data row with a
zero-based row_index. All cells are read as text so the rule engine sees the
values the user typed; empty cells become None.

Raw sampling (``sample_raw_rows``) works below pandas: duplicate headers and
ragged CSV rows must be observable for the file-level checks, and pandas
renames the former and rejects the latter.
"""

__all__ = [
    "EXCEL_EXTENSIONS",
    "ReaderError",
    "TabularData",
    "file_extension",
    "read_table",
    "sample_raw_rows",
]

EXCEL_EXTENSIONS = (".xls", ".xlsx")


class ReaderError(Exception):
    """Raised when file bytes cannot be parsed as a table."""


@dataclass
class TabularData:
    columns: list[str]
    records: list[Record]


def file_extension(name: str) -> str:
    return PurePath(name).suffix.lower()


def _decode_text(content: bytes) -> str:
    return content.decode("utf-8-sig", errors="replace")


def _cell(val: Any) -> Any:
    if val is None:
        return None
    try:
        if pd.isna(val):
            return None
    except (TypeError, ValueError):
        pass
    return val


def sample_raw_rows(name: str, content: bytes, limit: int) -> list[list[str]]:
    """Return up to ``limit`` data rows plus the header row, unparsed.

    CSV rows keep their own length. Excel rows all share the sheet width.
    """
    if file_extension(name) in EXCEL_EXTENSIONS:
        try:
            df = pd.read_excel(
                io.BytesIO(content), header=None, dtype=str, nrows=limit + 1, keep_default_na=False
            )
        except Exception as e:
            raise ReaderError(f"cannot read workbook {name}: {e}") from e
        return [["" if _cell(v) is None else str(v) for v in row] for row in df.itertuples(index=False)]

    rows: list[list[str]] = []
    reader = csv.reader(io.StringIO(_decode_text(content)))
    try:
        for row in reader:
            if not row:
                continue
            rows.append(row)
            if len(rows) > limit:
                break
    except csv.Error as e:
        raise ReaderError(f"cannot read csv {name}: {e}") from e
    return rows


def _read_frame(name: str, content: bytes) -> pd.DataFrame:
    ext = file_extension(name)
    if ext in EXCEL_EXTENSIONS:
        return pd.read_excel(io.BytesIO(content), sheet_name=0, dtype=str, keep_default_na=False)

    header = sample_raw_rows(name, content, limit=0)
    width = len(header[0]) if header else 0
    return pd.read_csv(
        io.BytesIO(content),
        dtype=str,
        keep_default_na=False,
        encoding="utf-8-sig",
        encoding_errors="replace",
        engine="python",
        index_col=False,
        # over-long rows are truncated to the header width; the row-length
        # check reports them separately
        on_bad_lines=lambda bad: bad[:width],
    )


def read_table(name: str, content: bytes) -> TabularData:
    """Parse file bytes into columns and Records.

    Raises:
        ReaderError: if pandas cannot parse the content
    """
    try:
        df = _read_frame(name, content)
    except ReaderError:
        raise
    except Exception as e:
        raise ReaderError(f"cannot parse {name}: {e}") from e

    columns = [str(c).strip() for c in df.columns]
    records: list[Record] = []
    for idx, raw in enumerate(df.itertuples(index=False)):
        values: dict[str, Any] = {}
        for col, val in zip(columns, raw, strict=False):
            cell = _cell(val)
            values[col] = None if cell == "" else cell
        if all(v is None for v in values.values()):
            continue
        records.append(Record(row_index=idx, values=values))
    return TabularData(columns=columns, records=records)
