from __future__ import annotations

import io

import pandas as pd
import pytest

from src.tabular.reader import ReaderError, file_extension, read_table, sample_raw_rows


class TestReadTable:
    def test_csv_values_are_text_and_empty_is_none(self):
        data = read_table("people.csv", b"name,age,zip\nAnn,030,\nBob,41,02134\n")
        assert data.columns == ["name", "age", "zip"]
        assert data.records[0].values == {"name": "Ann", "age": "030", "zip": None}
        assert data.records[1].get("zip") == "02134"

    def test_blank_rows_skipped_but_indices_kept(self):
        data = read_table("people.csv", b"name,age\nAnn,1\n,\nBob,2\n")
        assert [r.row_index for r in data.records] == [0, 2]

    def test_utf8_bom_removed_from_header(self):
        data = read_table("bom.csv", "\ufeffname\nAnn\n".encode("utf-8"))
        assert data.columns == ["name"]

    def test_over_long_row_is_truncated(self):
        data = read_table("ragged.csv", b"a,b\n4,5\n1,2,3\n")
        assert data.records[1].values == {"a": "1", "b": "2"}

    def test_xlsx(self):
        buf = io.BytesIO()
        pd.DataFrame({"name": ["Ann", None], "age": ["30", "41"]}).to_excel(buf, index=False)
        data = read_table("book.xlsx", buf.getvalue())
        assert data.columns == ["name", "age"]
        assert data.records[1].get("name") is None

    def test_unreadable_workbook(self):
        with pytest.raises(ReaderError):
            read_table("broken.xlsx", b"garbage")


class TestSampleRawRows:
    def test_keeps_duplicate_headers_and_row_lengths(self):
        rows = sample_raw_rows("x.csv", b"a,a\n1,2,3\n", limit=10)
        assert rows == [["a", "a"], ["1", "2", "3"]]

    def test_limit_counts_data_rows(self):
        rows = sample_raw_rows("x.csv", b"a\n1\n2\n3\n", limit=2)
        assert rows == [["a"], ["1"], ["2"]]


def test_file_extension_lower_cased():
    assert file_extension("Report.XLSX") == ".xlsx"
    assert file_extension("noext") == ""
