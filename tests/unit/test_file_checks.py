from __future__ import annotations

import io

import pandas as pd
import pytest

from src.models.check_result import CheckStatus, Severity
from src.models.config_models import FileRules, WizardConfig
from src.rules.common import RuleContext, UploadedFile
from src.rules.file_checks import (
    check_file_encoding,
    check_file_integrity,
    check_file_size,
    check_file_type,
    check_header_uniqueness,
    check_min_rows,
    check_required_columns,
    check_row_length,
)


def _ctx(**file_rules) -> RuleContext:
    return RuleContext(config=WizardConfig(file_rules=FileRules(**file_rules)))


def _csv(text: str, name: str = "input.csv") -> UploadedFile:
    return UploadedFile(name=name, content=text.encode("utf-8"))


class TestFileSize:
    def test_within_limit_passes(self):
        result = check_file_size(_csv("a\n1\n"), _ctx(max_file_size_bytes=100))
        assert result.status is CheckStatus.PASS

    def test_over_limit_is_critical_fail(self):
        result = check_file_size(UploadedFile("big.csv", b"x" * 101), _ctx(max_file_size_bytes=100))
        assert result.status is CheckStatus.FAIL
        assert result.severity is Severity.CRITICAL
        assert result.is_blocking

    def test_exactly_at_limit_passes(self):
        result = check_file_size(UploadedFile("edge.csv", b"x" * 100), _ctx(max_file_size_bytes=100))
        assert result.status is CheckStatus.PASS


class TestFileType:
    @pytest.mark.parametrize("name", ["a.csv", "b.XLSX", "c.xls"])
    def test_allowed_extensions(self, name):
        assert check_file_type(UploadedFile(name, b""), _ctx()).status is CheckStatus.PASS

    def test_other_extension_is_critical(self):
        result = check_file_type(UploadedFile("notes.txt", b""), _ctx())
        assert result.status is CheckStatus.FAIL
        assert result.severity is Severity.CRITICAL
        assert ".txt" in result.message


class TestFileEncoding:
    def test_valid_utf8(self):
        assert check_file_encoding(_csv("name\nJosé\n"), _ctx()).status is CheckStatus.PASS

    def test_invalid_bytes_fail_high(self):
        upload = UploadedFile("latin.csv", "name\nJos\xe9\n".encode("latin-1"))
        result = check_file_encoding(upload, _ctx())
        assert result.status is CheckStatus.FAIL
        assert result.severity is Severity.HIGH

    def test_multibyte_cut_at_sample_boundary_is_tolerated(self):
        content = ("a" * 9 + "é" + "tail").encode("utf-8")  # é spans bytes 9-10
        result = check_file_encoding(UploadedFile("cut.csv", content), _ctx(encoding_sample_bytes=10))
        assert result.status is CheckStatus.PASS

    def test_truncated_character_at_end_of_file_fails(self):
        content = "abc".encode("utf-8") + "é".encode("utf-8")[:1]
        result = check_file_encoding(UploadedFile("cut.csv", content), _ctx())
        assert result.status is CheckStatus.FAIL

    def test_excel_passes_without_decoding(self):
        upload = UploadedFile("book.xlsx", b"PK\x03\x04\xff\xfe")
        assert check_file_encoding(upload, _ctx()).status is CheckStatus.PASS


class TestHeaderUniqueness:
    def test_duplicate_headers_fail_high(self):
        """Headers name,email,email -> fail/high."""
        result = check_header_uniqueness(_csv("name,email,email\nA,a@x.io,b@x.io\n"), _ctx())
        assert result.status is CheckStatus.FAIL
        assert result.severity is Severity.HIGH
        assert "email" in result.message

    def test_unique_headers_pass(self):
        result = check_header_uniqueness(_csv("name,email\nA,a@x.io\n"), _ctx())
        assert result.status is CheckStatus.PASS

    def test_duplicate_headers_in_workbook(self):
        buf = io.BytesIO()
        pd.DataFrame([["A", "a@x.io", "b@x.io"]]).to_excel(buf, index=False, header=["name", "email", "email"])
        result = check_header_uniqueness(UploadedFile("dup.xlsx", buf.getvalue()), _ctx())
        assert result.status is CheckStatus.FAIL


class TestRowLength:
    def test_consistent_rows_pass(self):
        assert check_row_length(_csv("a,b\n1,2\n3,4\n"), _ctx()).status is CheckStatus.PASS

    def test_ragged_rows_fail_medium(self):
        result = check_row_length(_csv("a,b\n1,2\n3,4,5\n"), _ctx())
        assert result.status is CheckStatus.FAIL
        assert result.severity is Severity.MEDIUM
        assert "column_counts=[2, 3]" in result.technical_details

    def test_only_sampled_rows_are_considered(self):
        text = "a,b\n" + "1,2\n" * 5 + "1,2,3\n"
        assert check_row_length(_csv(text), _ctx(row_sample_size=3)).status is CheckStatus.PASS


class TestRequiredColumns:
    def test_case_insensitive_match(self):
        result = check_required_columns(_csv("Name,EMAIL\nA,a@x.io\n"), _ctx(required_columns=("name", "email")))
        assert result.status is CheckStatus.PASS

    def test_missing_column_is_warning_medium(self):
        result = check_required_columns(_csv("name\nA\n"), _ctx(required_columns=("name", "email")))
        assert result.status is CheckStatus.WARNING
        assert result.severity is Severity.MEDIUM
        assert "email" in result.message
        assert not result.is_blocking


class TestIntegrityAndMinRows:
    def test_header_only_file_has_no_data_rows(self):
        result = check_min_rows(_csv("name,email\n"), _ctx())
        assert result.status is CheckStatus.FAIL
        assert result.severity is Severity.CRITICAL

    def test_blank_lines_do_not_count_as_rows(self):
        assert check_min_rows(_csv("name\n,\n\n"), _ctx()).status is CheckStatus.FAIL

    def test_corrupt_workbook_fails_integrity(self):
        upload = UploadedFile("broken.xlsx", b"not a zip file")
        result = check_file_integrity(upload, _ctx())
        assert result.status is CheckStatus.FAIL
        assert result.severity is Severity.CRITICAL
        assert result.technical_details

    def test_structural_checks_pending_when_unreadable(self):
        upload = UploadedFile("broken.xlsx", b"not a zip file")
        for check in (check_header_uniqueness, check_row_length, check_required_columns, check_min_rows):
            assert check(upload, _ctx()).status is CheckStatus.PENDING
