from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

from src.cli.__main__ import main as cli_main
from src.client.backend import StagePage, TransportError
from src.models.stage import ResultFilter


class TestPreflightCommand:
    def test_clean_file_exits_zero(self, write_config: Path, write_csv, capsys):
        f = write_csv("clean.csv", "name,email,age\nAnn,ann@x.io,30\nBob,bob@x.io,41\n")
        assert cli_main(["preflight", str(f)]) == 0
        out = capsys.readouterr().out
        assert "SUMMARY files=1 advanceable=1 blocked=0 rows=2 warnings=0" in out

    def test_duplicate_headers_warn_but_advance(self, write_config: Path, write_csv, capsys):
        """header-uniqueness is fail/high: advisory, not blocking."""
        f = write_csv("dup.csv", "name,email,email\nAnn,ann@x.io,ann@y.io\n")
        assert cli_main(["preflight", str(f)]) == 0
        out = capsys.readouterr().out
        assert "WARN dup.csv [FileUpload] Header Uniqueness" in out

    def test_header_only_file_is_blocked(self, write_config: Path, write_csv, capsys):
        f = write_csv("empty.csv", "name,email\n")
        assert cli_main(["preflight", str(f)]) == 2
        out = capsys.readouterr().out
        assert "ERROR empty.csv [FileUpload] Minimum Row Count" in out
        assert "blocked=1" in out

    def test_directory_scan_mixes_results(self, write_config: Path, write_csv, capsys):
        write_csv("good.csv", "name,email,age\nAnn,ann@x.io,30\n")
        write_csv("bad.csv", "name,email,age\n,ann@x.io,abc\n")
        write_csv("readme.txt", "ignored in directory scans")
        code = cli_main(["preflight", "data"])
        out = capsys.readouterr().out
        # fail/high data problems are advisory, so both files advance
        assert code == 0
        assert "SUMMARY files=2 advanceable=2" in out
        assert "WARN bad.csv [DataPreflight] Numeric Fields" in out

    def test_debug_flag(self, write_config: Path, write_csv, capsys):
        f = write_csv("clean.csv", "name,email,age\nAnn,ann@x.io,30\n")
        cli_main(["--debug", "preflight", str(f)])
        assert "DEBUG debug mode enabled" in capsys.readouterr().out


class TestStatusCommand:
    @staticmethod
    def _fetch(errors: int, warnings: int):
        def fetch(file_id, stage, *, start_index, page_size, result_filter):
            n = errors if result_filter is ResultFilter.ERROR else warnings
            return StagePage(records=[], count=n)
        return fetch

    def test_status_reports_backend_counts(self, write_config: Path, capsys):
        with patch("src.cli.__main__.BackendClient") as mock_cls:
            mock_cls.from_config.return_value.fetch_stage_data.side_effect = self._fetch(errors=0, warnings=2)
            code = cli_main(["status", "F-1"])
        out = capsys.readouterr().out
        assert code == 0
        assert "INFO DataValidation: Warning (0 error row(s), 2 warning row(s))" in out
        assert "SUMMARY file=F-1 stages=2 advanceable=2 failed=0" in out

    def test_backend_down(self, write_config: Path, capsys):
        with patch("src.cli.__main__.BackendClient") as mock_cls:
            mock_cls.from_config.return_value.fetch_stage_data.side_effect = TransportError("connection refused")
            code = cli_main(["status", "F-1"])
        out = capsys.readouterr().out
        assert code == 2
        assert "ERROR DataPreflight: transport: connection refused" in out
        assert "failed=2" in out
