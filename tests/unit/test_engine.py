from __future__ import annotations

from unittest.mock import patch

from src.models.check_result import CheckStatus, Severity
from src.models.config_models import DataRules, WizardConfig
from src.models.stage import Stage
from src.rules.common import RULE_NAMES, RuleContext, UploadedFile
from src.rules.engine import STAGE_CHECKS, _rule_id, run_check, run_checks


class TestRunChecks:
    def test_every_stage_has_checks(self):
        assert set(STAGE_CHECKS) == set(Stage)
        assert all(STAGE_CHECKS[s] for s in Stage)

    def test_check_names_map_to_catalogued_rule_ids(self):
        """Every registered check derives a rule id with a display name."""
        for checks in STAGE_CHECKS.values():
            for check in checks:
                assert _rule_id(check) in RULE_NAMES

    def test_results_follow_declaration_order(self, records_factory, data_context):
        results = run_checks(Stage.DATA_VALIDATION, records_factory([{"name": "Ann"}]), data_context)
        assert [r.id for r in results] == [
            "email-format",
            "duplicate-row",
            "whitespace",
            "value-range",
            "regex-pattern",
            "reference-data",
        ]

    def test_blocking_result_does_not_stop_remaining_checks(self):
        upload = UploadedFile("notes.txt", b"")
        results = run_checks(Stage.FILE_UPLOAD, upload)
        assert results[1].id == "file-type" and results[1].is_blocking
        assert len(results) == len(STAGE_CHECKS[Stage.FILE_UPLOAD])

    def test_same_input_gives_same_results(self, records_factory, data_context):
        records = records_factory([{"name": " Ann ", "email": "bad", "age": "x"}])
        first = [r.to_dict() for r in run_checks(Stage.DATA_PREFLIGHT, records, data_context)]
        second = [r.to_dict() for r in run_checks(Stage.DATA_PREFLIGHT, records, data_context)]
        assert first == second

    def test_input_records_are_not_mutated(self, records_factory, data_context):
        records = records_factory([{"name": " Ann ", "email": "BAD"}])
        before = [dict(r.values) for r in records]
        run_checks(Stage.DATA_VALIDATION, records, data_context)
        assert [dict(r.values) for r in records] == before


class TestRunCheck:
    def test_raising_check_becomes_fail_high(self, data_context):
        """Malformed dataset never propagates as an exception."""
        def check_numeric_values(dataset, ctx):
            raise AttributeError("'int' object has no attribute 'get'")

        result = run_check(check_numeric_values, [1, 2], data_context)
        assert result.id == "numeric-values"
        assert result.name == "Numeric Fields"
        assert result.status is CheckStatus.FAIL
        assert result.severity is Severity.HIGH
        assert result.message.startswith("Check could not evaluate the data:")

    def test_malformed_records_through_run_checks(self, data_context):
        results = run_checks(Stage.DATA_PREFLIGHT, [1, 2], data_context)
        by_id = {r.id: r for r in results}
        assert len(results) == len(STAGE_CHECKS[Stage.DATA_PREFLIGHT])
        assert by_id["required-fields"].status is CheckStatus.FAIL
        assert by_id["numeric-values"].severity is Severity.HIGH

    def test_bad_pattern_in_code_built_context_is_reported(self, records_factory):
        context = RuleContext(config=WizardConfig(data_rules=DataRules(patterns={"zip": "[0-9"})))
        results = run_checks(Stage.DATA_VALIDATION, records_factory([{"zip": "12345"}]), context)
        by_id = {r.id: r for r in results}
        assert by_id["regex-pattern"].status is CheckStatus.FAIL
        assert by_id["regex-pattern"].message.startswith("Check could not evaluate the data:")

    def test_crash_is_logged_as_warning(self, data_context):
        def check_whitespace(dataset, ctx):
            raise KeyError("name")

        with patch("src.rules.engine.logger") as log:
            run_check(check_whitespace, [], data_context)
        log.warning.assert_called_once()
