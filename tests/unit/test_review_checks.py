from __future__ import annotations

from src.models.check_result import CheckStatus, Severity
from src.models.config_models import MappingRules, WizardConfig
from src.models.import_session import ColumnMapping
from src.models.record import AnnotationKind, CellAnnotation, Record
from src.rules.common import PushDataset, ReconciliationProgress, ReviewSummary, RuleContext
from src.rules.review_checks import (
    check_data_integrity,
    check_manual_corrections_review,
    check_master_data_resolved,
    check_missing_data_review,
    check_override_review,
    check_schema_compatibility,
)


def _push_ctx() -> RuleContext:
    return RuleContext(config=WizardConfig(mapping_rules=MappingRules(required_target_fields=("Email",))))


class TestMasterDataResolved:
    def test_all_sections_zero_passes(self):
        progress = ReconciliationProgress(total_sections=2, unresolved={"City": 0, "Product": 0})
        result = check_master_data_resolved(progress, RuleContext())
        assert result.status is CheckStatus.PASS

    def test_unresolved_and_unloaded_sections_block(self):
        progress = ReconciliationProgress(total_sections=2, unresolved={"City": 3, "Product": -1})
        result = check_master_data_resolved(progress, RuleContext())
        assert result.is_blocking
        assert result.technical_details == ["City: 3 unresolved", "Product: not reviewed"]

    def test_no_sections_passes(self):
        result = check_master_data_resolved(ReconciliationProgress(total_sections=0), RuleContext())
        assert result.status is CheckStatus.PASS


class TestFinalReview:
    def test_summary_checks_always_pass(self):
        summary = ReviewSummary(manual_corrections=2, empty_cells={"phone": 4, "fax": 0})
        assert check_manual_corrections_review(summary, RuleContext()).message.startswith("2 manual")
        missing = check_missing_data_review(summary, RuleContext())
        assert missing.status is CheckStatus.PASS
        assert missing.technical_details == ["phone: 4 empty"]

    def test_override_is_surfaced_as_low_warning(self):
        summary = ReviewSummary(overridden_stages=("DataValidation",))
        result = check_override_review(summary, RuleContext())
        assert result.status is CheckStatus.WARNING
        assert result.severity is Severity.LOW
        assert "DataValidation" in result.message


class TestImportPush:
    def test_unmapped_required_target_blocks(self):
        dataset = PushDataset(records=(), mappings=(ColumnMapping("mail", ""),))
        assert check_schema_compatibility(dataset, _push_ctx()).is_blocking

    def test_mapped_source_absent_from_records_blocks(self):
        dataset = PushDataset(
            records=(Record(0, {"name": "Ann"}),),
            mappings=(ColumnMapping("mail", "Email"),),
        )
        assert check_schema_compatibility(dataset, _push_ctx()).is_blocking

    def test_mapped_and_present_passes(self):
        dataset = PushDataset(
            records=(Record(0, {"mail": "a@x.io"}),),
            mappings=(ColumnMapping("mail", "email"),),
        )
        assert check_schema_compatibility(dataset, _push_ctx()).status is CheckStatus.PASS

    def test_error_rows_block_push(self):
        bad = Record(1, {"mail": "x"}, (CellAnnotation("mail", AnnotationKind.ERROR, "invalid"),))
        warn = Record(2, {"mail": "y"}, (CellAnnotation("mail", AnnotationKind.WARNING, "odd"),))
        dataset = PushDataset(records=(Record(0, {"mail": "a"}), bad, warn), mappings=())
        result = check_data_integrity(dataset, RuleContext())
        assert result.is_blocking
        assert result.technical_details == ["rows=[1]"]
