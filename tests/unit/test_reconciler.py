from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest

from src.client.backend import TransportError
from src.logging.audit_log import AuditLogBuffer
from src.models.import_session import ColumnMapping, ImportSession
from src.models.master_data import NEW_INSERT_ID, MasterDataCandidate, MasterDataItem, Section
from src.models.outcome import ErrorKind
from src.services.reconciler import FULL_NAME_ACTION, UPDATE_ACTION, MasterDataReconciler, ReconcilerState

CITY = Section(column_name="City", alias_name="City")
PRODUCT = Section(column_name="ProductName", parent_type=5, alias_name="Product")
CONTACT = Section(column_name="Contact", alias_name="Full Name (First Name Last Name)")


def _session(*mappings: ColumnMapping) -> ImportSession:
    now = datetime.now(UTC)
    return ImportSession(
        session_id="s1",
        file_id="F-1",
        file_name="people.csv",
        import_type="Contacts",
        created_at=now,
        updated_at=now,
        column_mappings=list(mappings),
    )


def _client(sections, candidates_by_column, items=()) -> MagicMock:
    client = MagicMock()
    client.fetch_master_sections.return_value = list(sections)
    client.fetch_candidates.side_effect = lambda file_id, section: [
        MasterDataCandidate(current_value=v, column_name=section.column_name, parent_type=p)
        for v, p in candidates_by_column.get(section.column_name, [])
    ]
    client.fetch_master_items.return_value = list(items)
    client.fetch_product_types.return_value = [MasterDataItem("5", "Hardware"), MasterDataItem("6", "Software")]
    return client


@pytest.fixture()
def mappings():
    return (
        ColumnMapping("City", "City", field_id="11"),
        ColumnMapping("ProductName", "Product", field_id="12"),
        ColumnMapping("Contact", "FullName", field_id="13"),
    )


@pytest.fixture()
def city_items():
    return [MasterDataItem("1", "New York"), MasterDataItem("2", "Boston")]


class TestStart:
    def test_no_sections_finishes_immediately(self, mappings):
        rec = MasterDataReconciler(_client([], {}), _session(*mappings))
        assert rec.start().ok
        assert rec.state is ReconcilerState.FINISHED
        assert rec.progress().unresolved == {}

    def test_loads_first_section(self, mappings, city_items):
        client = _client([CITY, PRODUCT], {"City": [("NYC", None), ("Bostn", None)]}, city_items)
        rec = MasterDataReconciler(client, _session(*mappings))
        assert rec.start().ok
        assert rec.state is ReconcilerState.PRESENTING
        assert [c.current_value for c in rec.active_candidates()] == ["NYC", "Bostn"]
        client.fetch_master_items.assert_called_once_with("11", CITY.parent_type, UPDATE_ACTION)
        client.fetch_product_types.assert_called_once()

    def test_unloaded_sections_count_as_unresolved(self, mappings, city_items):
        client = _client([CITY, PRODUCT], {"City": [("NYC", None)]}, city_items)
        rec = MasterDataReconciler(client, _session(*mappings))
        rec.start()
        assert rec.progress().unresolved == {"City": 1, "Product": -1}

    def test_load_failure_stays_loading_and_can_reload(self, mappings, city_items):
        client = _client([CITY], {"City": [("NYC", None)]}, city_items)
        client.fetch_candidates.side_effect = [TransportError("timeout"), []]
        rec = MasterDataReconciler(client, _session(*mappings))
        result = rec.start()
        assert result.error_kind is ErrorKind.TRANSPORT
        assert rec.state is ReconcilerState.LOADING
        assert rec.reload().ok
        assert rec.state is ReconcilerState.PRESENTING


class TestSelection:
    def test_select_and_clear(self, mappings, city_items):
        rec = MasterDataReconciler(_client([CITY], {"City": [("NYC", None)]}, city_items), _session(*mappings))
        rec.start()
        candidate = rec.select("NYC", "1").data
        assert (candidate.updated_id, candidate.updated_value, candidate.is_new_insert) == ("1", "New York", False)
        rec.select("NYC", None)
        assert not candidate.is_selected
        assert candidate.to_wire()["UpdatedID"] == NEW_INSERT_ID

    def test_select_unknown_option(self, mappings, city_items):
        rec = MasterDataReconciler(_client([CITY], {"City": [("NYC", None)]}, city_items), _session(*mappings))
        rec.start()
        assert rec.select("NYC", "99").error_kind is ErrorKind.INVALID_STATE

    def test_product_options_follow_sub_type(self, mappings):
        items = [MasterDataItem("a", "Laptop", 5), MasterDataItem("b", "Editor", 6), MasterDataItem("c", "Misc")]
        rec = MasterDataReconciler(_client([PRODUCT], {"ProductName": [("Lap top", 5)]}, items), _session(*mappings))
        rec.start()
        candidate = rec.active_candidates()[0]
        assert [i.value for i in rec.options_for(candidate)] == ["a", "c"]
        assert rec.select("Lap top", "b").error_kind is ErrorKind.INVALID_STATE

    def test_change_type_drops_selection(self, mappings):
        items = [MasterDataItem("a", "Laptop", 5), MasterDataItem("b", "Editor", 6)]
        rec = MasterDataReconciler(_client([PRODUCT], {"ProductName": [("Lap top", 5)]}, items), _session(*mappings))
        rec.start()
        rec.select("Lap top", "a")
        candidate = rec.change_type("Lap top", 6).data
        assert candidate.parent_type == 6
        assert not candidate.is_selected
        assert [i.value for i in rec.options_for(candidate)] == ["b"]

    def test_change_type_only_in_product_sections(self, mappings, city_items):
        rec = MasterDataReconciler(_client([CITY], {"City": [("NYC", None)]}, city_items), _session(*mappings))
        rec.start()
        assert rec.change_type("NYC", 3).error_kind is ErrorKind.INVALID_STATE


class TestSubmit:
    def test_full_flow_across_sections(self, mappings, city_items, tmp_path):
        client = _client([CITY, CONTACT], {"City": [("NYC", None)], "Contact": [("Doe Jane", None)]}, city_items)
        audit = AuditLogBuffer(tmp_path)
        rec = MasterDataReconciler(client, _session(*mappings), audit=audit)
        rec.start()
        rec.select("NYC", "1")
        preview = rec.request_submit().data
        assert preview == [{
            "ColumnName": "City",
            "CurrentValue": "NYC",
            "UpdatedValue": "New York",
            "UpdatedID": "1",
            "IsNewInsert": False,
            "IsMarked": False,
            "ParentType": -1,
        }]
        assert rec.state is ReconcilerState.CONFIRMING
        assert rec.confirm_submit().ok
        client.submit_master_data.assert_called_once_with("F-1", preview, field_id="11", action_type=UPDATE_ACTION)
        assert rec.is_section_complete
        assert audit.records[-1].action == "master_data"
        assert audit.records[-1].stage == "DataVerification"

        rec.advance()
        assert rec.current_section == CONTACT
        assert client.fetch_master_items.call_args.args == ("13", CONTACT.parent_type, FULL_NAME_ACTION)
        rec.request_submit()
        rec.confirm_submit()
        assert client.submit_master_data.call_args.kwargs["action_type"] == FULL_NAME_ACTION
        assert rec.advance().ok
        assert rec.state is ReconcilerState.FINISHED
        assert rec.progress().unresolved == {"City": 0, "Full Name (First Name Last Name)": 0}
        assert rec.reconciled_count == 2

    def test_partial_batch_marks_only_submitted(self, mappings, city_items):
        client = _client([CITY], {"City": [("NYC", None), ("Bostn", None), ("LA", None)]}, city_items)
        rec = MasterDataReconciler(client, _session(*mappings))
        rec.start()
        rec.request_submit(values=["NYC", "LA"])
        rec.confirm_submit()
        assert [c.current_value for c in rec.active_candidates()] == ["Bostn"]
        assert len(rec.candidates) == 3
        assert not rec.is_section_complete

        result = rec.advance()
        assert rec.state is ReconcilerState.PRESENTING
        assert "1 value(s) still open" in result.message
        assert rec.progress().unresolved == {"City": 1}

    def test_unselected_candidate_is_sent_as_new_insert(self, mappings, city_items):
        rec = MasterDataReconciler(_client([CITY], {"City": [("Springfield", None)]}, city_items), _session(*mappings))
        rec.start()
        payload = rec.request_submit().data[0]
        assert payload["UpdatedID"] == NEW_INSERT_ID
        assert payload["UpdatedValue"] == "Springfield"
        assert payload["IsNewInsert"] is True

    def test_cancel_returns_to_presenting(self, mappings, city_items):
        client = _client([CITY], {"City": [("NYC", None)]}, city_items)
        rec = MasterDataReconciler(client, _session(*mappings))
        rec.start()
        rec.request_submit()
        assert rec.cancel_submit().ok
        assert rec.state is ReconcilerState.PRESENTING
        client.submit_master_data.assert_not_called()

    def test_missing_field_id_is_data_integrity(self, city_items):
        client = _client([CITY], {"City": [("NYC", None)]}, city_items)
        rec = MasterDataReconciler(client, _session())
        rec.start()
        client.fetch_master_items.assert_not_called()
        rec.request_submit()
        result = rec.confirm_submit()
        assert result.error_kind is ErrorKind.DATA_INTEGRITY
        assert rec.state is ReconcilerState.PRESENTING
        client.submit_master_data.assert_not_called()

    def test_rejected_batch_marks_nothing(self, mappings, city_items):
        client = _client([CITY], {"City": [("NYC", None)]}, city_items)
        client.submit_master_data.side_effect = TransportError("rejected: duplicate value")
        rec = MasterDataReconciler(client, _session(*mappings))
        rec.start()
        rec.request_submit()
        result = rec.confirm_submit()
        assert result.error_kind is ErrorKind.TRANSPORT
        assert rec.state is ReconcilerState.PRESENTING
        assert not rec.candidates[0].is_marked
        assert rec.history == []

    def test_empty_section_can_be_skipped(self, mappings, city_items):
        client = _client([CITY, PRODUCT], {"ProductName": [("Lap top", 5)]}, city_items)
        rec = MasterDataReconciler(client, _session(*mappings))
        rec.start()
        assert rec.candidates == []
        assert rec.request_submit().error_kind is ErrorKind.INVALID_STATE
        assert rec.advance().ok
        assert rec.current_section == PRODUCT

    def test_advance_requires_submission(self, mappings, city_items):
        rec = MasterDataReconciler(_client([CITY], {"City": [("NYC", None)]}, city_items), _session(*mappings))
        rec.start()
        assert rec.advance().error_kind is ErrorKind.INVALID_STATE
