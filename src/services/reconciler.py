from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..client.backend import BackendClient, DataIntegrityError, TransportError
from ..logging.audit_log import AuditLogBuffer
from ..models.audit_record import AuditAction, AuditRecord
from ..models.config_models import ReconciliationConfig
from ..models.import_session import ImportSession
from ..models.master_data import MasterDataCandidate, MasterDataItem, Section
from ..models.outcome import ErrorKind, OperationResult
from ..rules.common import ReconciliationProgress

"""Master-data reconciliation, one section at a time.

State machine:

    LOADING -> PRESENTING -> CONFIRMING -> SUBMITTED -> LOADING (next section)
                   ^             |            |     \\-> FINISHED
                   +-------------+            |
                   +--------------------------+  (section still has open candidates)

A candidate becomes marked only after the batch it was sent in is accepted by
the backend. Marked candidates drop out of the active view but stay in
``candidates`` and in the batch history.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "MasterDataReconciler",
    "ReconcilerState",
    "SubmittedBatch",
]

UPDATE_ACTION = "Update"
FULL_NAME_ACTION = "FullName Update"


class ReconcilerState(Enum):
    LOADING = "loading"
    PRESENTING = "presenting"
    CONFIRMING = "confirming"
    SUBMITTED = "submitted"
    FINISHED = "finished"


@dataclass(frozen=True)
class SubmittedBatch:
    section: Section
    field_id: str
    action_type: str
    payload: list[dict[str, Any]] = field(default_factory=list)


class MasterDataReconciler:
    def __init__(
        self,
        client: BackendClient,
        session: ImportSession,
        *,
        config: ReconciliationConfig | None = None,
        audit: AuditLogBuffer | None = None,
    ) -> None:
        self.client = client
        self.session = session
        self.config = config or ReconciliationConfig()
        self.audit = audit
        self.state = ReconcilerState.LOADING
        self.sections: list[Section] = []
        self.section_index = 0
        self.candidates: list[MasterDataCandidate] = []
        self.items: list[MasterDataItem] = []
        self.product_types: list[MasterDataItem] = []
        self.history: list[SubmittedBatch] = []
        self.preview: list[dict[str, Any]] | None = None
        self._chosen: list[MasterDataCandidate] = []
        self._unresolved: dict[str, int] = {}

    # --- section helpers -----------------------------------------------------

    @property
    def current_section(self) -> Section | None:
        if self.state is ReconcilerState.FINISHED or self.section_index >= len(self.sections):
            return None
        return self.sections[self.section_index]

    def is_product_like(self, section: Section) -> bool:
        names = f"{section.column_name} {section.alias_name}".lower()
        return any(kw.lower() in names for kw in self.config.product_like_keywords)

    def action_type(self, section: Section) -> str:
        if self.config.full_name_alias in section.alias_name:
            return FULL_NAME_ACTION
        return UPDATE_ACTION

    def active_candidates(self) -> list[MasterDataCandidate]:
        return [c for c in self.candidates if not c.is_marked]

    @property
    def is_section_complete(self) -> bool:
        return all(c.is_marked for c in self.candidates)

    def _find(self, current_value: str) -> MasterDataCandidate | None:
        for c in self.candidates:
            if c.current_value == current_value and not c.is_marked:
                return c
        return None

    def options_for(self, candidate: MasterDataCandidate) -> list[MasterDataItem]:
        """Canonical items the candidate may map to.

        Product-like sections are further narrowed to the candidate's sub-type.
        """
        section = self.current_section
        if section is None:
            return []
        if self.is_product_like(section) and candidate.parent_type is not None:
            return [i for i in self.items if i.parent_type in (None, candidate.parent_type)]
        return list(self.items)

    # --- loading -------------------------------------------------------------

    def _transport_failure(self, what: str, e: Exception) -> OperationResult:
        kind = ErrorKind.TRANSPORT if isinstance(e, TransportError) else ErrorKind.DATA_INTEGRITY
        logger.error("%s failed: %s", what, e)
        return OperationResult.failure(kind, f"{what} failed: {e}")

    def start(self) -> OperationResult:
        """Fetch the queued sections and load the first one."""
        self.state = ReconcilerState.LOADING
        try:
            self.sections = self.client.fetch_master_sections(self.session.file_id)
            if any(self.is_product_like(s) for s in self.sections):
                self.product_types = self.client.fetch_product_types()
        except (TransportError, DataIntegrityError) as e:
            return self._transport_failure("loading master-data sections", e)
        self.section_index = 0
        self._unresolved = {}
        self.history = []
        if not self.sections:
            self.state = ReconcilerState.FINISHED
            return OperationResult.success("no master-data sections to reconcile")
        return self._load_section()

    def reload(self) -> OperationResult:
        """Retry loading the current section after a failed load."""
        if self.state is not ReconcilerState.LOADING or self.current_section is None:
            return OperationResult.failure(ErrorKind.INVALID_STATE, "nothing to reload")
        return self._load_section()

    def _load_section(self) -> OperationResult:
        self.state = ReconcilerState.LOADING
        section = self.sections[self.section_index]
        field_id = self.session.field_id_for(section.column_name)
        try:
            candidates = self.client.fetch_candidates(self.session.file_id, section)
            if field_id is None:
                logger.warning("no mapped field id for %s; master list not loaded", section.column_name)
                items: list[MasterDataItem] = []
            else:
                items = self.client.fetch_master_items(field_id, section.parent_type, self.action_type(section))
        except (TransportError, DataIntegrityError) as e:
            return self._transport_failure(f"loading section {section.display_name}", e)
        self.candidates = candidates
        self.items = items
        self.preview = None
        self._chosen = []
        self._unresolved[section.display_name] = len(self.active_candidates())
        self.state = ReconcilerState.PRESENTING
        return OperationResult.success(
            f"section {section.display_name}: {len(candidates)} value(s) to reconcile", data=section
        )

    # --- selection -----------------------------------------------------------

    def _require(self, state: ReconcilerState) -> OperationResult | None:
        if self.state is not state:
            return OperationResult.failure(
                ErrorKind.INVALID_STATE, f"operation needs state {state.value}, current is {self.state.value}"
            )
        return None

    def select(self, current_value: str, item_value: str | None) -> OperationResult:
        """Map a candidate onto a canonical item; an empty selection means new insert.

        Args:
            current_value: Candidate value as found in the upload
            item_value: Canonical item value, or None to insert the value as new

        Returns:
            OperationResult carrying the updated candidate
        """
        invalid = self._require(ReconcilerState.PRESENTING)
        if invalid is not None:
            return invalid
        candidate = self._find(current_value)
        if candidate is None:
            return OperationResult.failure(ErrorKind.INVALID_STATE, f"no open candidate {current_value!r}")
        if not item_value:
            candidate.clear_selection()
            return OperationResult.success(data=candidate)
        for item in self.options_for(candidate):
            if item.value == item_value:
                candidate.updated_id = item.value
                candidate.updated_value = item.display
                candidate.is_new_insert = False
                return OperationResult.success(data=candidate)
        return OperationResult.failure(
            ErrorKind.INVALID_STATE, f"{item_value!r} is not a valid option for {current_value!r}"
        )

    def change_type(self, current_value: str, parent_type: int) -> OperationResult:
        """Switch a Product-like candidate's sub-type; drops its previous match.

        Args:
            current_value: Candidate value as found in the upload
            parent_type: Product sub-type id the candidate belongs to
        """
        invalid = self._require(ReconcilerState.PRESENTING)
        if invalid is not None:
            return invalid
        section = self.current_section
        if section is None or not self.is_product_like(section):
            return OperationResult.failure(ErrorKind.INVALID_STATE, "type can only change in product-like sections")
        candidate = self._find(current_value)
        if candidate is None:
            return OperationResult.failure(ErrorKind.INVALID_STATE, f"no open candidate {current_value!r}")
        candidate.parent_type = parent_type
        candidate.clear_selection()
        return OperationResult.success(data=candidate)

    # --- submission ----------------------------------------------------------

    def request_submit(self, values: Iterable[str] | None = None) -> OperationResult:
        """Preview the batch: every open candidate, or only those in ``values``.

        Returns:
            OperationResult carrying the candidates that confirm_submit will send
        """
        invalid = self._require(ReconcilerState.PRESENTING)
        if invalid is not None:
            return invalid
        chosen = self.active_candidates()
        if values is not None:
            wanted = set(values)
            chosen = [c for c in chosen if c.current_value in wanted]
        if not chosen:
            return OperationResult.failure(ErrorKind.INVALID_STATE, "no open candidates to submit")
        self._chosen = chosen
        self.preview = [c.to_wire() for c in chosen]
        self.state = ReconcilerState.CONFIRMING
        return OperationResult.success(f"{len(chosen)} value(s) ready to submit", data=self.preview)

    def cancel_submit(self) -> OperationResult:
        invalid = self._require(ReconcilerState.CONFIRMING)
        if invalid is not None:
            return invalid
        self._chosen = []
        self.preview = None
        self.state = ReconcilerState.PRESENTING
        return OperationResult.success("submission cancelled")

    def confirm_submit(self) -> OperationResult:
        """Send the previewed batch; on success mark exactly the submitted candidates."""
        invalid = self._require(ReconcilerState.CONFIRMING)
        if invalid is not None:
            return invalid
        section = self.sections[self.section_index]
        field_id = self.session.field_id_for(section.column_name)
        if field_id is None:
            self.state = ReconcilerState.PRESENTING
            return OperationResult.failure(
                ErrorKind.DATA_INTEGRITY, f"no mapped field id for column {section.column_name!r}"
            )
        payload = self.preview or []
        action = self.action_type(section)
        try:
            self.client.submit_master_data(self.session.file_id, payload, field_id=field_id, action_type=action)
        except (TransportError, DataIntegrityError) as e:
            self.state = ReconcilerState.PRESENTING
            return self._transport_failure(f"submitting section {section.display_name}", e)

        for c in self._chosen:
            c.is_marked = True
        batch = SubmittedBatch(section=section, field_id=field_id, action_type=action, payload=payload)
        self.history.append(batch)
        self._unresolved[section.display_name] = len(self.active_candidates())
        if self.audit is not None:
            self.audit.append(
                AuditRecord.create(
                    self.session.session_id,
                    "DataVerification",
                    AuditAction.MASTER_DATA,
                    f"{section.display_name}: {len(payload)} value(s) action={action}",
                )
            )
        self._chosen = []
        self.preview = None
        self.state = ReconcilerState.SUBMITTED
        return OperationResult.success(f"{len(payload)} value(s) submitted", data=batch)

    def advance(self) -> OperationResult:
        """Leave SUBMITTED: next section, FINISHED, or back to PRESENTING if values remain.

        A section that loaded with no candidates is already complete and may be
        left straight from PRESENTING.
        """
        empty_section = self.state is ReconcilerState.PRESENTING and not self.candidates
        if not empty_section:
            invalid = self._require(ReconcilerState.SUBMITTED)
            if invalid is not None:
                return invalid
        if not self.is_section_complete:
            self.state = ReconcilerState.PRESENTING
            return OperationResult.success(
                f"{len(self.active_candidates())} value(s) still open in this section", data=self.state
            )
        if self.section_index + 1 >= len(self.sections):
            self.section_index = len(self.sections)
            self.state = ReconcilerState.FINISHED
            logger.info("master-data reconciliation finished (%d batch(es))", len(self.history))
            return OperationResult.success("all sections reconciled", data=self.state)
        self.section_index += 1
        return self._load_section()

    # --- progress ------------------------------------------------------------

    @property
    def reconciled_count(self) -> int:
        return sum(len(b.payload) for b in self.history)

    def progress(self) -> ReconciliationProgress:
        """Unresolved counts per section; a section not yet loaded counts as unresolved."""
        unresolved = {s.display_name: self._unresolved.get(s.display_name, -1) for s in self.sections}
        return ReconciliationProgress(total_sections=len(self.sections), unresolved=unresolved)
