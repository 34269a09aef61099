from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import replace
from enum import Enum
from typing import Any

from ..client.backend import BackendClient, DataIntegrityError, TransportError
from ..logging.audit_log import AuditLogBuffer
from ..models.audit_record import AuditAction, AuditRecord
from ..models.check_result import CheckResult
from ..models.correction import AppliedCommit, CorrectionItem, PendingCommit, group_id_for
from ..models.outcome import ErrorKind, OperationResult
from ..models.record import Record
from ..models.stage import Stage
from ..rules.common import RuleContext
from ..rules.data_checks import DATA_CHECKS_BY_ID

"""Correction session for one CheckResult.

The session owns a working copy of the Records and one CorrectionItem draft
per affected cell. Drafts change freely; the working copy changes only through
commit -> choose_propagation, which is the explicit decision point between
updating one cell and updating every cell of the field that holds the same
old value. Applied commits are queued in confirmation order and flushed to
the backend by submit_pending.

The original Records are never touched. close() drops drafts, the queue and
the working copy.
"""

logger = logging.getLogger(__name__)

# checks that compare rows with each other; re-run over the whole working copy
ROW_COMPARING_CHECKS = frozenset({"duplicate-row"})

__all__ = [
    "CorrectionSession",
    "CorrectionState",
]


class CorrectionState(Enum):
    EDITING = "editing"
    AWAITING_PROPAGATION_CHOICE = "awaiting_propagation_choice"
    CLOSED = "closed"


class CorrectionSession:
    def __init__(
        self,
        records: Sequence[Record],
        result: CheckResult,
        *,
        context: RuleContext | None = None,
        audit: AuditLogBuffer | None = None,
        stage: Stage = Stage.DATA_VALIDATION,
        session_id: str = "",
        file_id: str | None = None,
        field_ids: dict[str, str] | None = None,
    ) -> None:
        self.result = result
        self.context = context or RuleContext()
        self.audit = audit
        self.stage = stage
        self.session_id = session_id
        self.file_id = file_id
        self.field_ids = dict(field_ids or {})
        self.state = CorrectionState.EDITING
        self.pending: PendingCommit | None = None
        self.manual_corrections = 0
        self.auto_corrections = 0

        self._originals = tuple(records)
        self._order = [r.row_index for r in self._originals]
        self._working: dict[int, Record] = {r.row_index: r for r in self._originals}
        self._items: dict[tuple[int, str], CorrectionItem] = {}
        self._resolved: set[tuple[int, str]] = set()
        self._queue: list[AppliedCommit] = []
        self._submitted: list[AppliedCommit] = []
        self._sequence = 0
        self._submitting = False
        self._search = ""
        self._field_filter: str | None = None

        for row in result.affected_rows or []:
            column = row.column or result.field
            if column is None or row.row_index not in self._working:
                continue
            value = self._working[row.row_index].get(column)
            self._items[(row.row_index, column)] = CorrectionItem(
                row_index=row.row_index,
                field_name=column,
                original_value=value,
                corrected_value=value,
                suggested_value=row.suggested_value,
                group_id=group_id_for(column, value),
            )

    # --- views ---------------------------------------------------------------

    @property
    def items(self) -> list[CorrectionItem]:
        return list(self._items.values())

    @property
    def queued_commits(self) -> list[AppliedCommit]:
        return list(self._queue)

    @property
    def submitted_commits(self) -> list[AppliedCommit]:
        return list(self._submitted)

    @property
    def is_busy(self) -> bool:
        return self._submitting

    def item(self, row_index: int, field_name: str) -> CorrectionItem | None:
        return self._items.get((row_index, field_name))

    def working_value(self, row_index: int, field_name: str) -> Any:
        return self._working[row_index].get(field_name)

    def unresolved_items(self) -> list[CorrectionItem]:
        return [i for key, i in self._items.items() if key not in self._resolved]

    def set_filter(self, search: str = "", field_name: str | None = None) -> None:
        """Narrow the visible items.

        Args:
            search: Case-insensitive text matched against original value,
                suggestion and field name
            field_name: Only show items of this column
        """
        self._search = search.strip().lower()
        self._field_filter = field_name

    def _is_visible(self, item: CorrectionItem) -> bool:
        if self._field_filter is not None and item.field_name != self._field_filter:
            return False
        if not self._search:
            return True
        haystack = (item.original_value, item.suggested_value, item.field_name)
        return any(self._search in str(v).lower() for v in haystack if v is not None)

    def visible_items(self) -> list[CorrectionItem]:
        return [i for i in self._items.values() if self._is_visible(i)]

    def corrected_records(self) -> tuple[Record, ...]:
        """Working copy in source order; these supersede the original Records."""
        return tuple(self._working[idx] for idx in self._order)

    # --- drafts --------------------------------------------------------------

    def _closed(self) -> OperationResult | None:
        if self.state is CorrectionState.CLOSED:
            return OperationResult.failure(ErrorKind.INVALID_STATE, "correction session is closed")
        return None

    def edit_cell(self, row_index: int, field_name: str, value: Any) -> OperationResult:
        """Change the draft of one cell; the working copy is untouched.

        Args:
            row_index: Source row of the cell
            field_name: Column of the cell
            value: New draft value

        Returns:
            OperationResult carrying the CorrectionItem, created on first edit
            when the cell was not listed by the check
        """
        closed = self._closed()
        if closed is not None:
            return closed
        record = self._working.get(row_index)
        if record is None:
            return OperationResult.failure(ErrorKind.INVALID_STATE, f"row {row_index} is not in this session")
        item = self._items.get((row_index, field_name))
        if item is None:
            current = record.get(field_name)
            item = CorrectionItem(
                row_index=row_index,
                field_name=field_name,
                original_value=current,
                corrected_value=current,
                group_id=group_id_for(field_name, current),
            )
            self._items[(row_index, field_name)] = item
        item.corrected_value = value
        return OperationResult.success(data=item)

    def accept_suggestion(self, item: CorrectionItem) -> OperationResult:
        """Copy the suggested value into the draft of ``item`` only."""
        closed = self._closed()
        if closed is not None:
            return closed
        if not item.has_suggestion:
            return OperationResult.failure(
                ErrorKind.INVALID_STATE, f"no suggestion for row {item.row_index} field {item.field_name}"
            )
        item.corrected_value = item.suggested_value
        return OperationResult.success(data=item)

    def accept_all_visible(self) -> OperationResult:
        """Apply suggestions to exactly the items passing the current filter."""
        closed = self._closed()
        if closed is not None:
            return closed
        applied = 0
        for item in self.visible_items():
            if item.has_suggestion:
                item.corrected_value = item.suggested_value
                applied += 1
        return OperationResult.success(f"{applied} suggestion(s) applied", data=applied)

    def reset(self, item: CorrectionItem) -> OperationResult:
        """Restore the draft of ``item`` to its original value."""
        closed = self._closed()
        if closed is not None:
            return closed
        item.corrected_value = item.original_value
        return OperationResult.success(data=item)

    # --- commit --------------------------------------------------------------

    def commit(self, row_index: int, field_name: str, new_value: Any = None) -> OperationResult:
        """Stage a commit of the draft (or ``new_value``) for one cell.

        Never writes to the working copy. When the value changes, the session
        moves to AWAITING_PROPAGATION_CHOICE and waits for choose_propagation.

        Args:
            row_index: Source row of the cell
            field_name: Column of the cell
            new_value: Value to commit; defaults to the cell's current draft

        Returns:
            OperationResult carrying the PendingCommit, whose ``matching_rows``
            lists every row holding the old value in the same column
        """
        closed = self._closed()
        if closed is not None:
            return closed
        if self.state is CorrectionState.AWAITING_PROPAGATION_CHOICE:
            return OperationResult.failure(ErrorKind.INVALID_STATE, "a commit is already awaiting a propagation choice")
        record = self._working.get(row_index)
        if record is None:
            return OperationResult.failure(ErrorKind.INVALID_STATE, f"row {row_index} is not in this session")
        item = self._items.get((row_index, field_name))
        if new_value is None:
            if item is None:
                return OperationResult.failure(ErrorKind.INVALID_STATE, "nothing to commit")
            new_value = item.corrected_value
        old_value = record.get(field_name)
        if new_value == old_value:
            return OperationResult.success("value unchanged")
        matching = tuple(idx for idx in self._order if self._working[idx].get(field_name) == old_value)
        self.pending = PendingCommit(
            row_index=row_index,
            field_name=field_name,
            old_value=old_value,
            new_value=new_value,
            matching_rows=matching,
        )
        self.state = CorrectionState.AWAITING_PROPAGATION_CHOICE
        return OperationResult.success(
            f"{len(matching)} row(s) hold {old_value!r} in {field_name}", data=self.pending
        )

    def cancel_propagation(self) -> OperationResult:
        if self.state is not CorrectionState.AWAITING_PROPAGATION_CHOICE:
            return OperationResult.failure(ErrorKind.INVALID_STATE, "no commit is awaiting a propagation choice")
        self.pending = None
        self.state = CorrectionState.EDITING
        return OperationResult.success("commit cancelled")

    def choose_propagation(self, propagate: bool) -> OperationResult:
        """Apply the pending commit to every matching cell, or to its own cell only.

        Args:
            propagate: True to update every row holding the old value

        Returns:
            Success with the AppliedCommit, or an ADVISORY failure listing the
            changed rows that still fail the originating check. The change
            stays applied and queued in both cases.
        """
        if self.state is not CorrectionState.AWAITING_PROPAGATION_CHOICE or self.pending is None:
            return OperationResult.failure(ErrorKind.INVALID_STATE, "no commit is awaiting a propagation choice")
        pending = self.pending
        changed = pending.matching_rows if propagate else (pending.row_index,)
        for idx in changed:
            self._working[idx] = self._working[idx].with_values({pending.field_name: pending.new_value})
            item = self._items.get((idx, pending.field_name))
            if item is not None:
                item.corrected_value = pending.new_value

        origin = self._items.get((pending.row_index, pending.field_name))
        if origin is not None and origin.has_suggestion and pending.new_value == origin.suggested_value:
            self.auto_corrections += len(changed)
        else:
            self.manual_corrections += len(changed)

        self._sequence += 1
        applied = AppliedCommit(
            sequence=self._sequence,
            row_index=pending.row_index,
            field_name=pending.field_name,
            old_value=pending.old_value,
            new_value=pending.new_value,
            propagate=propagate,
            changed_rows=tuple(changed),
        )
        self._queue.append(applied)
        self.pending = None
        self.state = CorrectionState.EDITING
        if self.audit is not None:
            self.audit.append(
                AuditRecord.create(
                    self.session_id,
                    self.stage.value,
                    AuditAction.CORRECTION,
                    f"{self.result.id} {pending.field_name}: {pending.old_value!r} -> {pending.new_value!r} rows={list(changed)}",
                )
            )

        failing = self._revalidate(pending.field_name, changed)
        if failing:
            logger.info("commit %d still fails %s on rows %s", applied.sequence, self.result.id, failing)
            return OperationResult.failure(
                ErrorKind.ADVISORY,
                f"corrected value still fails {self.result.name}",
                data=applied,
                details=[f"row {idx}" for idx in failing],
            )
        self._resolved.update((idx, pending.field_name) for idx in changed)
        return OperationResult.success(f"{len(changed)} row(s) updated", data=applied)

    def _revalidate(self, field_name: str, rows: Sequence[int]) -> list[int]:
        """Re-run the originating check and return the changed rows that still fail it.

        Row-comparing checks see the whole working copy so a new value is
        compared against the rows that did not change.
        """
        check = DATA_CHECKS_BY_ID.get(self.result.id)
        if check is None:
            return []
        if self.result.id in ROW_COMPARING_CHECKS:
            result = check(self.corrected_records(), self.context)
        else:
            result = check([self._working[idx] for idx in rows], self.context)
        changed = set(rows)
        return sorted(
            {
                a.row_index
                for a in result.affected_rows or []
                if a.column in (None, field_name) and a.row_index in changed
            }
        )

    # --- submission ----------------------------------------------------------

    def submit_pending(self, client: BackendClient, *, row_id_column: str | None = None) -> OperationResult:
        """Send queued commits in order; stop at the first failure and keep the rest.

        Args:
            client: Backend client used for each correction request
            row_id_column: Column holding the backend row id; defaults to
                the configured ``row_id_column``

        Returns:
            OperationResult whose ``data`` is the number of commits sent
        """
        closed = self._closed()
        if closed is not None:
            return closed
        if self._submitting:
            return OperationResult.failure(ErrorKind.INVALID_STATE, "a submission is already in progress")
        if not self.file_id:
            return OperationResult.failure(ErrorKind.INVALID_STATE, "no file id for submission")
        id_column = row_id_column or self.context.config.row_id_column
        self._submitting = True
        sent = 0
        try:
            while self._queue:
                commit = self._queue[0]
                record = self._working[commit.row_index]
                client.submit_correction(
                    self.file_id,
                    row_id=record.get(id_column, commit.row_index),
                    column_name=commit.field_name,
                    old_value=commit.old_value,
                    new_value=commit.new_value,
                    mapped_field_id=self.field_ids.get(commit.field_name),
                    status_message=record.status_message_json(),
                    is_batch_update=commit.propagate,
                    validation_type=self.result.id,
                )
                self._queue.pop(0)
                self._submitted.append(replace(commit, submitted=True))
                sent += 1
        except TransportError as e:
            logger.error("correction submit stopped after %d commit(s): %s", sent, e)
            return OperationResult.failure(ErrorKind.TRANSPORT, str(e), data=sent)
        except DataIntegrityError as e:
            logger.error("correction submit stopped after %d commit(s): %s", sent, e)
            return OperationResult.failure(ErrorKind.DATA_INTEGRITY, str(e), data=sent)
        finally:
            self._submitting = False
        return OperationResult.success(f"{sent} correction(s) submitted", data=sent)

    def close(self) -> None:
        """Abandon drafts, the pending choice and unsent commits."""
        self.state = CorrectionState.CLOSED
        self.pending = None
        self._items.clear()
        self._queue.clear()
        self._working = {r.row_index: r for r in self._originals}
