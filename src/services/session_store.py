from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import jsonschema
from jsonschema.exceptions import ValidationError

from ..models.import_session import ColumnMapping, ImportSession, SessionState
from .status_tracker import StageStatusTracker

"""File-backed session store.

One JSON document per session under the configured session directory,
validated against src/config/session_schema.json on every read and write.
A session is created when a file is uploaded and torn down (file removed)
when the import completes or is cancelled. The store is passed to whoever
needs it; there is no module-level instance.
"""

logger = logging.getLogger(__name__)

SESSION_SCHEMA_PATH = Path(__file__).resolve().parent.parent / "config" / "session_schema.json"


class SessionStoreError(Exception):
    pass


def _now() -> datetime:
    return datetime.now(UTC)


def _iso(ts: datetime) -> str:
    return ts.isoformat().replace("+00:00", "Z")


def _parse_iso(raw: str) -> datetime:
    return datetime.fromisoformat(raw.replace("Z", "+00:00"))


def session_to_dict(session: ImportSession) -> dict[str, Any]:
    return {
        "session_id": session.session_id,
        "file_id": session.file_id,
        "file_name": session.file_name,
        "import_type": session.import_type,
        "state": session.state.value,
        "created_at": _iso(session.created_at),
        "updated_at": _iso(session.updated_at),
        "stage_statuses": dict(session.stage_statuses),
        "critical_counts": dict(session.critical_counts),
        "column_mappings": [m.to_dict() for m in session.column_mappings],
    }


def session_from_dict(data: dict[str, Any]) -> ImportSession:
    return ImportSession(
        session_id=data["session_id"],
        file_id=data["file_id"],
        file_name=data["file_name"],
        import_type=data["import_type"],
        created_at=_parse_iso(data["created_at"]),
        updated_at=_parse_iso(data["updated_at"]),
        state=SessionState(data["state"]),
        stage_statuses=dict(data["stage_statuses"]),
        critical_counts={k: int(v) for k, v in data["critical_counts"].items()},
        column_mappings=[ColumnMapping.from_dict(m) for m in data["column_mappings"]],
    )


class SessionStore:
    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)
        self._schema: dict[str, Any] | None = None

    def _validate(self, data: dict[str, Any]) -> None:
        if self._schema is None:
            try:
                self._schema = json.loads(SESSION_SCHEMA_PATH.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                raise SessionStoreError(f"session schema unavailable: {e}") from e
        try:
            jsonschema.validate(data, self._schema)
        except ValidationError as e:
            raise SessionStoreError(f"session validation failed: {e.message}") from e

    def path_for(self, session_id: str) -> Path:
        return self.directory / f"{session_id}.json"

    def create(
        self,
        file_id: str,
        file_name: str,
        import_type: str = "",
        *,
        column_mappings: Iterable[ColumnMapping] = (),
    ) -> ImportSession:
        now = _now()
        session = ImportSession(
            session_id=uuid.uuid4().hex,
            file_id=file_id,
            file_name=file_name,
            import_type=import_type,
            created_at=now,
            updated_at=now,
            column_mappings=list(column_mappings),
        )
        session.stage_statuses = StageStatusTracker().to_dict()["stage_statuses"]
        self.save(session)
        logger.info("session %s created for %s", session.session_id, file_name)
        return session

    def save(self, session: ImportSession, tracker: StageStatusTracker | None = None) -> Path:
        """Persist ``session``; when given, the tracker's state replaces the stored status bag."""
        if tracker is not None:
            snapshot = tracker.to_dict()
            session.stage_statuses = snapshot["stage_statuses"]
            session.critical_counts = snapshot["critical_counts"]
        session.updated_at = _now()
        data = session_to_dict(session)
        self._validate(data)
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(session.session_id)
        tmp = path.with_suffix(".json.tmp")
        try:
            tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
            tmp.replace(path)
        except OSError as e:
            raise SessionStoreError(f"cannot write session {session.session_id}: {e}") from e
        return path

    def load(self, session_id: str) -> ImportSession:
        path = self.path_for(session_id)
        if not path.exists():
            raise SessionStoreError(f"session not found: {session_id}")
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise SessionStoreError(f"cannot read session {session_id}: {e}") from e
        if not isinstance(data, dict):
            raise SessionStoreError(f"session {session_id} is not a JSON object")
        self._validate(data)
        return session_from_dict(data)

    def tracker_for(self, session: ImportSession) -> StageStatusTracker:
        return StageStatusTracker.from_dict(
            {"stage_statuses": session.stage_statuses, "critical_counts": session.critical_counts}
        )

    def list_active(self) -> list[ImportSession]:
        if not self.directory.exists():
            return []
        sessions = [self.load(p.stem) for p in sorted(self.directory.glob("*.json"))]
        return [s for s in sessions if s.state is SessionState.ACTIVE]

    def _tear_down(self, session_id: str, state: SessionState) -> ImportSession:
        session = self.load(session_id)
        if session.state is not SessionState.ACTIVE:
            raise SessionStoreError(f"session {session_id} is already {session.state.value}")
        session.state = state
        session.updated_at = _now()
        try:
            self.path_for(session_id).unlink()
        except OSError as e:
            raise SessionStoreError(f"cannot remove session {session_id}: {e}") from e
        logger.info("session %s %s", session_id, state.value)
        return session

    def complete(self, session_id: str) -> ImportSession:
        return self._tear_down(session_id, SessionState.COMPLETED)

    def cancel(self, session_id: str) -> ImportSession:
        return self._tear_down(session_id, SessionState.CANCELLED)
