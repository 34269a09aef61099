from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..models.config_models import BackendConfig
from ..models.master_data import MasterDataCandidate, MasterDataItem, Section
from ..models.record import Record
from ..models.stage import ResultFilter, Stage

"""HTTP client for the import backend.

Every endpoint answers with the same envelope, ``{status, data, errorMessage}``
(optionally wrapped in ``content``, with PascalCase keys on older endpoints).
Network and HTTP failures raise TransportError; a response that cannot be
decoded into the expected shape raises DataIntegrityError. Row annotations are
parsed into CellAnnotation values here and nowhere else.
"""

logger = logging.getLogger(__name__)

ENV_BACKEND_URL = "WIZARD_BACKEND_URL"
ENV_API_TOKEN = "WIZARD_API_TOKEN"

STAGE_DATA_PATH = "/services/PreflightImports/StageData"
CORRECTION_PATH = "/services/PreflightImports/Correction"
MISSING_MASTER_COLUMNS_PATH = "/services/PreflightImports/MissingMasterColumns/{file_id}"
VALIDATION_LIST_PATH = "/services/PreflightImports/ValidationList"
VALIDATION_LIST_SAVE_PATH = "/services/PreflightImports/ValidationList/Save"
DROPDOWN_DATA_PATH = "/services/PreflightImports/DropDownData"
PRODUCT_TYPES_PATH = "/services/Admin/Masters/MasterData/58"

CONNECT_TIMEOUT = 10.0


class TransportError(Exception):
    """Backend unreachable, HTTP error status, or a request the backend rejected."""


class DataIntegrityError(Exception):
    """Backend answered with something that does not match the contract."""


@dataclass(frozen=True)
class StagePage:
    records: list[Record]
    count: int
    mapped_fields: list[Any] = field(default_factory=list)
    error_message: str | None = None


def _pick(mapping: Any, key: str, default: Any = None) -> Any:
    """Look up ``key`` in camelCase or PascalCase form; non-objects yield ``default``."""
    if not isinstance(mapping, dict):
        return default
    if key in mapping:
        return mapping[key]
    return mapping.get(key[:1].upper() + key[1:], default)


def _decode_json_field(value: Any, what: str) -> Any:
    if value is None or value == "":
        return []
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise DataIntegrityError(f"{what} is not valid JSON: {e}") from e


def _as_list(value: Any, what: str) -> list[Any]:
    if not isinstance(value, list):
        raise DataIntegrityError(f"{what}: expected a list, got {type(value).__name__}")
    return value


class BackendClient:
    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        *,
        timeout: float = 30.0,
        retries: int = 1,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = (min(CONNECT_TIMEOUT, timeout), timeout)
        if session is None:
            retry = Retry(
                total=retries,
                allowed_methods=["GET"],
                backoff_factor=1,
                status_forcelist=[502, 503, 504],
            )
            session = requests.Session()
            session.mount("http://", HTTPAdapter(max_retries=retry))
            session.mount("https://", HTTPAdapter(max_retries=retry))
        self._session = session

    @classmethod
    def from_config(cls, config: BackendConfig, *, session: requests.Session | None = None) -> BackendClient:
        """Build a client; WIZARD_BACKEND_URL / WIZARD_API_TOKEN override the config."""
        return cls(
            os.environ.get(ENV_BACKEND_URL) or config.base_url,
            os.environ.get(ENV_API_TOKEN) or config.token,
            timeout=config.timeout_seconds,
            retries=config.retries,
            session=session,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, path: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        url = self.base_url + path
        logger.debug("%s %s", method, path)
        try:
            response = self._session.request(
                method,
                url,
                json=payload if method != "GET" else None,
                params=payload if method == "GET" else None,
                headers=self._headers(),
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise DataIntegrityError(f"{method} {path}: response is not JSON") from e
        if not isinstance(body, dict):
            raise DataIntegrityError(f"{method} {path}: response is not an object")
        envelope = body.get("content", body)
        if not isinstance(envelope, dict) or _pick(envelope, "status") is None:
            raise DataIntegrityError(f"{method} {path}: response has no status")
        if _pick(envelope, "status") != "Success":
            message = _pick(envelope, "errorMessage") or _pick(_pick(envelope, "data"), "errorMessage")
            raise TransportError(f"{method} {path} rejected: {message or 'status ' + str(_pick(envelope, 'status'))}")
        return envelope

    # --- stage data --------------------------------------------------------

    def fetch_stage_data(
        self,
        file_id: str,
        stage: Stage,
        *,
        start_index: int,
        page_size: int,
        result_filter: ResultFilter = ResultFilter.ALL,
        exclude_system_columns: bool = True,
    ) -> StagePage:
        envelope = self._request(
            "POST",
            STAGE_DATA_PATH,
            {
                "fileId": file_id,
                "startIndex": start_index,
                "pageSize": page_size,
                "excludeSystemColumns": exclude_system_columns,
                "filter": result_filter.value,
                "stage": stage.value,
            },
        )
        data = _pick(envelope, "data")
        if not isinstance(data, dict):
            raise DataIntegrityError("stage data: 'data' is not an object")
        rows = _as_list(_decode_json_field(_pick(data, "result"), "stage data result"), "stage data result")
        records: list[Record] = []
        for offset, raw in enumerate(rows):
            if not isinstance(raw, dict):
                raise DataIntegrityError(f"stage data row {offset} is not an object")
            records.append(Record.from_wire(start_index + offset, raw))
        try:
            count = int(_pick(data, "count", len(records)))
        except (TypeError, ValueError) as e:
            raise DataIntegrityError(f"stage data count is not an integer: {e}") from e
        return StagePage(
            records=records,
            count=count,
            mapped_fields=_as_list(_decode_json_field(_pick(data, "mappedFields"), "mappedFields"), "mappedFields"),
            error_message=_pick(data, "errorMessage"),
        )

    def submit_correction(
        self,
        file_id: str,
        *,
        row_id: Any,
        column_name: str,
        old_value: Any,
        new_value: Any,
        mapped_field_id: str | None,
        status_message: str,
        is_batch_update: bool,
        validation_type: str,
    ) -> None:
        self._request(
            "POST",
            CORRECTION_PATH,
            {
                "fileId": file_id,
                "rowId": row_id,
                "columnName": column_name,
                "oldValue": old_value,
                "newValue": new_value,
                "mappedFieldId": mapped_field_id,
                "statusMessage": status_message,
                "isBatchUpdate": is_batch_update,
                "validationType": validation_type,
            },
        )

    # --- master data -------------------------------------------------------

    def fetch_master_sections(self, file_id: str) -> list[Section]:
        envelope = self._request("GET", MISSING_MASTER_COLUMNS_PATH.format(file_id=file_id))
        raw = _as_list(_decode_json_field(_pick(envelope, "data"), "sections"), "sections")
        try:
            return [Section.from_wire(s) for s in raw]
        except (KeyError, TypeError, ValueError) as e:
            raise DataIntegrityError(f"malformed section entry: {e}") from e

    def fetch_candidates(self, file_id: str, section: Section) -> list[MasterDataCandidate]:
        envelope = self._request(
            "POST",
            VALIDATION_LIST_PATH,
            {"fileId": file_id, "columnName": section.column_name, "parentType": section.parent_type},
        )
        raw = _as_list(_decode_json_field(_pick(envelope, "data"), "candidates"), "candidates")
        try:
            return [MasterDataCandidate.from_wire(c, column_name=section.column_name) for c in raw]
        except (KeyError, TypeError, ValueError) as e:
            raise DataIntegrityError(f"malformed candidate entry: {e}") from e

    def fetch_master_items(self, field_id: str, parent_type: int, action_type: str) -> list[MasterDataItem]:
        envelope = self._request(
            "POST",
            DROPDOWN_DATA_PATH,
            {"fieldId": field_id, "parentType": parent_type, "actionType": action_type},
        )
        raw = _as_list(_decode_json_field(_pick(envelope, "data"), "master items"), "master items")
        try:
            return [MasterDataItem.from_wire(i) for i in raw]
        except (KeyError, TypeError, ValueError) as e:
            raise DataIntegrityError(f"malformed master item: {e}") from e

    def fetch_product_types(self) -> list[MasterDataItem]:
        envelope = self._request("GET", PRODUCT_TYPES_PATH)
        raw = _pick(envelope, "list")
        if raw is None:
            raw = _decode_json_field(_pick(envelope, "data"), "product types")
        try:
            return [MasterDataItem.from_wire(i) for i in _as_list(raw, "product types")]
        except (KeyError, TypeError, ValueError) as e:
            raise DataIntegrityError(f"malformed product type: {e}") from e

    def submit_master_data(
        self,
        file_id: str,
        candidates: list[dict[str, Any]],
        *,
        field_id: str,
        action_type: str,
    ) -> None:
        self._request(
            "POST",
            VALIDATION_LIST_SAVE_PATH,
            {
                "fileId": file_id,
                "jsonData": json.dumps(candidates, ensure_ascii=False),
                "fieldId": field_id,
                "actionType": action_type,
            },
        )
