# Shared pytest fixtures
from __future__ import annotations
import logging
import tempfile
from pathlib import Path
from unittest.mock import MagicMock
import pytest

from src.logging.init import APP_LOGGER_NAME, reset_logging
from src.models.config_models import DataRules, MappingRules, WizardConfig, FileRules
from src.models.record import Record
from src.rules.common import RuleContext


@pytest.fixture(autouse=True)
def _fresh_logging():
    """Drop handlers bound to a previous test's captured stdout."""
    yield
    reset_logging()
    for name in (APP_LOGGER_NAME, "src"):
        lg = logging.getLogger(name)
        for h in lg.handlers[:]:
            lg.removeHandler(h)
        lg.propagate = True
        lg.setLevel(logging.NOTSET)


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """session_directory: ./sessions
row_id_column: RowID
backend:
  base_url: http://backend.test
  page_size: 25
file_rules:
  required_columns: [name, email]
mapping_rules:
  required_target_fields: [FirstName, Email]
data_rules:
  required_fields: [name]
  email_fields: [email]
  numeric_fields: [age]
  date_pairs:
    - {start: start_date, end: end_date}
  character_limits:
    name: 20
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "wizard.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def write_csv(temp_workdir: Path):
    """Factory writing a CSV into ./data and returning its path."""
    def _write(name: str, text: str) -> Path:
        f = temp_workdir / "data" / name
        f.write_text(text, encoding="utf-8")
        return f
    return _write


def make_records(rows: list[dict]) -> list[Record]:
    return [Record(row_index=i, values=dict(r)) for i, r in enumerate(rows)]


@pytest.fixture()
def records_factory():
    return make_records


@pytest.fixture()
def data_context():
    """RuleContext with a representative set of data rules."""
    config = WizardConfig(
        file_rules=FileRules(required_columns=("name", "email")),
        mapping_rules=MappingRules(required_target_fields=("FirstName", "Email")),
        data_rules=DataRules(
            required_fields=("name",),
            email_fields=("email",),
            numeric_fields=("age",),
            duplicate_key_fields=("name", "email"),
            whitespace_fields=("name",),
            character_limits={"name": 10},
        ),
    )
    return RuleContext(config=config)


@pytest.fixture()
def mock_client():
    """BackendClient stand-in; every call succeeds unless a test sets side_effect."""
    return MagicMock()
