"""
Test configuration: puts the repository root on sys.path and provides
entity factories plus a throwaway SQLite store.
"""

import sys
from datetime import date
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from entities_core import Project, Transaction  # noqa: E402
from ledger_service import LedgerService  # noqa: E402
from record_store import SQLiteRecordStore  # noqa: E402


@pytest.fixture
def make_project():
    def factory(id="p1", name="Project", total_value=0.0, **kwargs):
        return Project(id=id, name=name, total_value=total_value, **kwargs)
    return factory


@pytest.fixture
def make_tx():
    counter = {'n': 0}

    def factory(type, amount, on=None, project_id="p1", id=None, **kwargs):
        counter['n'] += 1
        on = date.fromisoformat(on) if isinstance(on, str) else on
        return Transaction(
            id=id or f"t{counter['n']}",
            project_id=project_id,
            date=on or date(2024, 12, 1),
            type=type,
            amount=amount,
            **kwargs,
        )
    return factory


@pytest.fixture
def store(tmp_path):
    return SQLiteRecordStore(db_path=str(tmp_path / "hisab.db"), blob_dir=str(tmp_path / "files"))


@pytest.fixture
def service(store):
    return LedgerService(store, documents_bucket="documents")
