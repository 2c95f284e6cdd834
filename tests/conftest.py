import pytest
import tempfile
import os
from quillchain.storage.database import LedgerDatabase


@pytest.fixture
def temp_dir():
    """Create temporary directory for test data"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def db_path(temp_dir):
    return os.path.join(temp_dir, "ledger.db")


@pytest.fixture
def test_database(db_path):
    """Ledger database in a throwaway directory"""
    return LedgerDatabase(db_path)
