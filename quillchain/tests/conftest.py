import os
import tempfile

import pytest

from quillchain.core.fees import FeeResolver
from quillchain.core.ledger import LedgerStore
from quillchain.core.retry import RetryPolicy
from quillchain.core.session import WalletSession
from quillchain.core.sync import BackendSyncBridge
from quillchain.storage.database import LedgerDatabase
from quillchain.tests.fakes import (
    FakeBackend,
    FakeIndexer,
    FakeProvider,
    FakeSigner,
    QueuedRunner,
    no_sleep,
)
from quillchain.transactions.recorder import OperationRecorder


@pytest.fixture
def temp_dir():
    """Create temporary directory for test data"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def database(temp_dir):
    return LedgerDatabase(os.path.join(temp_dir, "ledger.db"))


@pytest.fixture
def ledger(database):
    return LedgerStore(database)


@pytest.fixture
def indexer():
    return FakeIndexer()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def runner():
    return QueuedRunner()


@pytest.fixture
def sync_bridge(ledger, backend):
    return BackendSyncBridge(ledger, backend, delay=0, sleep=no_sleep)


@pytest.fixture
def retry_policy():
    return RetryPolicy(max_attempts=3, delay=0, sleep=no_sleep)


@pytest.fixture
def fee_resolver(indexer, ledger, sync_bridge, retry_policy, runner):
    return FeeResolver(indexer, ledger, sync_bridge, retry_policy, runner)


@pytest.fixture
def signer():
    return FakeSigner()


@pytest.fixture
def provider(signer):
    return FakeProvider(signer)


@pytest.fixture
def session(provider, indexer, database):
    return WalletSession(provider, indexer, database, network="preview")


@pytest.fixture
def connected_session(session):
    session.connect()
    return session


@pytest.fixture
def recorder(connected_session, ledger, fee_resolver, runner):
    return OperationRecorder(connected_session, ledger, fee_resolver, runner, signing_timeout=2)
