from decimal import Decimal

import pytest

from quillchain.core.models import FeeKnown, TransactionRecord
from quillchain.core.reconciler import LedgerReconciler
from quillchain.core.scheduler import BackgroundRunner
from quillchain.tests.fakes import ADDR_A, ADDR_B, QueuedRunner


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def reconciler(connected_session, ledger, fee_resolver, sync_bridge, runner, sleeps):
    return LedgerReconciler(connected_session, ledger, fee_resolver, sync_bridge, runner,
                            fee_delay=0.5, sync_delay=0.2, sleep=sleeps.append)


def _seed(ledger):
    ledger.add(ADDR_A, TransactionRecord(id="fee", tx_hash="H1", status="pending"))
    ledger.add(ADDR_A, TransactionRecord(id="push", tx_hash="H2", status="confirmed",
                                         fee_source="blockchain", amount=FeeKnown(Decimal("0.2"))))
    ledger.add(ADDR_A, TransactionRecord(id="done", tx_hash="H3", status="confirmed", backend_synced=True,
                                         fee_source="blockchain", amount=FeeKnown(Decimal("0.2"))))
    ledger.add(ADDR_A, TransactionRecord(id="manual", amount=3, fee_source="local"))


def test_sweep_relaunches_fees_and_pushes(reconciler, ledger, backend, runner, sleeps):
    _seed(ledger)

    assert reconciler.sweep() == {"fees": 1, "pushes": 1}
    assert runner.names == ["fee:fee"]
    assert sleeps == [0.5, 0.2]
    assert list(backend.transactions) == ["H2"]
    assert ledger.get(ADDR_A, "push").backend_synced is True


def test_sweep_without_session_address(session, ledger, fee_resolver, sync_bridge, runner):
    reconciler = LedgerReconciler(session, ledger, fee_resolver, sync_bridge, runner, sleep=lambda s: None)
    assert reconciler.sweep() == {"fees": 0, "pushes": 0}


def test_requests_collapse_while_running(reconciler, runner):
    reconciler.request_sweep()
    reconciler.request_sweep()
    reconciler.request_sweep()
    assert runner.names == ["ledger-sweep"]

    runner.drain()
    reconciler.request_sweep()
    assert runner.names == ["ledger-sweep", "ledger-sweep"]


def test_attach_reacts_to_active_wallet_changes(reconciler, ledger, runner):
    reconciler.attach()

    ledger.add(ADDR_B, TransactionRecord(id="other", tx_hash="HB", status="pending"))
    assert runner.names == []

    ledger.add(ADDR_A, TransactionRecord(id="mine", tx_hash="HA", status="pending"))
    assert runner.names == ["ledger-sweep"]

    runner.drain()
    assert "fee:mine" in runner.names


def test_connect_backfills_backend(session, ledger, fee_resolver, sync_bridge, runner, backend):
    ledger.add(ADDR_A, TransactionRecord(id="push", tx_hash="H2", status="confirmed",
                                         fee_source="blockchain", amount=FeeKnown(Decimal("0.2"))))
    reconciler = LedgerReconciler(session, ledger, fee_resolver, sync_bridge, runner, sleep=lambda s: None)
    reconciler.attach()

    session.connect()
    assert runner.names == ["backend-backfill", "ledger-sweep"]
    runner.drain()
    assert ledger.get(ADDR_A, "push").backend_synced is True
    assert len(backend.transactions) == 1


def test_failed_submit_does_not_wedge_sweeps(connected_session, ledger, fee_resolver, sync_bridge):
    stopped = BackgroundRunner(max_workers=1)
    stopped.shutdown()
    reconciler = LedgerReconciler(connected_session, ledger, fee_resolver, sync_bridge, stopped,
                                  sleep=lambda s: None)
    with pytest.raises(RuntimeError):
        reconciler.request_sweep()

    reconciler.runner = QueuedRunner()
    reconciler.request_sweep()
    assert reconciler.runner.names == ["ledger-sweep"]
