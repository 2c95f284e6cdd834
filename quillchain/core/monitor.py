# quillchain/core/monitor.py
"""
Pending Confirmation Monitor.

Every interval the monitor collects the active wallet's pending records and
asks the indexer about all of them in a single ``tx-info`` call per network.
Transactions the indexer knows about are confirmed on the ledger, priced
when the indexer reports a fee, pushed to the backend and propagated to the
linked note. Transactions it does not know about stay pending.
"""

from collections import OrderedDict
from typing import Dict, List, Optional

from quillchain.config import env_float
from quillchain.core.errors import IndexerUnavailable, InvalidStatusTransition
from quillchain.core.fees import fee_from_tx_info
from quillchain.core.indexer import IndexerClient
from quillchain.core.ledger import LedgerStore
from quillchain.core.models import FeeSource, TransactionRecord, TransactionStatus
from quillchain.core.scheduler import PeriodicTask
from quillchain.core.sync import BackendSyncBridge
from quillchain.utils.console import print_debug, print_success, print_warn
from quillchain.utils.validation import normalize_tx_hash


class PendingConfirmationMonitor:
    """Periodically confirms pending transactions against the indexer"""

    def __init__(self, session, ledger: LedgerStore, indexer: IndexerClient,
                 sync_bridge: BackendSyncBridge, interval: Optional[float] = None):
        self.session = session
        self.ledger = ledger
        self.indexer = indexer
        self.sync_bridge = sync_bridge
        self.interval = interval if interval is not None else env_float("QUILL_MONITOR_INTERVAL", 20.0)
        self._task = PeriodicTask("pending-confirmation-monitor", self.interval, self.tick)

    @property
    def is_running(self) -> bool:
        return self._task.is_running

    def start(self):
        return self._task.start()

    def stop(self, timeout: Optional[float] = None):
        self._task.stop(timeout)

    def tick(self) -> List[TransactionRecord]:
        """Run one confirmation pass; returns the records confirmed by it."""
        address = self.session.address
        if not address:
            return []

        pending = self.ledger.pending(address)
        if not pending:
            return []

        by_network: Dict[str, List[TransactionRecord]] = OrderedDict()
        for record in pending:
            by_network.setdefault(record.network, []).append(record)

        confirmed = []
        for network, records in by_network.items():
            print_debug(f"Checking {len(records)} pending transaction(s) on {network}")
            try:
                data = self.indexer.tx_info(network, [r.tx_hash for r in records])
            except IndexerUnavailable as e:
                print_warn(f"⚠️  Confirmation check skipped for {network}: {e}")
                continue

            found = {}
            for info in data:
                if isinstance(info, dict):
                    tx_hash = normalize_tx_hash(info.get('tx_hash'))
                    if tx_hash:
                        found[tx_hash] = info

            for record in records:
                info = found.get(record.tx_hash)
                if info is None:
                    continue
                updated = self._confirm(address, record, info)
                if updated is not None:
                    confirmed.append(updated)
        return confirmed

    def _confirm(self, address: str, record: TransactionRecord, info: Dict) -> Optional[TransactionRecord]:
        fields = {
            'status': TransactionStatus.CONFIRMED.value,
            'backend_synced': False,
        }
        fee = fee_from_tx_info(info)
        if fee.is_known:
            fields['amount'] = fee
            fields['fee_source'] = FeeSource.BLOCKCHAIN.value

        try:
            updated = self.ledger.update(
                address, record.id,
                expect={'status': TransactionStatus.PENDING.value},
                **fields
            )
        except InvalidStatusTransition as e:
            print_warn(f"⚠️  Could not confirm {record.tx_hash[:16]}...: {e}")
            return None
        if updated is None:
            return None

        print_success(f"✅ Transaction confirmed: {updated.tx_hash[:16]}...")
        self.sync_bridge.push(address, updated)
        self.sync_bridge.propagate_note_status(address, updated)
        return updated
