# quillchain/core/fees.py
"""
Fee Resolver.

A freshly submitted transaction has no fee until the indexer has seen it.
The resolver polls ``tx-info`` under a fixed retry budget and, once a fee
shows up, writes it onto the ledger record and hands the record to the sync
bridge.
"""

import concurrent.futures
import threading
from typing import Dict, List, Optional

from quillchain.core.errors import IndexerUnavailable, InvalidStatusTransition
from quillchain.core.indexer import IndexerClient
from quillchain.core.ledger import LedgerStore
from quillchain.core.models import (
    FEE_UNKNOWN,
    Fee,
    FeeKnown,
    FeeSource,
    TransactionRecord,
    TransactionStatus,
)
from quillchain.core.retry import RetryPolicy
from quillchain.core.scheduler import BackgroundRunner
from quillchain.core.sync import BackendSyncBridge
from quillchain.utils.console import print_debug, print_success, print_warn
from quillchain.utils.formatting import lovelace_to_ada
from quillchain.utils.validation import normalize_tx_hash


def find_tx_info(data: List[Dict], tx_hash: str) -> Optional[Dict]:
    wanted = normalize_tx_hash(tx_hash)
    for info in data or []:
        if isinstance(info, dict) and normalize_tx_hash(info.get('tx_hash')) == wanted:
            return info
    return None


def fee_from_tx_info(info: Optional[Dict]) -> Fee:
    if not info or not info.get('fee'):
        return FEE_UNKNOWN
    ada = lovelace_to_ada(info.get('fee'))
    return FeeKnown(ada) if ada is not None else FEE_UNKNOWN


class FeeResolver:
    """Backfills real network fees onto ledger records"""

    def __init__(self, indexer: IndexerClient, ledger: LedgerStore, sync_bridge: BackendSyncBridge,
                 retry_policy: Optional[RetryPolicy] = None, runner: Optional[BackgroundRunner] = None):
        self.indexer = indexer
        self.ledger = ledger
        self.sync_bridge = sync_bridge
        self.retry_policy = retry_policy or RetryPolicy.from_env()
        self.runner = runner or BackgroundRunner()
        self._in_flight = set()
        self._lock = threading.Lock()

    def resolve_fee(self, tx_hash: str, network: str) -> Fee:
        """Poll the indexer until it reports a fee or the retry budget runs out."""
        tx_hash = normalize_tx_hash(tx_hash)
        if not tx_hash:
            return FEE_UNKNOWN

        def _attempt(n: int) -> Optional[Fee]:
            try:
                data = self.indexer.tx_info(network, [tx_hash])
            except IndexerUnavailable as e:
                print_debug(f"Fee lookup {n + 1}/{self.retry_policy.max_attempts} for {tx_hash[:16]} failed: {e}")
                return None
            fee = fee_from_tx_info(find_tx_info(data, tx_hash))
            return fee if fee.is_known else None

        return self.retry_policy.run(_attempt) or FEE_UNKNOWN

    def is_resolving(self, address: str, record_id: str) -> bool:
        with self._lock:
            return (address, record_id) in self._in_flight

    def resolve_record(self, address: str, record_id: str) -> Optional[TransactionRecord]:
        """Resolve and store the fee of one record; no-op if already chain-priced or in flight."""
        record = self.ledger.get(address, record_id)
        if record is None or not record.tx_hash:
            return None
        if record.fee_source == FeeSource.BLOCKCHAIN.value:
            return record

        key = (address, record_id)
        with self._lock:
            if key in self._in_flight:
                return None
            self._in_flight.add(key)

        try:
            fee = self.resolve_fee(record.tx_hash, record.network)
            if not fee.is_known:
                print_warn(f"⚠️  Fee for {record.tx_hash[:16]}... not available yet; will retry later")
                return None
            return self._store_fee(address, record_id, fee)
        finally:
            with self._lock:
                self._in_flight.discard(key)

    def _store_fee(self, address: str, record_id: str, fee: Fee) -> Optional[TransactionRecord]:
        current = self.ledger.get(address, record_id)
        if current is None or current.fee_source == FeeSource.BLOCKCHAIN.value:
            return current

        fields = {
            'amount': fee,
            'fee_source': FeeSource.BLOCKCHAIN.value,
            'backend_synced': False,
        }
        # The indexer only knows transactions that made it on-chain.
        promoted = current.status == TransactionStatus.PENDING.value
        if promoted:
            fields['status'] = TransactionStatus.CONFIRMED.value

        try:
            updated = self.ledger.update(
                address, record_id,
                expect={'fee_source': current.fee_source, 'status': current.status},
                **fields
            )
        except InvalidStatusTransition as e:
            print_warn(f"⚠️  Could not store fee for {record_id}: {e}")
            return None
        if updated is None:
            # Lost the race to another writer; whoever won owns the follow-up.
            return self.ledger.get(address, record_id)

        print_success(f"💰 Fee for {updated.tx_hash[:16]}...: {updated.amount.display()}")
        if promoted:
            self.sync_bridge.propagate_note_status(address, updated)
        self.sync_bridge.push(address, updated)
        return updated

    def resolve_in_background(self, address: str, record_id: str) -> Optional[concurrent.futures.Future]:
        if self.is_resolving(address, record_id):
            return None
        return self.runner.submit(f"fee:{record_id}", self.resolve_record, address, record_id)
