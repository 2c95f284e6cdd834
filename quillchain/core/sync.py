# quillchain/core/sync.py
"""
Backend Sync Bridge.

Pushes confirmed, chain-priced ledger records to the backend cache. The tx
hash is unique remotely, so a 409 on create means another push got there
first: the bridge looks the remote row up by hash and updates it instead.
"""

import re
import threading
import time
from enum import Enum
from typing import Callable, Dict, Iterable, Optional

from quillchain.config import env_float
from quillchain.core.backend import BackendClient
from quillchain.core.errors import BackendConflict, BackendUnavailable, InvalidStatusTransition
from quillchain.core.ledger import LedgerStore
from quillchain.core.models import TransactionRecord
from quillchain.utils.console import print_debug, print_success, print_warn

_QUOTED_TITLE_RE = re.compile(r'"([^"]+)"')


class SyncResult(Enum):
    SUCCESS = "success"
    SKIP = "skip"
    ERROR = "error"


def extract_note_title(note: Optional[str]) -> Optional[str]:
    """Pull the quoted title out of 'Note created: "Title" (Category)'."""
    if not note:
        return None
    match = _QUOTED_TITLE_RE.search(note)
    return match.group(1) if match else None


def _note_id_as_int(note_id: Optional[str]) -> Optional[int]:
    if note_id is None:
        return None
    try:
        return int(note_id)
    except (TypeError, ValueError):
        return None


def build_transaction_payload(record: TransactionRecord, wallet_address: Optional[str] = None) -> Dict:
    """Map a ledger record onto the backend's blockchain-transaction schema"""
    amount = float(record.amount.value) if record.amount.is_known else None
    return {
        'txHash': record.tx_hash,
        'operationType': record.operation,
        'noteId': _note_id_as_int(record.note_id),
        'walletAddress': record.sender_address or wallet_address,
        'amount': amount,
        'fee': amount,
        'network': record.network or 'preview',
        'status': record.status or 'confirmed',
        'metadata': None,
        'noteTitle': record.note_title or extract_note_title(record.note),
        'description': record.note,
        'errorMessage': None,
    }


class BackendSyncBridge:
    """Mirrors ledger records into the backend's transaction cache"""

    def __init__(self, ledger: LedgerStore, backend: BackendClient,
                 delay: Optional[float] = None, sleep: Callable[[float], None] = time.sleep):
        self.ledger = ledger
        self.backend = backend
        self.delay = delay if delay is not None else env_float("QUILL_SYNC_DELAY", 0.1)
        self.sleep = sleep
        self._in_flight = set()
        self._lock = threading.Lock()

    def push(self, address: str, record: TransactionRecord) -> SyncResult:
        # Re-read: another flow may have synced or changed the record meanwhile.
        current = self.ledger.get(address, record.id) or record
        if not current.is_syncable:
            return SyncResult.SKIP

        key = current.tx_hash
        with self._lock:
            if key in self._in_flight:
                return SyncResult.SKIP
            self._in_flight.add(key)

        try:
            payload = build_transaction_payload(current, address)
            try:
                self.backend.create_transaction(payload)
            except BackendConflict:
                print_debug(f"Transaction {key} already stored remotely, updating instead")
                existing = self.backend.get_transaction_by_hash(key)
                if not existing or existing.get('id') is None:
                    print_warn(f"⚠️  Backend reported {key} as duplicate but has no row for it")
                    return SyncResult.ERROR
                self.backend.update_transaction(existing['id'], payload)

            self.ledger.update(address, current.id, backend_synced=True)
            print_success(f"✅ Synced transaction {key[:16]}... to backend")
            return SyncResult.SUCCESS
        except (BackendUnavailable, InvalidStatusTransition) as e:
            print_warn(f"⚠️  Backend sync failed for {key}: {e}")
            return SyncResult.ERROR
        finally:
            with self._lock:
                self._in_flight.discard(key)

    def push_many(self, address: str, records: Iterable[TransactionRecord]) -> Dict[str, int]:
        """Push every syncable record, pausing ``delay`` seconds between pushes."""
        counts = {result.value: 0 for result in SyncResult}
        for record in records:
            if not record.is_syncable:
                counts[SyncResult.SKIP.value] += 1
                continue
            counts[self.push(address, record).value] += 1
            self.sleep(self.delay)
        return counts

    def propagate_note_status(self, address: str, record: TransactionRecord) -> bool:
        """Tell the notes API that the note behind ``record`` reached ``record.status``."""
        if not record.note_id:
            return False
        try:
            self.backend.update_note_status(
                record.note_id,
                record.status,
                tx_hash=record.tx_hash,
                network=record.network,
                wallet_address=record.sender_address or address,
            )
            return True
        except BackendUnavailable as e:
            print_warn(f"⚠️  Failed to update note {record.note_id} status: {e}")
            return False
