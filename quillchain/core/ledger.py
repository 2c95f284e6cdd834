# quillchain/core/ledger.py
"""
Per-wallet transaction ledger.

Records are partitioned by wallet address and every write is a field-level
merge applied to the freshly stored record, never a whole-record replacement,
so the fee resolver, the confirmation monitor and the sync bridge can touch
different fields of the same record without losing each other's updates.
"""

import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from quillchain.core.errors import RecordNotFound
from quillchain.core.models import (
    TransactionRecord,
    TransactionStatus,
    TransactionType,
    new_record_id,
    now_iso,
    record_field_keys,
)
from quillchain.storage.database import LedgerDatabase
from quillchain.utils.console import print_debug, print_warn
from quillchain.utils.validation import normalize_tx_hash

ALL_CATEGORIES = "All"

TRANSACTION_CATEGORIES = [
    ALL_CATEGORIES,
    "Income",
    "Expense",
    "Transfer",
    "Payment",
    "Refund",
    "Other",
]

EXPLORER_URLS = {
    "mainnet": "https://cardanoscan.io",
    "preprod": "https://preprod.cardanoscan.io",
    "preview": "https://preview.cardanoscan.io",
}


def explorer_url(tx_hash: Optional[str], network: Optional[str]) -> Optional[str]:
    if not tx_hash:
        return None
    base = EXPLORER_URLS.get(network or "preview", EXPLORER_URLS["preview"])
    return f"{base}/transaction/{tx_hash}"


def _is_legacy_junk(data: Dict) -> bool:
    note = (data.get("note") or "").lower()
    if "initial wallet balance" in note:
        return True
    if data.get("status") == TransactionStatus.CONFIRMED.value and not data.get("txHash"):
        return True
    return False


@dataclass
class LedgerRow:
    """One rendered line of the ledger view"""
    id: str
    amount_display: str
    fee_pending: bool
    type: str
    status: str
    fee_source: str
    operation: Optional[str]
    operation_badge: Optional[str]
    note: Optional[str]
    category: str
    date: Optional[str]
    tx_hash: Optional[str]
    network: str
    explorer_url: Optional[str]
    backend_synced: bool


def render_row(record: TransactionRecord) -> LedgerRow:
    if record.amount.is_known:
        sign = "-" if record.type == TransactionType.SENT.value else "+"
        amount_display = record.amount.display(sign=sign)
    else:
        amount_display = record.amount.display()
    return LedgerRow(
        id=record.id,
        amount_display=amount_display,
        fee_pending=record.is_fee_pending,
        type=record.type,
        status=record.status,
        fee_source=record.fee_source,
        operation=record.operation,
        operation_badge=record.operation.replace("note_", "") if record.operation else None,
        note=record.note,
        category=record.category,
        date=record.date or record.created_at,
        tx_hash=record.tx_hash,
        network=record.network,
        explorer_url=explorer_url(record.tx_hash, record.network),
        backend_synced=record.backend_synced,
    )


def matches_search(record: TransactionRecord, query: str) -> bool:
    query = (query or "").strip().lower()
    if not query:
        return True
    haystack = [
        record.note,
        record.recipient_address,
        record.sender_address,
        record.tx_hash,
        record.operation,
        record.note_title,
    ]
    if record.amount.is_known:
        haystack.append(str(record.amount.to_json()))
    return any(query in value.lower() for value in haystack if value)


class LedgerStore:
    """Per-wallet ledger backed by LedgerDatabase"""

    def __init__(self, database: LedgerDatabase):
        self.db = database
        self._callbacks: List[Callable[[str, str, Optional[TransactionRecord]], None]] = []
        self._callback_lock = threading.Lock()

    # =========================================================================
    # Change notifications
    # =========================================================================

    def on_change(self, callback: Callable[[str, str, Optional[TransactionRecord]], None]):
        """Register callback(address, event, record) for every ledger write"""
        with self._callback_lock:
            self._callbacks.append(callback)

    def _notify(self, address: str, event: str, record: Optional[TransactionRecord]):
        with self._callback_lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            try:
                callback(address, event, record)
            except Exception as e:
                print_warn(f"⚠️  Ledger callback error: {e}")

    # =========================================================================
    # Reads
    # =========================================================================

    def load(self, address: str) -> List[TransactionRecord]:
        """Load a wallet's ledger, dropping legacy mock entries and writing back the cleaned list."""
        if not address:
            return []

        dropped = []

        def _clean(current: List[Dict]) -> Optional[List[Dict]]:
            kept = [data for data in current if not _is_legacy_junk(data)]
            if len(kept) == len(current):
                return None
            dropped.append(len(current) - len(kept))
            return kept

        raw = self.db.modify_ledger(address, _clean)
        if dropped:
            print_debug(f"Dropped {dropped[0]} legacy ledger entries for {address}")
        return [TransactionRecord.from_dict(data) for data in raw]

    def records(self, address: str) -> List[TransactionRecord]:
        if not address:
            return []
        return [TransactionRecord.from_dict(data) for data in self.db.load_ledger(address)]

    def get(self, address: str, record_id: str) -> Optional[TransactionRecord]:
        for record in self.records(address):
            if record.id == record_id:
                return record
        return None

    def find_by_hash(self, address: str, tx_hash: str) -> Optional[TransactionRecord]:
        wanted = normalize_tx_hash(tx_hash)
        if not wanted:
            return None
        for record in self.records(address):
            if record.tx_hash == wanted:
                return record
        return None

    def pending(self, address: str) -> List[TransactionRecord]:
        """Records still awaiting on-chain confirmation"""
        return [
            record for record in self.records(address)
            if record.status == TransactionStatus.PENDING.value
            and record.tx_hash
            and not record.backend_synced
        ]

    def view(self, address: str, search: str = "", category: str = ALL_CATEGORIES) -> List[LedgerRow]:
        rows = []
        for record in self.records(address):
            if category and category != ALL_CATEGORIES and record.category != category:
                continue
            if not matches_search(record, search):
                continue
            rows.append(render_row(record))
        return rows

    # =========================================================================
    # Writes
    # =========================================================================

    def add(self, address: str, record: TransactionRecord) -> TransactionRecord:
        """Prepend a record, re-keying its id if it collides with an existing one."""
        if not address:
            raise ValueError("wallet address is required")
        stored: List[TransactionRecord] = []

        def _add(current: List[Dict]) -> List[Dict]:
            taken = {data.get("id") for data in current}
            entry = record
            if entry.id in taken:
                base = entry.id or new_record_id()
                suffix = 1
                while f"{base}-{suffix}" in taken:
                    suffix += 1
                entry = TransactionRecord.from_dict(dict(entry.to_dict(), id=f"{base}-{suffix}"))
            if not entry.sender_address:
                entry.sender_address = address
            stored.append(entry)
            return [entry.to_dict()] + current

        self.db.modify_ledger(address, _add)
        self._notify(address, "added", stored[0])
        return stored[0]

    def update(self, address: str, record_id: str, expect: Optional[Dict] = None, **fields) -> Optional[TransactionRecord]:
        """Apply a field-level update to one record.

        ``expect`` maps attribute names to values the stored record must
        currently hold; if any differs nothing is written and None is
        returned. Raises InvalidStatusTransition for illegal status moves.
        """
        if not fields:
            return self.get(address, record_id)
        fields = dict(fields, updated_at=now_iso())
        touched = record_field_keys(*fields)
        result: List[TransactionRecord] = []

        def _update(current: List[Dict]) -> Optional[List[Dict]]:
            for index, data in enumerate(current):
                if data.get("id") != record_id:
                    continue
                existing = TransactionRecord.from_dict(data)
                if expect and any(getattr(existing, attr) != value for attr, value in expect.items()):
                    return None
                updated = existing.with_updates(**fields)
                serialized = updated.to_dict()
                merged = dict(data)
                for key in touched.values():
                    merged[key] = serialized[key]
                current[index] = merged
                result.append(TransactionRecord.from_dict(merged))
                return current
            return None

        self.db.modify_ledger(address, _update)
        if not result:
            return None
        self._notify(address, "updated", result[0])
        return result[0]

    def link_note_id(self, address: str, tx_hash: str, note_id) -> Optional[TransactionRecord]:
        """Attach a backend-assigned note id to the record carrying tx_hash"""
        if not tx_hash or note_id is None:
            return None
        record = self.find_by_hash(address, tx_hash)
        if record is None:
            return None
        return self.update(address, record.id, note_id=str(note_id))

    def remove(self, address: str, record_id: str) -> bool:
        removed = []

        def _remove(current: List[Dict]) -> Optional[List[Dict]]:
            kept = [data for data in current if data.get("id") != record_id]
            if len(kept) == len(current):
                return None
            removed.append(record_id)
            return kept

        self.db.modify_ledger(address, _remove)
        if not removed:
            raise RecordNotFound(
                f"No ledger record {record_id} for {address}",
                details={"id": record_id, "address": address},
            )
        self._notify(address, "removed", None)
        return True
