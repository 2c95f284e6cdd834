# quillchain/quill.py
"""
QuillLedger - one object wiring the session, ledger and reconciliation flows.

Typical use::

    quill = QuillLedger(provider=my_wallet_provider)
    quill.start()
    quill.connect()
    tx_hash, note = quill.create_note(NoteDraft(title="Groceries", content="milk"))
    for row in quill.ledger_view(search="groceries"):
        print(row.amount_display, row.status)
    quill.stop()
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from quillchain.config import apply_profile
from quillchain.core.backend import BackendClient
from quillchain.core.errors import BackendUnavailable, NotConnected
from quillchain.core.fees import FeeResolver
from quillchain.core.indexer import IndexerClient
from quillchain.core.ledger import ALL_CATEGORIES, LedgerRow, LedgerStore
from quillchain.core.models import NoteDraft, NoteOperation, TransactionRecord
from quillchain.core.monitor import PendingConfirmationMonitor
from quillchain.core.reconciler import LedgerReconciler
from quillchain.core.retry import RetryPolicy
from quillchain.core.scheduler import BackgroundRunner
from quillchain.core.session import WalletSession
from quillchain.core.signer import WalletProvider
from quillchain.core.sync import BackendSyncBridge
from quillchain.storage.database import LedgerDatabase
from quillchain.transactions.metadata import RestoredNote
from quillchain.transactions.recorder import OperationRecorder
from quillchain.utils.console import print_info, print_warn


class QuillLedger:
    """Facade over the wallet transaction lifecycle"""

    def __init__(self, provider: Optional[WalletProvider] = None, api_url: Optional[str] = None,
                 db_path: Optional[str] = None, network: Optional[str] = None,
                 indexer: Optional[IndexerClient] = None, backend: Optional[BackendClient] = None,
                 database: Optional[LedgerDatabase] = None, runner: Optional[BackgroundRunner] = None,
                 retry_policy: Optional[RetryPolicy] = None):
        apply_profile()

        self.database = database or LedgerDatabase(db_path)
        self.indexer = indexer or IndexerClient(api_url)
        self.backend = backend or BackendClient(api_url)
        self.runner = runner or BackgroundRunner()

        self.ledger = LedgerStore(self.database)
        self.session = WalletSession(provider, self.indexer, self.database, network)
        self.sync_bridge = BackendSyncBridge(self.ledger, self.backend)
        self.fee_resolver = FeeResolver(self.indexer, self.ledger, self.sync_bridge, retry_policy, self.runner)
        self.monitor = PendingConfirmationMonitor(self.session, self.ledger, self.indexer, self.sync_bridge)
        self.reconciler = LedgerReconciler(self.session, self.ledger, self.fee_resolver, self.sync_bridge,
                                           self.runner)
        self.recorder = OperationRecorder(self.session, self.ledger, self.fee_resolver, self.runner)
        self.reconciler.attach()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self, restore: bool = True):
        """Restore the saved wallet (if any) and start the confirmation monitor."""
        if restore:
            self.session.restore()
        if self.session.address:
            self.ledger.load(self.session.address)
        self.monitor.start()

    def stop(self):
        self.monitor.stop()
        self.runner.shutdown(wait=False)

    # =========================================================================
    # Session
    # =========================================================================

    @property
    def address(self) -> Optional[str]:
        return self.session.address

    def available_wallets(self) -> List[str]:
        return self.session.available_wallets()

    def connect(self, wallet_id: Optional[str] = None) -> str:
        address = self.session.connect(wallet_id)
        self.ledger.load(address)
        return address

    def connect_view_only(self, address: str) -> str:
        address = self.session.connect_view_only(address)
        self.ledger.load(address)
        return address

    def disconnect(self):
        self.session.disconnect()

    def set_network(self, network: str):
        self.session.set_network(network)

    def refresh_balance(self) -> Decimal:
        return self.session.refresh_balance()

    # =========================================================================
    # Notes (chain first, backend second)
    # =========================================================================

    def create_note(self, draft: NoteDraft) -> Tuple[str, Optional[Dict[str, Any]]]:
        """Record the create on chain, then save the note; returns (tx_hash, saved note)."""
        draft = draft.normalized()
        tx_hash = self.recorder.record_create(draft)
        try:
            saved = self.backend.create_note(draft.to_api_payload())
        except BackendUnavailable as e:
            print_warn(f"⚠️  Note recorded on chain ({tx_hash[:16]}...) but not saved: {e}")
            return tx_hash, None
        if saved and saved.get('id') is not None:
            self.recorder.link_note_id(tx_hash, saved['id'])
        return tx_hash, saved

    def update_note(self, draft: NoteDraft) -> Tuple[str, Optional[Dict[str, Any]]]:
        if not draft.note_id:
            raise ValueError("note_id is required to update a note")
        draft = draft.normalized()
        tx_hash = self.recorder.record_update(draft)
        try:
            saved = self.backend.update_note(draft.note_id, draft.to_api_payload())
        except BackendUnavailable as e:
            print_warn(f"⚠️  Update recorded on chain ({tx_hash[:16]}...) but not saved: {e}")
            return tx_hash, None
        return tx_hash, saved

    def delete_note(self, note_ref) -> str:
        draft = note_ref if isinstance(note_ref, NoteDraft) else NoteDraft(note_id=str(note_ref))
        if not draft.note_id:
            raise ValueError("note_id is required to delete a note")
        tx_hash = self.recorder.record_delete(draft)
        try:
            self.backend.delete_note(draft.note_id)
        except BackendUnavailable as e:
            print_warn(f"⚠️  Delete recorded on chain ({tx_hash[:16]}...) but note {draft.note_id} kept: {e}")
        return tx_hash

    def restore_notes_from_chain(self, limit: int = 50) -> List[RestoredNote]:
        return self.recorder.restore_notes_from_chain(limit)

    def estimate_fee(self, operation: NoteOperation) -> Decimal:
        return self.recorder.estimate_fee(operation)

    # =========================================================================
    # Ledger
    # =========================================================================

    def _require_address(self) -> str:
        if not self.session.address:
            raise NotConnected("No wallet connected")
        return self.session.address

    def transactions(self) -> List[TransactionRecord]:
        if not self.session.address:
            return []
        return self.ledger.records(self.session.address)

    def ledger_view(self, search: str = "", category: str = ALL_CATEGORIES) -> List[LedgerRow]:
        if not self.session.address:
            return []
        return self.ledger.view(self.session.address, search=search, category=category)

    def record_manual(self, amount, **kwargs) -> TransactionRecord:
        return self.recorder.record_manual(amount, **kwargs)

    def send_payment(self, recipient: str, amount_ada, note: Optional[str] = None,
                     category: str = "Payment") -> str:
        return self.recorder.send_payment(recipient, amount_ada, note, category)

    def remove_record(self, record_id: str) -> bool:
        address = self._require_address()
        removed = self.ledger.remove(address, record_id)
        print_info(f"🗑️  Removed ledger record {record_id}")
        return removed

    def sweep(self) -> Dict[str, int]:
        return self.reconciler.sweep()

    def check_pending(self) -> List[TransactionRecord]:
        return self.monitor.tick()
