# quillchain/transactions/recorder.py
"""
Operation Recorder.

Turns a note create/update/delete into a self-addressed 1 ADA transaction
carrying the note as metadata, submits it through the session's wallet and
appends a pending ledger record. The call returns as soon as the wallet has
submitted; fee resolution and the balance refresh run in the background.

Every failure reaches the caller as a typed error and leaves the ledger
untouched, so callers can make their own backend write conditional on the
returned hash.
"""

import threading
from dataclasses import fields, replace
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from quillchain.config import env_float
from quillchain.core.errors import (
    IndexerUnavailable,
    NotConnected,
    SigningTimeout,
    SubmissionFailed,
    UserRejected,
    ValidationError,
)
from quillchain.core.fees import FeeResolver
from quillchain.core.ledger import LedgerStore
from quillchain.core.models import (
    FEE_UNKNOWN,
    FeeSource,
    NoteDraft,
    NoteOperation,
    TransactionRecord,
    TransactionStatus,
    TransactionType,
    fee_from_value,
    now_iso,
    placeholder_note_id,
)
from quillchain.core.scheduler import BackgroundRunner
from quillchain.core.signer import WalletSigner, is_user_rejection
from quillchain.transactions.metadata import (
    DEFAULT_TITLE,
    MESSAGE_LABEL,
    RestoredNote,
    build_note_metadata,
    chunk_by_bytes,
    restore_note,
)
from quillchain.utils.console import print_info, print_success, print_warn
from quillchain.utils.formatting import ada_to_lovelace, format_ada, to_decimal
from quillchain.utils.validation import (
    is_valid_address,
    is_valid_tx_hash,
    normalize_tx_hash,
    sanitize_text,
)

MIN_OUTPUT_LOVELACE = 1_000_000

# Published per-operation fees in ADA, for display before signing only
FEE_SCHEDULE = {
    NoteOperation.NOTE_CREATE: Decimal("0.10"),
    NoteOperation.NOTE_UPDATE: Decimal("0.17"),
    NoteOperation.NOTE_DELETE: Decimal("0.12"),
}

_PAST_TENSE = {
    NoteOperation.NOTE_CREATE: "created",
    NoteOperation.NOTE_UPDATE: "updated",
    NoteOperation.NOTE_DELETE: "deleted",
}

NoteRef = Union[NoteDraft, str, int]


class OperationRecorder:
    """Records note operations as Cardano transactions"""

    def __init__(self, session, ledger: LedgerStore, fee_resolver: FeeResolver,
                 runner: Optional[BackgroundRunner] = None, signing_timeout: Optional[float] = None):
        self.session = session
        self.ledger = ledger
        self.fee_resolver = fee_resolver
        self.runner = runner or fee_resolver.runner
        self.signing_timeout = (
            signing_timeout if signing_timeout is not None else env_float("QUILL_SIGNING_TIMEOUT", 90.0)
        )

    # =========================================================================
    # Note operations
    # =========================================================================

    def record_create(self, draft: NoteDraft) -> str:
        return self._record(NoteOperation.NOTE_CREATE, draft)

    def record_update(self, note_ref: NoteRef, changes: Optional[Dict[str, Any]] = None) -> str:
        draft = self._draft_from_ref(note_ref, changes)
        draft = replace(draft, updated_at=now_iso())
        return self._record(NoteOperation.NOTE_UPDATE, draft)

    def record_delete(self, note_ref: NoteRef) -> str:
        draft = replace(self._draft_from_ref(note_ref), is_deleted=True, updated_at=now_iso())
        return self._record(NoteOperation.NOTE_DELETE, draft)

    @staticmethod
    def _draft_from_ref(note_ref: NoteRef, changes: Optional[Dict[str, Any]] = None) -> NoteDraft:
        if isinstance(note_ref, NoteDraft):
            draft = note_ref
        else:
            draft = NoteDraft(note_id=str(note_ref))
        if not changes:
            return draft
        unknown = sorted(set(changes) - {f.name for f in fields(NoteDraft)})
        if unknown:
            raise ValidationError(f"Unknown note fields: {', '.join(unknown)}", details={"fields": unknown})
        return replace(draft, **changes)

    def _record(self, operation: NoteOperation, draft: NoteDraft) -> str:
        signer, address = self._require_signer()
        draft = draft.normalized()
        note_ref = draft.note_id or placeholder_note_id()
        title = draft.title or DEFAULT_TITLE

        metadata = build_note_metadata(operation, draft, note_ref)
        print_info(f"📝 Recording {operation.value} for \"{title}\"")
        tx_hash = self._submit(
            signer,
            lambda change: [{'address': change, 'lovelace': MIN_OUTPUT_LOVELACE}],
            metadata,
        )

        record = TransactionRecord(
            type=TransactionType.SENT.value,
            amount=FEE_UNKNOWN,
            fee_source=FeeSource.ESTIMATED.value,
            status=TransactionStatus.PENDING.value,
            category="Expense",
            note=f'Note {_PAST_TENSE[operation]}: "{title}" ({draft.category})',
            operation=operation.value,
            note_id=draft.note_id,
            note_title=title,
            tx_hash=tx_hash,
            network=self.session.network,
            sender_address=address,
        )
        stored = self.ledger.add(address, record)
        self._after_submit(address, stored)
        return tx_hash

    def link_note_id(self, tx_hash: str, note_id) -> Optional[TransactionRecord]:
        """Attach the backend note id to the record created before the note existed."""
        address = self.session.address
        if not address:
            raise NotConnected("No wallet address to link notes for")
        return self.ledger.link_note_id(address, tx_hash, note_id)

    # =========================================================================
    # Other ledger entries
    # =========================================================================

    def record_manual(self, amount, tx_type: str = TransactionType.RECORDED.value, category: str = "Other",
                      note: Optional[str] = None, recipient_address: Optional[str] = None,
                      tx_hash: Optional[str] = None, date: Optional[str] = None) -> TransactionRecord:
        """Add an off-chain bookkeeping entry; works for view-only sessions too."""
        address = self.session.address
        if not address:
            raise NotConnected("Connect a wallet or enter an address first")
        if to_decimal(amount) is None:
            raise ValidationError("Amount must be a number", details={"amount": amount})
        if tx_type not in {t.value for t in TransactionType}:
            raise ValidationError(f"Unknown transaction type: {tx_type}")

        record = TransactionRecord(
            type=tx_type,
            amount=fee_from_value(amount),
            fee_source=FeeSource.LOCAL.value,
            status=TransactionStatus.RECORDED.value,
            category=category or "Other",
            note=note,
            recipient_address=recipient_address,
            tx_hash=tx_hash,
            network=self.session.network,
            sender_address=address,
            date=date,
        )
        return self.ledger.add(address, record)

    def send_payment(self, recipient: str, amount_ada, note: Optional[str] = None,
                     category: str = "Payment") -> str:
        """Send ADA to another address; the ledger record tracks the fee, not the transfer."""
        signer, address = self._require_signer()
        recipient = (recipient or "").strip()
        if not is_valid_address(recipient):
            raise ValidationError("Invalid recipient address", details={"recipient": recipient})
        amount = to_decimal(amount_ada)
        if amount is None or amount <= 0:
            raise ValidationError("Amount must be greater than zero", details={"amount": amount_ada})

        metadata = {}
        if note:
            metadata[MESSAGE_LABEL] = {'msg': chunk_by_bytes(sanitize_text(note, 256))}

        print_info(f"💸 Sending {format_ada(amount)} to {recipient[:20]}...")
        tx_hash = self._submit(
            signer,
            lambda change: [{'address': recipient, 'lovelace': ada_to_lovelace(amount)}],
            metadata,
        )

        summary = f"Sent {format_ada(amount)} to {recipient[:20]}..."
        record = TransactionRecord(
            type=TransactionType.SENT.value,
            amount=FEE_UNKNOWN,
            fee_source=FeeSource.ESTIMATED.value,
            status=TransactionStatus.PENDING.value,
            category=category or "Payment",
            note=f"{summary} {note}" if note else summary,
            recipient_address=recipient,
            tx_hash=tx_hash,
            network=self.session.network,
            sender_address=address,
        )
        stored = self.ledger.add(address, record)
        self._after_submit(address, stored)
        return tx_hash

    def restore_notes_from_chain(self, limit: int = 50) -> List[RestoredNote]:
        """Rebuild notes from label 1337 metadata of the wallet's recent transactions."""
        address = self.session.address
        if not address:
            return []
        indexer = self.session.indexer
        network = self.session.network
        try:
            history = indexer.address_txs(network, [address], limit=limit)
            hashes = [h for h in (normalize_tx_hash(tx.get('tx_hash')) for tx in history if isinstance(tx, dict)) if h]
            if not hashes:
                return []
            infos = indexer.tx_info(network, hashes)
        except IndexerUnavailable as e:
            print_warn(f"⚠️  Could not restore notes from chain: {e}")
            return []

        restored = []
        for info in infos:
            if not isinstance(info, dict):
                continue
            note = restore_note(info)
            if note is not None:
                restored.append(note)
        print_info(f"📚 Restored {len(restored)} note(s) from {len(hashes)} transaction(s)")
        return restored

    @staticmethod
    def estimate_fee(operation: Union[NoteOperation, str]) -> Decimal:
        if isinstance(operation, str):
            operation = NoteOperation(operation)
        return FEE_SCHEDULE[operation]

    # =========================================================================
    # Wallet interaction
    # =========================================================================

    def _require_signer(self):
        signer = self.session.signer
        address = self.session.address
        if not self.session.can_sign or signer is None or not address:
            raise NotConnected("Wallet not connected. Connect a wallet with signing access first.")
        return signer, address

    def _sign_with_timeout(self, signer: WalletSigner, unsigned_tx):
        # Each prompt gets its own daemon thread; an unanswered one is abandoned, never waited on again.
        outcome = {}
        done = threading.Event()

        def sign():
            try:
                outcome['signed'] = signer.sign_tx(unsigned_tx, False)
            except Exception as e:
                outcome['error'] = e
            finally:
                done.set()

        threading.Thread(target=sign, name="quill-sign", daemon=True).start()
        if not done.wait(self.signing_timeout):
            raise SigningTimeout(
                f"Transaction signing timed out after {self.signing_timeout:g}s. Please try again.",
                details={"timeout": self.signing_timeout},
            )

        error = outcome.get('error')
        if error is not None:
            if is_user_rejection(error):
                raise UserRejected("Transaction was rejected by user") from error
            raise SubmissionFailed(f"Signing failed: {error}") from error
        signed = outcome.get('signed')
        if not signed:
            raise UserRejected("Transaction was not signed by the wallet")
        return signed

    def _submit(self, signer: WalletSigner, outputs_for, metadata: Dict) -> str:
        try:
            change_address = signer.get_change_address()
            utxos = signer.get_utxos()
        except Exception as e:
            raise SubmissionFailed(f"Wallet is unavailable: {e}") from e
        if not utxos:
            raise SubmissionFailed("No UTXOs available in wallet. Please ensure you have ADA in your wallet.")

        try:
            unsigned = signer.build_tx(change_address, outputs_for(change_address), metadata)
        except Exception as e:
            raise SubmissionFailed(f"Failed to build transaction: {e}") from e
        if not unsigned:
            raise SubmissionFailed("Failed to build transaction: builder returned nothing")

        signed = self._sign_with_timeout(signer, unsigned)

        try:
            tx_hash = signer.submit_tx(signed)
        except Exception as e:
            if is_user_rejection(e):
                raise UserRejected("Transaction was rejected by user") from e
            raise SubmissionFailed(f"Transaction submission failed: {e}") from e

        tx_hash = normalize_tx_hash(tx_hash) if isinstance(tx_hash, str) else None
        if not tx_hash:
            raise SubmissionFailed("Transaction submission failed - no hash returned from wallet")
        if not is_valid_tx_hash(tx_hash):
            raise SubmissionFailed(f"Wallet returned a malformed transaction hash: {tx_hash}")
        print_success(f"✅ Transaction submitted: {tx_hash[:16]}...")
        return tx_hash

    def _after_submit(self, address: str, record: TransactionRecord):
        self.fee_resolver.resolve_in_background(address, record.id)
        self.runner.submit("balance-refresh", self.session.refresh_balance)
