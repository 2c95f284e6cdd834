# quillchain/core/models.py
"""
Ledger data model.

A TransactionRecord is one entry of a wallet's ledger. Fields hold plain
strings (the enum ``.value``) so a record serializes straight to the JSON
layout kept in local storage; the fee is the exception and is modelled as
``FeeUnknown | FeeKnown`` so an unresolved fee can never be added up.
"""

import time
import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from quillchain.core.errors import InvalidStatusTransition
from quillchain.utils.formatting import format_ada, to_decimal
from quillchain.utils.validation import normalize_tx_hash


class TransactionType(Enum):
    SENT = "sent"
    RECEIVED = "received"
    RECORDED = "recorded"


class TransactionStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    RECORDED = "recorded"


class FeeSource(Enum):
    """Provenance of a record's amount"""
    LOCAL = "local"
    ESTIMATED = "estimated"
    BLOCKCHAIN = "blockchain"


class NoteOperation(Enum):
    NOTE_CREATE = "note_create"
    NOTE_UPDATE = "note_update"
    NOTE_DELETE = "note_delete"

    @property
    def kind(self) -> str:
        """Short action name written into on-chain metadata."""
        return self.value.replace("note_", "")


class Network(Enum):
    PREVIEW = "preview"
    PREPROD = "preprod"
    MAINNET = "mainnet"


ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    TransactionStatus.PENDING.value: frozenset({
        TransactionStatus.CONFIRMED.value,
        TransactionStatus.FAILED.value,
    }),
    TransactionStatus.RECORDED.value: frozenset({TransactionStatus.CONFIRMED.value}),
    TransactionStatus.CONFIRMED.value: frozenset(),
    TransactionStatus.FAILED.value: frozenset(),
}


def can_transition(old: str, new: str) -> bool:
    if old == new:
        return True
    return new in ALLOWED_TRANSITIONS.get(old, frozenset())


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def new_record_id() -> str:
    return str(int(time.time() * 1000))


def placeholder_note_id() -> str:
    return f"tmp-{uuid.uuid4().hex[:12]}"


# =========================================================================
# Fee
# =========================================================================

class Fee:
    """Either FeeUnknown or FeeKnown"""

    is_known = False

    def to_json(self) -> Optional[str]:
        raise NotImplementedError

    def display(self, sign: str = "") -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class FeeUnknown(Fee):
    is_known = False

    def to_json(self) -> Optional[str]:
        return None

    def display(self, sign: str = "") -> str:
        return format_ada(None)


@dataclass(frozen=True)
class FeeKnown(Fee):
    value: Decimal
    is_known = True

    def __post_init__(self):
        if not isinstance(self.value, Decimal):
            object.__setattr__(self, "value", Decimal(str(self.value)))

    def to_json(self) -> Optional[str]:
        return str(self.value)

    def display(self, sign: str = "") -> str:
        return format_ada(self.value, sign=sign)


FEE_UNKNOWN = FeeUnknown()


def fee_from_value(value: Any) -> Fee:
    if isinstance(value, Fee):
        return value
    parsed = to_decimal(value)
    if parsed is None:
        return FEE_UNKNOWN
    return FeeKnown(parsed)


# =========================================================================
# Records
# =========================================================================

_JSON_KEYS = {
    "id": "id",
    "type": "type",
    "amount": "amount",
    "operation": "operation",
    "note_id": "noteId",
    "tx_hash": "txHash",
    "network": "network",
    "status": "status",
    "fee_source": "feeSource",
    "backend_synced": "backendSynced",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
    "note": "note",
    "note_title": "noteTitle",
    "category": "category",
    "sender_address": "senderAddress",
    "recipient_address": "recipientAddress",
    "date": "date",
}

IMMUTABLE_FIELDS = frozenset({"id", "created_at"})


@dataclass
class TransactionRecord:
    """A single ledger entry"""
    id: str = field(default_factory=new_record_id)
    type: str = TransactionType.SENT.value
    amount: Fee = FEE_UNKNOWN
    operation: Optional[str] = None
    note_id: Optional[str] = None
    tx_hash: Optional[str] = None
    network: str = Network.PREVIEW.value
    status: str = TransactionStatus.RECORDED.value
    fee_source: str = FeeSource.ESTIMATED.value
    backend_synced: bool = False
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)
    note: Optional[str] = None
    note_title: Optional[str] = None
    category: str = "Other"
    sender_address: Optional[str] = None
    recipient_address: Optional[str] = None
    date: Optional[str] = None

    def __post_init__(self):
        self.amount = fee_from_value(self.amount)
        self.tx_hash = normalize_tx_hash(self.tx_hash)
        if self.note_id is not None:
            self.note_id = str(self.note_id)
        self.backend_synced = bool(self.backend_synced)
        if self.date is None:
            self.date = self.created_at

    @property
    def is_fee_pending(self) -> bool:
        return not self.amount.is_known

    @property
    def is_syncable(self) -> bool:
        """Whether the backend cache may receive this record."""
        return (
            bool(self.tx_hash)
            and self.status == TransactionStatus.CONFIRMED.value
            and self.fee_source == FeeSource.BLOCKCHAIN.value
            and self.amount.is_known
            and not self.backend_synced
        )

    def with_updates(self, **updates) -> "TransactionRecord":
        """Return a copy with the given fields changed, enforcing ledger rules."""
        unknown = set(updates) - set(_JSON_KEYS)
        if unknown:
            raise ValueError(f"Unknown record fields: {sorted(unknown)}")
        frozen = IMMUTABLE_FIELDS.intersection(updates)
        if frozen:
            raise ValueError(f"Immutable record fields: {sorted(frozen)}")

        new_status = updates.get("status", self.status)
        if not can_transition(self.status, new_status):
            raise InvalidStatusTransition(
                f"Cannot move record {self.id} from {self.status} to {new_status}",
                details={"id": self.id, "from": self.status, "to": new_status},
            )

        updated = replace(self, **updates)
        if updated.backend_synced and not (
            updated.status == TransactionStatus.CONFIRMED.value
            and updated.fee_source == FeeSource.BLOCKCHAIN.value
        ):
            raise InvalidStatusTransition(
                f"Record {self.id} cannot be marked synced before it is confirmed with a chain fee",
                details={"id": self.id, "status": updated.status, "fee_source": updated.fee_source},
            )
        return updated

    def to_dict(self) -> Dict[str, Any]:
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "amount":
                value = value.to_json()
            data[_JSON_KEYS[f.name]] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TransactionRecord":
        """Build a record from its stored JSON layout, filling legacy gaps."""
        kwargs = {}
        for attr, key in _JSON_KEYS.items():
            if key in data:
                kwargs[attr] = data[key]
        if not kwargs.get("fee_source"):
            kwargs["fee_source"] = (
                FeeSource.ESTIMATED.value if data.get("txHash") else FeeSource.LOCAL.value
            )
        for attr in ("type", "network", "status", "category", "created_at", "updated_at"):
            if kwargs.get(attr) is None:
                kwargs.pop(attr, None)
        return cls(**kwargs)


def record_field_keys(*attrs: str) -> Dict[str, str]:
    """Map record attribute names to their stored JSON keys."""
    return {attr: _JSON_KEYS[attr] for attr in attrs}


# =========================================================================
# Notes
# =========================================================================

@dataclass
class NoteDraft:
    """The note fields that travel into transaction metadata and the notes API"""
    title: str = ""
    content: str = ""
    note_id: Optional[str] = None
    category: str = "Uncategorized"
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    is_pinned: bool = False
    is_starred: bool = False
    is_archived: bool = False
    is_deleted: bool = False

    def __post_init__(self):
        if self.note_id is not None:
            self.note_id = str(self.note_id)

    def normalized(self) -> "NoteDraft":
        stamp = now_iso()
        return replace(
            self,
            category=self.category or "Uncategorized",
            created_at=self.created_at or stamp,
            updated_at=self.updated_at or stamp,
            is_pinned=bool(self.is_pinned),
            is_starred=bool(self.is_starred),
            is_archived=bool(self.is_archived),
            is_deleted=bool(self.is_deleted),
        )

    def to_api_payload(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "content": self.content,
            "category": self.category,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "isPinned": self.is_pinned,
            "starred": self.is_starred,
            "archived": self.is_archived,
            "deleted": self.is_deleted,
        }

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "NoteDraft":
        return cls(
            title=data.get("title") or "",
            content=data.get("content") or "",
            note_id=data.get("id"),
            category=data.get("category") or "Uncategorized",
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
            is_pinned=bool(data.get("isPinned")),
            is_starred=bool(data.get("starred")),
            is_archived=bool(data.get("archived")),
            is_deleted=bool(data.get("deleted")),
        )
