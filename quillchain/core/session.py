# quillchain/core/session.py
"""
Wallet Session Manager.

Holds the active wallet: its address, network, balance and whether it can
sign (``full``) or only be watched (``view-only``). The connected address is
persisted so the session can be restored on the next start.
"""

import threading
from decimal import Decimal
from enum import Enum
from typing import Callable, List, Optional

from quillchain.config import env_str
from quillchain.core.errors import (
    IndexerUnavailable,
    NotConnected,
    UserRejected,
    ValidationError,
)
from quillchain.core.indexer import IndexerClient
from quillchain.core.signer import (
    WalletProvider,
    WalletSigner,
    is_user_rejection,
    lovelace_from_balance,
)
from quillchain.storage.database import LedgerDatabase
from quillchain.utils.console import print_debug, print_info, print_success, print_warn
from quillchain.utils.formatting import format_balance, lovelace_to_ada, quantize
from quillchain.utils.validation import NETWORKS, is_valid_address, is_valid_network

ZERO_BALANCE = Decimal("0.00")


class SessionMode(Enum):
    FULL = "full"
    VIEW_ONLY = "view-only"
    DISCONNECTED = "disconnected"


class WalletSession:
    """The currently connected wallet"""

    def __init__(self, provider: Optional[WalletProvider], indexer: IndexerClient,
                 database: LedgerDatabase, network: Optional[str] = None):
        self.provider = provider
        self.indexer = indexer
        self.db = database
        self.network = network or env_str("QUILL_NETWORK", "preview")
        if not is_valid_network(self.network):
            raise ValidationError(f"Unknown network: {self.network}", details={"networks": list(NETWORKS)})

        self.address: Optional[str] = None
        self.wallet_name: Optional[str] = None
        self.signer: Optional[WalletSigner] = None
        self.balance: Decimal = ZERO_BALANCE
        self.mode = SessionMode.DISCONNECTED

        self._listeners: List[Callable[[str, "WalletSession"], None]] = []
        self._lock = threading.RLock()

    # =========================================================================
    # State
    # =========================================================================

    @property
    def can_sign(self) -> bool:
        return self.mode == SessionMode.FULL and self.signer is not None

    @property
    def is_connected(self) -> bool:
        return self.mode != SessionMode.DISCONNECTED and bool(self.address)

    def add_listener(self, callback: Callable[[str, "WalletSession"], None]):
        """Register callback(event, session) for every session change"""
        with self._lock:
            self._listeners.append(callback)

    def _notify(self, event: str):
        with self._lock:
            listeners = list(self._listeners)
        for callback in listeners:
            try:
                callback(event, self)
            except Exception as e:
                print_warn(f"⚠️  Session listener error: {e}")

    def _set_wallet(self, address: str, mode: SessionMode, signer: Optional[WalletSigner] = None,
                    wallet_name: Optional[str] = None):
        with self._lock:
            self.address = address
            self.mode = mode
            self.signer = signer
            self.wallet_name = wallet_name
            self.balance = ZERO_BALANCE
        self.db.set_connected_address(address)

    # =========================================================================
    # Connection
    # =========================================================================

    def available_wallets(self) -> List[str]:
        if self.provider is None:
            return []
        try:
            return list(self.provider.installed_wallets())
        except Exception as e:
            print_warn(f"⚠️  Could not list installed wallets: {e}")
            return []

    def _enable(self, wallet_name: str) -> WalletSigner:
        try:
            return self.provider.enable(wallet_name)
        except Exception as e:
            if is_user_rejection(e):
                raise UserRejected(f"Connection to {wallet_name} was declined",
                                   details={"wallet": wallet_name}) from e
            raise NotConnected(f"Could not enable {wallet_name}: {e}",
                               details={"wallet": wallet_name}) from e

    def connect(self, wallet_id: Optional[str] = None) -> str:
        """Enable a wallet with full signing access and return its change address."""
        wallets = self.available_wallets()
        if not wallets:
            raise NotConnected("No Cardano wallet installed")
        if wallet_id and wallet_id not in wallets:
            raise NotConnected(f"Wallet {wallet_id} is not installed", details={"installed": wallets})

        name = wallet_id or wallets[0]
        signer = self._enable(name)
        try:
            address = signer.get_change_address()
        except Exception as e:
            raise NotConnected(f"{name} did not report a change address: {e}") from e

        self._set_wallet(address, SessionMode.FULL, signer, name)
        self.refresh_balance()
        print_success(f"✅ Connected to {name}: {address[:20]}...")
        self._notify("connected")
        return address

    def connect_view_only(self, address: str) -> str:
        address = (address or "").strip()
        if not is_valid_address(address):
            raise ValidationError("Invalid Cardano address. It should start with 'addr'.",
                                  details={"address": address})

        self._set_wallet(address, SessionMode.VIEW_ONLY)
        self.refresh_balance()
        print_info(f"👀 Watching {address[:20]}... (view-only)")
        self._notify("connected")
        return address

    def restore(self) -> SessionMode:
        """Reconnect to the saved address, with full access when a wallet still owns it."""
        saved = self.db.get_connected_address()
        if not saved:
            return self.mode

        for name in self.available_wallets():
            try:
                signer = self.provider.enable(name)
                if signer.get_change_address() == saved:
                    self._set_wallet(saved, SessionMode.FULL, signer, name)
                    break
            except Exception as e:
                print_debug(f"Wallet {name} could not be restored: {e}")
        else:
            self._set_wallet(saved, SessionMode.VIEW_ONLY)

        self.refresh_balance()
        print_info(f"🔁 Restored {self.mode.value} session for {saved[:20]}...")
        self._notify("restored")
        return self.mode

    def disconnect(self):
        """Forget the active wallet; its persisted ledger stays on disk."""
        with self._lock:
            self.address = None
            self.signer = None
            self.wallet_name = None
            self.balance = ZERO_BALANCE
            self.mode = SessionMode.DISCONNECTED
        self.db.set_connected_address(None)
        print_info("🔌 Wallet disconnected")
        self._notify("disconnected")

    def set_network(self, network: str):
        if not is_valid_network(network):
            raise ValidationError(f"Unknown network: {network}", details={"networks": list(NETWORKS)})
        with self._lock:
            self.network = network
        self._notify("network")

    # =========================================================================
    # Balance
    # =========================================================================

    def _indexer_balance(self, address: str) -> Decimal:
        try:
            balance = self.indexer.get_balance(self.network, address)
        except IndexerUnavailable as e:
            print_warn(f"⚠️  Balance lookup failed: {e}")
            return ZERO_BALANCE
        return balance if balance is not None else ZERO_BALANCE

    def refresh_balance(self) -> Decimal:
        """Refresh the balance from the signer (full) or the indexer; failures read as 0."""
        address = self.address
        if not address:
            return ZERO_BALANCE

        balance = None
        signer = self.signer
        if self.mode == SessionMode.FULL and signer is not None:
            try:
                ada = lovelace_to_ada(lovelace_from_balance(signer.get_balance()))
                balance = quantize(ada, 2)
            except Exception as e:
                print_debug(f"Wallet balance unavailable, asking the indexer: {e}")
        if balance is None:
            balance = self._indexer_balance(address)

        with self._lock:
            if self.address != address:
                return balance
            self.balance = balance
        print_debug(f"Balance for {address[:20]}...: {format_balance(balance)}")
        self._notify("balance")
        return balance
