# quillchain/core/signer.py
"""
Wallet signer capability.

Transaction construction, signing and submission live in the user's wallet
(a CIP-30 style browser wallet or any equivalent). This module only fixes the
shape of that capability so the session and the recorder can drive it.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

# CIP-30 error codes that mean "the user said no"
USER_DECLINED_CODES = {1, 2, -3}
_REJECTION_WORDS = ("reject", "declin", "denied", "refused", "cancel")


class WalletAPIError(Exception):
    """Error reported by a wallet, carrying its numeric code when available"""

    def __init__(self, info: str, code: Optional[int] = None):
        self.info = info
        self.code = code
        super().__init__(info)


def is_user_rejection(error: BaseException) -> bool:
    code = getattr(error, "code", None)
    if isinstance(error, WalletAPIError) and code in USER_DECLINED_CODES:
        return True
    message = str(error).lower()
    return any(word in message for word in _REJECTION_WORDS)


def lovelace_from_balance(balance: Any) -> int:
    """Extract lovelace from a wallet balance (asset list, dict or plain number)."""
    if balance is None:
        return 0
    if isinstance(balance, (int, float, str)):
        return int(balance)
    if isinstance(balance, dict):
        balance = [balance]
    for asset in balance:
        if asset.get("unit", "lovelace") == "lovelace":
            return int(asset.get("quantity", 0) or 0)
    first = balance[0] if balance else {}
    return int(first.get("quantity", 0) or 0)


class WalletSigner(ABC):
    """An enabled wallet able to build, sign and submit transactions"""

    name: str = "wallet"

    @abstractmethod
    def get_change_address(self) -> str:
        ...

    @abstractmethod
    def get_balance(self) -> List[Dict[str, Any]]:
        """Assets held, e.g. [{'unit': 'lovelace', 'quantity': '5000000'}]"""

    @abstractmethod
    def get_utxos(self) -> List[Any]:
        ...

    @abstractmethod
    def build_tx(self, change_address: str, outputs: List[Dict[str, Any]],
                 metadata: Dict[int, Any]) -> Any:
        """Return an unsigned transaction paying ``outputs`` with ``metadata`` attached."""

    @abstractmethod
    def sign_tx(self, unsigned_tx: Any, partial: bool = False) -> Any:
        ...

    @abstractmethod
    def submit_tx(self, signed_tx: Any) -> str:
        """Submit to the network and return the transaction hash."""


class WalletProvider(ABC):
    """Discovers installed wallets and enables them"""

    @abstractmethod
    def installed_wallets(self) -> List[str]:
        ...

    @abstractmethod
    def enable(self, wallet_name: str) -> WalletSigner:
        ...
