"""
QuillChain - Cardano transaction ledger for on-chain notes
"""
from .quill import QuillLedger
from .core.models import NoteDraft, TransactionRecord, FeeKnown, FeeUnknown
from .core.session import WalletSession, SessionMode
from .transactions.recorder import OperationRecorder

__version__ = "1.0.0"
__all__ = [
    'QuillLedger',
    'NoteDraft',
    'TransactionRecord',
    'FeeKnown',
    'FeeUnknown',
    'WalletSession',
    'SessionMode',
    'OperationRecorder',
]
