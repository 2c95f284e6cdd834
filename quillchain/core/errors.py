"""Exception hierarchy for wallet, indexer and backend failures.

Operation-level errors (not connected, signing timeout, rejection, failed
submission) reach the caller. Indexer and backend errors are raised by the
HTTP clients and caught by the background reconciliation components.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    # Wallet / signing (1xxx)
    NOT_CONNECTED = 1001
    SIGNING_TIMEOUT = 1002
    USER_REJECTED = 1003
    SUBMISSION_FAILED = 1004

    # Remote services (2xxx)
    INDEXER_UNAVAILABLE = 2001
    BACKEND_CONFLICT = 2002
    BACKEND_UNAVAILABLE = 2003

    # Ledger (3xxx)
    INVALID_STATUS_TRANSITION = 3001
    RECORD_NOT_FOUND = 3002

    # Validation (4xxx)
    VALIDATION_FAILED = 4001


class QuillError(Exception):
    """Base exception for all QuillChain errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    default_code = ErrorCode.VALIDATION_FAILED

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class NotConnected(QuillError):
    default_code = ErrorCode.NOT_CONNECTED


class SigningTimeout(QuillError):
    default_code = ErrorCode.SIGNING_TIMEOUT


class UserRejected(QuillError):
    default_code = ErrorCode.USER_REJECTED


class SubmissionFailed(QuillError):
    default_code = ErrorCode.SUBMISSION_FAILED


class IndexerUnavailable(QuillError):
    default_code = ErrorCode.INDEXER_UNAVAILABLE


class BackendUnavailable(QuillError):
    default_code = ErrorCode.BACKEND_UNAVAILABLE

    def __init__(self, message: str, status_code: Optional[int] = None, **kwargs):
        self.status_code = status_code
        super().__init__(message, **kwargs)


class BackendConflict(QuillError):
    """409 from the backend: the tx hash is already stored remotely."""

    default_code = ErrorCode.BACKEND_CONFLICT

    def __init__(self, message: str, tx_hash: Optional[str] = None, **kwargs):
        self.tx_hash = tx_hash
        self.status_code = 409
        super().__init__(message, **kwargs)


class InvalidStatusTransition(QuillError):
    default_code = ErrorCode.INVALID_STATUS_TRANSITION


class RecordNotFound(QuillError):
    default_code = ErrorCode.RECORD_NOT_FOUND


class ValidationError(QuillError):
    default_code = ErrorCode.VALIDATION_FAILED
