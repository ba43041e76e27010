"""Exception hierarchy for Soroban contract calls.

Every failure that leaves the orchestrator is a ``ClassifiedError`` whose
``kind`` and ``severity`` tell the caller how to present it.
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    WALLET_NOT_FOUND = "WalletNotFound"
    TRANSACTION_REJECTED = "TransactionRejected"
    INSUFFICIENT_BALANCE = "InsufficientBalance"
    SUBMISSION_FAILED = "SubmissionFailed"
    ON_CHAIN_FAILURE = "OnChainFailure"
    TIMEOUT = "Timeout"
    UNKNOWN = "Unknown"


class Severity(str, Enum):
    WARNING = "warning"
    INFO = "info"
    ERROR = "error"


class ClassifiedError(Exception):
    """Base exception for all classified contract-call failures."""

    kind = ErrorKind.UNKNOWN
    severity = Severity.ERROR
    default_message = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, details: Optional[dict] = None):
        message = message or self.default_message
        super().__init__(message)
        self.message = message
        self.details = details or {}


class WalletNotFoundError(ClassifiedError):
    """Raised when no caller address was supplied."""

    kind = ErrorKind.WALLET_NOT_FOUND
    severity = Severity.WARNING
    default_message = "Wallet not found or not connected"


class TransactionRejectedError(ClassifiedError):
    """Raised when the signer declined the transaction."""

    kind = ErrorKind.TRANSACTION_REJECTED
    severity = Severity.INFO
    default_message = "Transaction was rejected by user"


class InsufficientBalanceError(ClassifiedError):
    """Raised when the caller account is missing or under-funded."""

    kind = ErrorKind.INSUFFICIENT_BALANCE
    default_message = "Insufficient balance for transaction"


class SubmissionFailedError(ClassifiedError):
    """Raised when the node refuses the signed envelope."""

    kind = ErrorKind.SUBMISSION_FAILED
    default_message = "Transaction submission failed"

    def __init__(
        self,
        message: Optional[str] = None,
        transaction_hash: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details)
        self.transaction_hash = transaction_hash


class OnChainFailureError(ClassifiedError):
    """Raised when the ledger executed and rejected the transaction."""

    kind = ErrorKind.ON_CHAIN_FAILURE
    default_message = "Transaction failed on-chain"

    def __init__(
        self,
        message: Optional[str] = None,
        transaction_hash: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details)
        self.transaction_hash = transaction_hash


class ConfirmationTimeoutError(ClassifiedError):
    """Raised when the poll budget ran out before a terminal status.

    The final outcome is unknown: the transaction may still land, so the
    caller should look it up by hash instead of re-submitting.
    """

    kind = ErrorKind.TIMEOUT
    default_message = "Transaction timeout - please check explorer"

    def __init__(
        self,
        message: Optional[str] = None,
        transaction_hash: Optional[str] = None,
        explorer_url: Optional[str] = None,
        attempts: Optional[int] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details)
        self.transaction_hash = transaction_hash
        self.explorer_url = explorer_url
        self.attempts = attempts


class UnknownError(ClassifiedError):
    """Raised for any failure that fits no other kind."""


class ValidationError(Exception):
    """Raised when caller-supplied input is unusable."""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.value = value


class SignerRejection(Exception):
    """Raised by a signer when the transaction was not signed.

    ``reason`` is a structured code such as ``"rejected"``, ``"cancelled"``
    or ``"denied"`` when the signer can tell why; ``None`` otherwise.
    """

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.reason = reason
