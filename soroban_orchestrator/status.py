"""
status.py
Transaction status cursor, status observers and the error reporter.

The orchestrator owns one ``CallTracker`` per in-flight call and pushes every
transition to the caller's observer. ``describe_error`` turns whatever a call
raised into something a UI can show; it never raises itself.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Protocol, Union

from stellar_sdk import Network

from soroban_orchestrator.exceptions import (
    ClassifiedError,
    ConfirmationTimeoutError,
    ErrorKind,
    Severity,
)

logger = logging.getLogger(__name__)


class TxStatus(str, Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    SIGNING = "signing"
    SUBMITTING = "submitting"
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


_FORWARD_ORDER = [
    TxStatus.IDLE,
    TxStatus.PREPARING,
    TxStatus.SIGNING,
    TxStatus.SUBMITTING,
    TxStatus.PENDING,
    TxStatus.SUCCESS,
]

TERMINAL_STATUSES = frozenset({TxStatus.SUCCESS, TxStatus.FAILED})
LOADING_STATUSES = frozenset(
    {TxStatus.PREPARING, TxStatus.SIGNING, TxStatus.SUBMITTING, TxStatus.PENDING}
)

_PHASE_LABELS = {
    TxStatus.IDLE: "",
    TxStatus.PREPARING: "Preparing transaction...",
    TxStatus.SIGNING: "Please sign in your wallet...",
    TxStatus.SUBMITTING: "Submitting to network...",
    TxStatus.PENDING: "Waiting for confirmation...",
    TxStatus.SUCCESS: "Transaction confirmed",
    TxStatus.FAILED: "Transaction failed",
}


# ── observers ────────────────────────────────────────────────────────────────

class StatusObserver(Protocol):
    def on_status(self, status: TxStatus) -> None:
        ...


ObserverLike = Union[StatusObserver, Callable[[TxStatus], None], None]


def _as_callback(observer: ObserverLike) -> Callable[[TxStatus], None]:
    if observer is None:
        return lambda status: None
    if hasattr(observer, "on_status"):
        return observer.on_status
    if callable(observer):
        return observer
    raise TypeError(f"status observer must be callable or define on_status(), got {observer!r}")


class StatusRecorder:
    """Observer that keeps every status it was given, in order."""

    def __init__(self):
        self.statuses: List[TxStatus] = []

    def on_status(self, status: TxStatus) -> None:
        self.statuses.append(status)

    @property
    def last(self) -> Optional[TxStatus]:
        return self.statuses[-1] if self.statuses else None


class LoggingObserver:
    """Observer that logs each phase label under a call label."""

    def __init__(self, label: str, log: Optional[logging.Logger] = None):
        self.label = label
        self._log = log or logger

    def on_status(self, status: TxStatus) -> None:
        level = logging.WARNING if status is TxStatus.FAILED else logging.INFO
        self._log.log(level, "%s: %s (%s)", self.label, status.value, phase_label(status))


# ── per-call cursor ──────────────────────────────────────────────────────────

class CallTracker:
    """
    Status cursor for exactly one call.

    Moves strictly forward along IDLE → PREPARING → SIGNING → SUBMITTING →
    PENDING → SUCCESS, except that any state may move to FAILED. Terminal
    states are final. Re-entering the current state is not re-emitted.
    """

    def __init__(self, observer: ObserverLike = None):
        self._notify = _as_callback(observer)
        self.status = TxStatus.IDLE
        self.history: List[TxStatus] = [TxStatus.IDLE]

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def advance(self, status: TxStatus) -> None:
        if status == self.status:
            return
        if self.is_terminal:
            raise RuntimeError(f"call already finished as {self.status.value}; cannot move to {status.value}")
        if status is not TxStatus.FAILED and _FORWARD_ORDER.index(status) < _FORWARD_ORDER.index(self.status):
            raise RuntimeError(f"status cannot move back from {self.status.value} to {status.value}")
        self.status = status
        self.history.append(status)
        self._notify(status)

    def fail(self) -> None:
        """Force FAILED unless the call already ended."""
        if self.is_terminal:
            return
        self.status = TxStatus.FAILED
        self.history.append(TxStatus.FAILED)
        try:
            self._notify(TxStatus.FAILED)
        except Exception:
            # The triggering failure is what the caller needs to see.
            logger.exception("Status observer raised while reporting FAILED")


# ── reporter ─────────────────────────────────────────────────────────────────

def phase_label(status: TxStatus) -> str:
    return _PHASE_LABELS.get(status, "")


def is_loading(status: TxStatus) -> bool:
    return status in LOADING_STATUSES


def explorer_url(tx_hash: str, network_passphrase: str = Network.TESTNET_NETWORK_PASSPHRASE) -> str:
    """Return the stellar.expert link for a transaction hash."""
    network = "public" if network_passphrase == Network.PUBLIC_NETWORK_PASSPHRASE else "testnet"
    return f"https://stellar.expert/explorer/{network}/tx/{tx_hash}"


@dataclass(frozen=True)
class ErrorReport:
    kind: ErrorKind
    message: str
    severity: Severity


_FIXED_MESSAGES = {
    ErrorKind.WALLET_NOT_FOUND: "Please connect your wallet first",
    ErrorKind.TRANSACTION_REJECTED: "Transaction was cancelled",
    ErrorKind.INSUFFICIENT_BALANCE: "Insufficient XLM balance. Please fund your account on testnet",
}


def describe_error(error: object) -> ErrorReport:
    """Map any raised value to ``ErrorReport``; unknown values become (Unknown, error)."""
    try:
        if isinstance(error, ClassifiedError):
            kind = ErrorKind(error.kind)
            severity = Severity(error.severity)
            if kind in _FIXED_MESSAGES:
                return ErrorReport(kind, _FIXED_MESSAGES[kind], severity)
            if isinstance(error, ConfirmationTimeoutError) and error.transaction_hash:
                where = error.explorer_url or f"transaction {error.transaction_hash}"
                message = (
                    f"Transaction {error.transaction_hash} was not confirmed in time. "
                    f"Check {where} before trying again."
                )
                return ErrorReport(kind, message, severity)
            return ErrorReport(kind, error.message or ClassifiedError.default_message, severity)
        message = str(error) if error is not None else ""
    except Exception:
        message = ""
    return ErrorReport(ErrorKind.UNKNOWN, message or ClassifiedError.default_message, Severity.ERROR)
