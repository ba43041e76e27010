"""
orchestrator.py
Drives one Soroban contract call from account lookup to confirmation.

    caller → PREPARING (account, build, simulate) → SIGNING (external signer)
           → SUBMITTING (broadcast) → PENDING (poll) → SUCCESS | FAILED

Every call gets its own ``CallTracker``; the engine itself keeps no per-call
state, so one instance serves any number of concurrent calls. Whatever goes
wrong, the tracker ends in FAILED and the caller receives a ``ClassifiedError``.
Nothing is retried.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

from stellar_sdk import xdr as stellar_xdr

from soroban_orchestrator import codec
from soroban_orchestrator.exceptions import (
    ClassifiedError,
    ConfirmationTimeoutError,
    OnChainFailureError,
    SubmissionFailedError,
    TransactionRejectedError,
    UnknownError,
    WalletNotFoundError,
)
from soroban_orchestrator.status import CallTracker, ObserverLike, TxStatus, explorer_url
from soroban_orchestrator.stellar_client import (
    LedgerNode,
    OrchestratorConfig,
    PreparedEnvelope,
    SorobanLedgerNode,
    SubmissionReceipt,
    build_invocation,
    resolve_account,
)
from soroban_orchestrator.wallet_bridge import Signer

logger = logging.getLogger(__name__)

REJECTION_MARKERS = ("rejected", "cancelled", "canceled", "denied", "declined")

# Node answers to sendTransaction that mean the envelope was not accepted.
SUBMISSION_ERROR_STATUSES = frozenset({"ERROR", "TRY_AGAIN_LATER"})


@dataclass(frozen=True)
class CallRequest:
    contract_id: str
    function_name: str
    arguments: Tuple[stellar_xdr.SCVal, ...]
    caller: Optional[str]

    @classmethod
    def create(cls, contract_id: str, function_name: str, values: Any = None, caller: Optional[str] = None):
        """Build a request from no value, one value or a sequence of values."""
        arguments = tuple(codec.encode(value) for value in codec.normalize_arguments(values))
        return cls(contract_id=contract_id, function_name=function_name, arguments=arguments, caller=caller)


@dataclass(frozen=True)
class CallOutcome:
    return_value: Any
    transaction_hash: str


def classify_signer_error(exc: Exception) -> Optional[TransactionRejectedError]:
    """Return a TransactionRejectedError if ``exc`` means the human said no."""
    reason = getattr(exc, "reason", None)
    if isinstance(reason, str) and reason.lower() in REJECTION_MARKERS:
        return TransactionRejectedError(details={"reason": reason, "error": str(exc)})
    message = str(exc).lower()
    if any(marker in message for marker in REJECTION_MARKERS):
        return TransactionRejectedError(details={"error": str(exc)})
    return None


def run_in_background(
    name: str,
    work: Callable[[], Any],
    on_success: Optional[Callable[[Any], None]] = None,
    on_error: Optional[Callable[[ClassifiedError], None]] = None,
) -> threading.Thread:
    """
    Run ``work`` on a daemon thread and hand its result or error to the
    callbacks. Exactly one callback fires; anything unclassified reaches
    ``on_error`` as an ``UnknownError``.
    """

    def _run():
        try:
            result = work()
        except ClassifiedError as exc:
            error = exc
        except Exception as exc:
            logger.exception("%s failed outside the call pipeline", name)
            error = UnknownError(str(exc) or type(exc).__name__, details={"error_type": type(exc).__name__})
        else:
            if on_success is not None:
                on_success(result)
            return
        if on_error is not None:
            on_error(error)
        else:
            logger.warning("%s failed: %s", name, error.message)

    thread = threading.Thread(target=_run, daemon=True, name=name)
    thread.start()
    return thread


class ContractCallOrchestrator:
    """Run contract calls through simulate, sign, submit and confirm."""

    def __init__(
        self,
        config: OrchestratorConfig,
        node: LedgerNode,
        signer: Signer,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.node = node
        self.signer = signer
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: OrchestratorConfig, signer: Signer) -> "ContractCallOrchestrator":
        return cls(config, SorobanLedgerNode.from_config(config), signer)

    def request(
        self,
        function_name: str,
        values: Any = None,
        caller: Optional[str] = None,
        contract_id: Optional[str] = None,
    ) -> CallRequest:
        return CallRequest.create(contract_id or self.config.contract_id, function_name, values, caller)

    # ── public entry points ──────────────────────────────────────────────────

    def invoke(
        self,
        request: CallRequest,
        observer: ObserverLike = None,
        convert: Optional[Callable[[Any], Any]] = None,
    ) -> CallOutcome:
        """
        Execute ``request`` and return its decoded result.

        ``observer`` is called synchronously on each status transition.
        ``convert`` reshapes the decoded return value before SUCCESS is
        reported. Raises a ``ClassifiedError`` subclass on any failure, after
        the observer has been told FAILED.
        """
        return self.invoke_deferred(request.function_name, lambda: request, observer, convert)

    def invoke_deferred(
        self,
        function_name: str,
        build: Callable[[], CallRequest],
        observer: ObserverLike = None,
        convert: Optional[Callable[[Any], Any]] = None,
    ) -> CallOutcome:
        """
        Like ``invoke``, but builds the request under the same guard, so a
        value that cannot be encoded also ends the call in FAILED.
        """
        tracker = CallTracker(observer)
        try:
            return self._run(build(), tracker, convert)
        except ClassifiedError as exc:
            tracker.fail()
            logger.warning("%s failed: %s (%s)", function_name, exc.message, exc.kind.value)
            raise
        except Exception as exc:
            tracker.fail()
            logger.exception("%s failed with an unclassified error", function_name)
            raise UnknownError(
                str(exc) or type(exc).__name__,
                details={"error_type": type(exc).__name__, "function": function_name},
            ) from exc

    def dispatch(
        self,
        request: CallRequest,
        observer: ObserverLike = None,
        on_success: Optional[Callable[[CallOutcome], None]] = None,
        on_error: Optional[Callable[[ClassifiedError], None]] = None,
    ) -> threading.Thread:
        """Fire-and-forget: run ``invoke`` on a daemon thread."""
        return run_in_background(
            f"soroban-{request.function_name}",
            lambda: self.invoke(request, observer),
            on_success,
            on_error,
        )

    # ── pipeline ─────────────────────────────────────────────────────────────

    def _run(
        self,
        request: CallRequest,
        tracker: CallTracker,
        convert: Optional[Callable[[Any], Any]] = None,
    ) -> CallOutcome:
        if not request.caller or not request.caller.strip():
            raise WalletNotFoundError()

        tracker.advance(TxStatus.PREPARING)
        account = resolve_account(self.node, request.caller)
        envelope = build_invocation(account, request, self.config)
        logger.info(
            "Preparing %s on %s with %d argument(s)",
            request.function_name,
            request.contract_id,
            len(request.arguments),
        )
        prepared = self.node.simulate_and_prepare(envelope)

        tracker.advance(TxStatus.SIGNING)
        signed_xdr = self._sign(prepared, request.caller)

        tracker.advance(TxStatus.SUBMITTING)
        receipt = self.node.submit(signed_xdr)
        if receipt.initial_status in SUBMISSION_ERROR_STATUSES:
            raise SubmissionFailedError(
                transaction_hash=receipt.transaction_hash,
                details={"status": receipt.initial_status, "error_result_xdr": receipt.error_result_xdr},
            )
        logger.info("Transaction sent for %s hash=%s", request.function_name, receipt.transaction_hash)

        tracker.advance(TxStatus.PENDING)
        return self._await_confirmation(receipt, tracker, convert)

    def _sign(self, prepared: PreparedEnvelope, caller: str) -> str:
        try:
            return self.signer.sign(prepared.xdr, caller)
        except ClassifiedError:
            raise
        except Exception as exc:
            rejection = classify_signer_error(exc)
            if rejection is None:
                raise
            raise rejection from exc

    def _await_confirmation(
        self,
        receipt: SubmissionReceipt,
        tracker: CallTracker,
        convert: Optional[Callable[[Any], Any]] = None,
    ) -> CallOutcome:
        tx_hash = receipt.transaction_hash
        attempts = self.config.max_poll_attempts
        for attempt in range(1, attempts + 1):
            polled = self.node.get_transaction_status(tx_hash)
            logger.debug("Poll %d/%d for %s: %s", attempt, attempts, tx_hash, polled.status)

            if polled.status == "SUCCESS":
                value = codec.decode(polled.return_value)
                if convert is not None:
                    value = convert(value)
                tracker.advance(TxStatus.SUCCESS)
                logger.info("Transaction confirmed hash=%s ledger=%s", tx_hash, polled.ledger)
                return CallOutcome(return_value=value, transaction_hash=tx_hash)

            if polled.status == "FAILED":
                raise OnChainFailureError(transaction_hash=tx_hash, details={"ledger": polled.ledger})

            if attempt < attempts:
                self._sleep(self.config.poll_interval_seconds)

        link = explorer_url(tx_hash, self.config.network_passphrase)
        raise ConfirmationTimeoutError(
            f"Transaction {tx_hash} not confirmed after {attempts} checks - please check explorer",
            transaction_hash=tx_hash,
            explorer_url=link,
            attempts=attempts,
        )
