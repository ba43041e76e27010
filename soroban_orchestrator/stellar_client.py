"""
stellar_client.py
Ledger side of a Soroban contract call: account lookup, envelope building,
simulation, submission and status queries against a Soroban RPC node.

Prerequisites
-------------
- stellar-sdk >= 13.0  (pip install stellar-sdk)
- SOROBAN_CONTRACT_ID  env var, unless the contract id is passed explicitly.
- SOROBAN_RPC_URL      defaults to https://soroban-testnet.stellar.org
- SOROBAN_NET_PHRASE   defaults to Testnet passphrase.

Flow
----
  1. resolve_account(node, caller) → source Account.
  2. build_invocation(account, request, config) → unsigned envelope.
  3. node.simulate_and_prepare(envelope) → PreparedEnvelope (XDR for signing).
  4. node.submit(signed_xdr) → SubmissionReceipt.
  5. node.get_transaction_status(hash) → PolledTransaction, until terminal.
"""

import logging
import os
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Optional, Protocol

from stellar_sdk import Account, Network, SorobanServer, TransactionBuilder, TransactionEnvelope
from stellar_sdk import xdr as stellar_xdr
from stellar_sdk.exceptions import AccountNotFoundException

from soroban_orchestrator.exceptions import InsufficientBalanceError, ValidationError

if TYPE_CHECKING:
    from soroban_orchestrator.orchestrator import CallRequest

logger = logging.getLogger(__name__)

DEFAULT_RPC_URL = "https://soroban-testnet.stellar.org"
DEFAULT_BASE_FEE = 100
DEFAULT_VALIDITY_SECONDS = 30
DEFAULT_POLL_INTERVAL_SECONDS = 1.0
DEFAULT_MAX_POLL_ATTEMPTS = 15


# ── configuration ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class OrchestratorConfig:
    rpc_url: str
    network_passphrase: str
    contract_id: str
    base_fee: int = DEFAULT_BASE_FEE
    validity_seconds: int = DEFAULT_VALIDITY_SECONDS
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    max_poll_attempts: int = DEFAULT_MAX_POLL_ATTEMPTS

    def __post_init__(self):
        if self.base_fee <= 0:
            raise ValidationError("base_fee must be positive", field="base_fee", value=self.base_fee)
        if self.validity_seconds <= 0:
            raise ValidationError(
                "validity_seconds must be positive", field="validity_seconds", value=self.validity_seconds
            )
        if self.poll_interval_seconds < 0:
            raise ValidationError(
                "poll_interval_seconds cannot be negative",
                field="poll_interval_seconds",
                value=self.poll_interval_seconds,
            )
        if self.max_poll_attempts < 1:
            raise ValidationError(
                "max_poll_attempts must be at least 1", field="max_poll_attempts", value=self.max_poll_attempts
            )

    @classmethod
    def from_env(cls, contract_id: Optional[str] = None) -> "OrchestratorConfig":
        contract_id = (contract_id or os.environ.get("SOROBAN_CONTRACT_ID", "")).strip()
        if not contract_id:
            raise EnvironmentError(
                "SOROBAN_CONTRACT_ID is not set.\n"
                "Deploy the contract first:\n"
                "  stellar contract build\n"
                "  stellar contract deploy --wasm <contract>.wasm --network testnet ...\n"
                "Then export SOROBAN_CONTRACT_ID=<deployed_address>"
            )
        rpc_url = os.environ.get("SOROBAN_RPC_URL", DEFAULT_RPC_URL)
        passphrase = os.environ.get("SOROBAN_NET_PHRASE", Network.TESTNET_NETWORK_PASSPHRASE)
        return cls(
            rpc_url=rpc_url,
            network_passphrase=passphrase,
            contract_id=contract_id,
            base_fee=_env_number("SOROBAN_BASE_FEE", DEFAULT_BASE_FEE, int),
            validity_seconds=_env_number("SOROBAN_TX_TIMEOUT", DEFAULT_VALIDITY_SECONDS, int),
            poll_interval_seconds=_env_number("SOROBAN_POLL_INTERVAL", DEFAULT_POLL_INTERVAL_SECONDS, float),
            max_poll_attempts=_env_number("SOROBAN_MAX_POLLS", DEFAULT_MAX_POLL_ATTEMPTS, int),
        )

    def with_contract(self, contract_id: str) -> "OrchestratorConfig":
        """Return a copy of this configuration bound to another contract."""
        return replace(self, contract_id=contract_id)


def _env_number(name: str, default, cast):
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ValidationError(f"{name} must be a number, got {raw!r}", field=name, value=raw) from exc


# ── ledger data ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PreparedEnvelope:
    xdr: str
    network_passphrase: str


@dataclass(frozen=True)
class SubmissionReceipt:
    transaction_hash: str
    initial_status: str
    error_result_xdr: Optional[str] = None


@dataclass(frozen=True)
class PolledTransaction:
    status: str
    return_value: Optional[stellar_xdr.SCVal] = None
    ledger: Optional[int] = None


class LedgerNode(Protocol):
    def get_account(self, address: str) -> Account:
        ...

    def simulate_and_prepare(self, envelope: TransactionEnvelope) -> PreparedEnvelope:
        ...

    def submit(self, signed_xdr: str) -> SubmissionReceipt:
        ...

    def get_transaction_status(self, transaction_hash: str) -> PolledTransaction:
        ...


# ── client ───────────────────────────────────────────────────────────────────

def _status_value(status) -> str:
    return status.value if hasattr(status, "value") else str(status)


class SorobanLedgerNode:
    """
    LedgerNode backed by a Soroban RPC server.

    One instance may be shared by concurrent calls; it holds no per-call state.
    """

    def __init__(self, rpc_url: str, network_passphrase: str, server: Optional[SorobanServer] = None):
        self.rpc_url = rpc_url
        self.network_passphrase = network_passphrase
        self._server = server or SorobanServer(rpc_url)

    @classmethod
    def from_config(cls, config: OrchestratorConfig) -> "SorobanLedgerNode":
        return cls(config.rpc_url, config.network_passphrase)

    def get_account(self, address: str) -> Account:
        return self._server.load_account(address)

    def simulate_and_prepare(self, envelope: TransactionEnvelope) -> PreparedEnvelope:
        """Simulate, attach the footprint and resource fee, return sign-ready XDR."""
        prepared = self._server.prepare_transaction(envelope)
        return PreparedEnvelope(xdr=prepared.to_xdr(), network_passphrase=self.network_passphrase)

    def submit(self, signed_xdr: str) -> SubmissionReceipt:
        """
        Broadcast a wallet-signed transaction XDR to the Stellar network.
        """
        tx = TransactionEnvelope.from_xdr(signed_xdr, network_passphrase=self.network_passphrase)
        response = self._server.send_transaction(tx)
        return SubmissionReceipt(
            transaction_hash=response.hash,
            initial_status=_status_value(response.status),
            error_result_xdr=response.error_result_xdr,
        )

    def get_transaction_status(self, transaction_hash: str) -> PolledTransaction:
        response = self._server.get_transaction(transaction_hash)
        status = _status_value(response.status)
        return_value = _extract_return_value(response) if status == "SUCCESS" else None
        return PolledTransaction(status=status, return_value=return_value, ledger=response.ledger)


def _extract_return_value(response) -> Optional[stellar_xdr.SCVal]:
    """Pull the contract return value out of a getTransaction response."""
    raw = getattr(response, "return_value", None)
    if raw:
        return stellar_xdr.SCVal.from_xdr(raw)
    if not response.result_meta_xdr:
        return None
    meta = stellar_xdr.TransactionMeta.from_xdr(response.result_meta_xdr)
    for version in ("v4", "v3"):
        body = getattr(meta, version, None)
        soroban_meta = getattr(body, "soroban_meta", None) if body is not None else None
        if soroban_meta is not None:
            return soroban_meta.return_value
    return None


# ── pipeline steps ───────────────────────────────────────────────────────────

def resolve_account(node: LedgerNode, caller: str) -> Account:
    """
    Load the caller's account. A missing account is reported as an
    unfunded one: testnet accounts only exist once funded.
    """
    if not isinstance(caller, str) or not caller.strip():
        raise ValidationError("caller address is required", field="caller", value=caller)
    try:
        return node.get_account(caller)
    except AccountNotFoundException as exc:
        raise InsufficientBalanceError(
            "Account not funded on testnet", details={"caller": caller, "error": str(exc)}
        ) from exc
    except Exception as exc:
        if "not found" in str(exc).lower():
            raise InsufficientBalanceError(
                "Account not funded on testnet", details={"caller": caller, "error": str(exc)}
            ) from exc
        raise


def build_invocation(account: Account, request: "CallRequest", config: OrchestratorConfig) -> TransactionEnvelope:
    """Assemble an unsigned envelope with one invoke-contract operation."""
    return (
        TransactionBuilder(
            source_account=account,
            network_passphrase=config.network_passphrase,
            base_fee=config.base_fee,
        )
        .append_invoke_contract_function_op(
            contract_id=request.contract_id,
            function_name=request.function_name,
            parameters=list(request.arguments),
        )
        .set_timeout(config.validity_seconds)
        .build()
    )
