"""Shared fixtures: a scripted ledger node, signers and a zero-wait config."""

from dataclasses import replace

import pytest
from stellar_sdk import Account, Keypair, Network, TransactionEnvelope

from soroban_orchestrator.feedback import FEEDBACK_CONTRACT_ID
from soroban_orchestrator.orchestrator import ContractCallOrchestrator
from soroban_orchestrator.stellar_client import (
    OrchestratorConfig,
    PolledTransaction,
    PreparedEnvelope,
    SubmissionReceipt,
)
from soroban_orchestrator.wallet_bridge import KeypairSigner

TX_HASH = "ab" * 32


class FakeLedgerNode:
    """LedgerNode that answers from a script instead of an RPC server."""

    def __init__(
        self,
        poll_statuses=("SUCCESS",),
        return_value=None,
        submit_status="PENDING",
        account_error=None,
        prepare_error=None,
    ):
        self.poll_statuses = list(poll_statuses)
        self.return_value = return_value
        self.submit_status = submit_status
        self.account_error = account_error
        self.prepare_error = prepare_error
        self.account_lookups = []
        self.simulated = []
        self.submitted = []
        self.poll_count = 0

    def get_account(self, address):
        self.account_lookups.append(address)
        if self.account_error is not None:
            raise self.account_error
        return Account(address, 1)

    def simulate_and_prepare(self, envelope: TransactionEnvelope):
        self.simulated.append(envelope)
        if self.prepare_error is not None:
            raise self.prepare_error
        return PreparedEnvelope(xdr=envelope.to_xdr(), network_passphrase=envelope.network_passphrase)

    def submit(self, signed_xdr):
        self.submitted.append(signed_xdr)
        return SubmissionReceipt(transaction_hash=TX_HASH, initial_status=self.submit_status)

    def get_transaction_status(self, transaction_hash):
        self.poll_count += 1
        index = min(self.poll_count, len(self.poll_statuses)) - 1
        status = self.poll_statuses[index]
        return_value = self.return_value if status == "SUCCESS" else None
        return PolledTransaction(status=status, return_value=return_value, ledger=1000 + self.poll_count)


class RaisingSigner:
    def __init__(self, error):
        self.error = error
        self.calls = 0

    def sign(self, envelope_xdr, signer_address):
        self.calls += 1
        raise self.error


@pytest.fixture
def caller_keypair():
    return Keypair.random()


@pytest.fixture
def caller(caller_keypair):
    return caller_keypair.public_key


@pytest.fixture
def config():
    return OrchestratorConfig(
        rpc_url="http://localhost:8000/soroban/rpc",
        network_passphrase=Network.TESTNET_NETWORK_PASSPHRASE,
        contract_id=FEEDBACK_CONTRACT_ID,
        poll_interval_seconds=0,
    )


@pytest.fixture
def signer(caller_keypair, config):
    return KeypairSigner(caller_keypair, config.network_passphrase)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_orchestrator(config, signer, sleeps):
    def _make(node, signer_override=None, **config_overrides):
        cfg = config
        if config_overrides:
            cfg = replace(config, **config_overrides)
        return ContractCallOrchestrator(cfg, node, signer_override or signer, sleep=sleeps.append)

    return _make
