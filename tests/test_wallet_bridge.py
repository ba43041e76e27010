"""Tests for the wallet bridge and local signers."""

import pytest
from stellar_sdk import Account, Keypair, TransactionEnvelope

from soroban_orchestrator.exceptions import SignerRejection, ValidationError
from soroban_orchestrator.orchestrator import CallRequest
from soroban_orchestrator.stellar_client import build_invocation
from soroban_orchestrator.wallet_bridge import (
    BridgeSigner,
    KeypairSigner,
    SignOutcome,
    WalletBridgeClient,
    WalletBridgeError,
)


@pytest.fixture
def unsigned_xdr(config, caller):
    request = CallRequest.create(config.contract_id, "send_feedback", "hello", caller)
    return build_invocation(Account(caller, 3), request, config).to_xdr()


class FakeBridgeClient:
    """Stands in for WalletBridgeClient without HTTP."""

    def __init__(self, outcome=None, create_result=None):
        self.outcome = outcome
        self.create_result = create_result if create_result is not None else {"ok": True, "requestId": "req-1"}
        self.created = []

    def create_sign_request(self, **kwargs):
        self.created.append(kwargs)
        return self.create_result

    def wait_for_signed_request(self, request_id, timeout_seconds=120, poll_seconds=1.5):
        return self.outcome


def bridge_signer(client, config):
    return BridgeSigner(client, player_id="p1", network_passphrase=config.network_passphrase, open_browser=False)


class TestKeypairSigner:
    """In-process signing."""

    def test_adds_signature(self, caller_keypair, config, unsigned_xdr):
        signer = KeypairSigner(caller_keypair, config.network_passphrase)

        signed = signer.sign(unsigned_xdr, caller_keypair.public_key)

        envelope = TransactionEnvelope.from_xdr(signed, config.network_passphrase)
        assert len(envelope.signatures) == 1

    def test_refuses_other_address(self, caller_keypair, config, unsigned_xdr):
        signer = KeypairSigner(caller_keypair, config.network_passphrase)

        other = Keypair.random().public_key
        with pytest.raises(ValidationError) as excinfo:
            signer.sign(unsigned_xdr, other)

        assert excinfo.value.field == "signer_address"
        assert excinfo.value.value == other

    def test_from_secret(self, config):
        keypair = Keypair.random()
        signer = KeypairSigner.from_secret(keypair.secret, config.network_passphrase)
        assert signer.address == keypair.public_key


class TestBridgeSigner:
    """Signing through the wallet bridge."""

    def test_signed(self, config, caller, unsigned_xdr):
        client = FakeBridgeClient(SignOutcome("req-1", "signed", signed_xdr="SIGNED", wallet_address=caller))

        assert bridge_signer(client, config).sign(unsigned_xdr, caller) == "SIGNED"
        assert client.created[0]["xdr"] == unsigned_xdr
        assert client.created[0]["metadata"] == {"signer": caller}

    def test_rejected(self, config, caller, unsigned_xdr):
        client = FakeBridgeClient(SignOutcome("req-1", "rejected", error="User declined the request"))

        with pytest.raises(SignerRejection) as excinfo:
            bridge_signer(client, config).sign(unsigned_xdr, caller)

        assert excinfo.value.reason == "rejected"
        assert "declined" in excinfo.value.message

    def test_bridge_timeout(self, config, caller, unsigned_xdr):
        client = FakeBridgeClient(SignOutcome("req-1", "timeout", error="sign_request_timeout"))

        with pytest.raises(WalletBridgeError, match="sign_request_timeout"):
            bridge_signer(client, config).sign(unsigned_xdr, caller)

    def test_request_not_created(self, config, caller, unsigned_xdr):
        client = FakeBridgeClient(create_result={"ok": False})

        with pytest.raises(WalletBridgeError):
            bridge_signer(client, config).sign(unsigned_xdr, caller)


class TestWalletBridgeClient:
    """Request plumbing over HTTP helpers."""

    def test_wait_returns_terminal_request(self, monkeypatch):
        client = WalletBridgeClient("http://127.0.0.1:9999/")
        answers = iter(
            [
                {"ok": True, "request": {"status": "pending"}},
                {"ok": True, "request": {"status": "signed", "signedXdr": "X"}},
            ]
        )
        monkeypatch.setattr(client, "_get", lambda path: next(answers))

        result = client.wait_for_signed_request("r1", timeout_seconds=5, poll_seconds=0)

        assert result.status == "signed"
        assert result.signed_xdr == "X"
        assert client.base_url == "http://127.0.0.1:9999"

    def test_connects_when_needed(self, monkeypatch):
        client = WalletBridgeClient()
        answers = iter([{"ok": True, "connected": False}, {"ok": True, "connected": True, "address": "GX"}])
        posted = []
        monkeypatch.setattr(client, "_get", lambda path: next(answers))
        monkeypatch.setattr(client, "_post", lambda path, payload: posted.append((path, payload)) or {"ok": True})
        signer = BridgeSigner(client, player_id="p1", network_passphrase="p", open_browser=False)

        account = signer.ensure_wallet_connected("Player One")

        assert account["connected"] is True
        assert posted == [("/wallet/connect", {"playerId": "p1", "displayName": "Player One"})]

    def test_already_connected(self, monkeypatch):
        client = WalletBridgeClient()
        monkeypatch.setattr(client, "_get", lambda path: {"ok": True, "connected": True})
        monkeypatch.setattr(client, "_post", lambda path, payload: pytest.fail("should not connect"))
        signer = BridgeSigner(client, player_id="p1", network_passphrase="p", open_browser=False)

        assert signer.ensure_wallet_connected()["connected"] is True

    def test_wait_gives_up_after_deadline(self, monkeypatch):
        client = WalletBridgeClient()
        monkeypatch.setattr(client, "_get", lambda path: {"ok": True, "request": {"status": "pending"}})

        result = client.wait_for_signed_request("r2", timeout_seconds=0, poll_seconds=0)

        assert result == SignOutcome("r2", "timeout", error="sign_request_timeout")

    def test_wait_reports_bridge_error(self, monkeypatch):
        client = WalletBridgeClient()
        monkeypatch.setattr(client, "_get", lambda path: {"ok": False, "error": "request_not_found"})

        result = client.wait_for_signed_request("r3", timeout_seconds=5, poll_seconds=0)

        assert (result.status, result.error) == ("error", "request_not_found")
