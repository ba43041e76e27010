"""
wallet_bridge.py
Out-of-process transaction signers.

``BridgeSigner`` hands the prepared XDR to the local wallet bridge, which
opens the signer page in a browser and waits for the wallet (e.g. Freighter)
to sign or reject it. ``KeypairSigner`` signs in-process with a secret key
for scripts and headless use.
"""

import json
import logging
import time
import webbrowser
from dataclasses import dataclass
from typing import Optional, Protocol
from urllib import request

from stellar_sdk import Keypair, TransactionEnvelope

from soroban_orchestrator.exceptions import SignerRejection, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_BRIDGE_URL = "http://127.0.0.1:8787"


class Signer(Protocol):
    def sign(self, envelope_xdr: str, signer_address: str) -> str:
        """Return the signed envelope XDR, or raise ``SignerRejection``."""
        ...


class WalletBridgeError(Exception):
    """Raised when the wallet bridge cannot produce a signature."""


class WalletBridgeClient:
    def __init__(self, base_url=DEFAULT_BRIDGE_URL):
        self.base_url = base_url.rstrip("/")

    def _get(self, path):
        url = f"{self.base_url}{path}"
        req = request.Request(url, method="GET")
        with request.urlopen(req, timeout=5) as resp:
            return json.loads(resp.read().decode("utf-8"))

    def _post(self, path, payload):
        url = f"{self.base_url}{path}"
        body = json.dumps(payload).encode("utf-8")
        req = request.Request(
            url,
            data=body,
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        with request.urlopen(req, timeout=10) as resp:
            return json.loads(resp.read().decode("utf-8"))

    def get_account_for_player(self, player_id):
        return self._get(f"/wallet/account?playerId={player_id}")

    def connect_player(self, player_id, display_name=None, open_browser=True):
        payload = {"playerId": player_id, "displayName": display_name}
        response = self._post("/wallet/connect", payload)
        if open_browser and response.get("connectUrl"):
            webbrowser.open(response["connectUrl"])
        return response

    def create_sign_request(self, player_id, action, xdr, network_passphrase, metadata=None, open_browser=True):
        response = self._post(
            "/tx/request",
            {
                "playerId": player_id,
                "action": action,
                "xdr": xdr,
                "networkPassphrase": network_passphrase,
                "metadata": metadata or {},
            },
        )
        if open_browser and response.get("signerUrl"):
            webbrowser.open(response["signerUrl"])
        return response

    def get_sign_request(self, request_id):
        return self._get(f"/tx/request/{request_id}")

    def wait_for_signed_request(self, request_id, timeout_seconds=120, poll_seconds=1.5) -> "SignOutcome":
        """Poll the bridge until the wallet signs or rejects, or the deadline passes."""
        deadline = time.monotonic() + timeout_seconds
        while True:
            payload = self.get_sign_request(request_id)
            if not payload.get("ok"):
                return SignOutcome(request_id, "error", error=payload.get("error", "unknown"))
            entry = payload["request"]
            status = entry.get("status")
            if status in {"signed", "rejected"}:
                return SignOutcome(
                    request_id,
                    status,
                    signed_xdr=entry.get("signedXdr"),
                    error=entry.get("error"),
                    wallet_address=entry.get("walletAddress"),
                )
            if time.monotonic() >= deadline:
                return SignOutcome(request_id, "timeout", error="sign_request_timeout")
            time.sleep(poll_seconds)


@dataclass(frozen=True)
class SignOutcome:
    """Where a sign request ended: signed, rejected, timeout or error."""

    request_id: str
    status: str
    signed_xdr: Optional[str] = None
    error: Optional[str] = None
    wallet_address: Optional[str] = None


class BridgeSigner:
    """
    Signer that delegates to the wallet bridge.

    The bridge's own request timeout is the only bound on how long the human
    may take; the orchestrator adds none.
    """

    def __init__(
        self,
        client: WalletBridgeClient,
        player_id: str,
        network_passphrase: str,
        action: str = "contract_call",
        timeout_seconds: float = 120,
        open_browser: bool = True,
    ):
        self.client = client
        self.player_id = player_id
        self.network_passphrase = network_passphrase
        self.action = action
        self.timeout_seconds = timeout_seconds
        self.open_browser = open_browser

    def ensure_wallet_connected(self, display_name: Optional[str] = None) -> dict:
        account = self.client.get_account_for_player(self.player_id)
        if account.get("connected"):
            return account
        self.client.connect_player(self.player_id, display_name, open_browser=self.open_browser)
        return self.client.get_account_for_player(self.player_id)

    def sign(self, envelope_xdr: str, signer_address: str) -> str:
        req = self.client.create_sign_request(
            player_id=self.player_id,
            action=self.action,
            xdr=envelope_xdr,
            network_passphrase=self.network_passphrase,
            metadata={"signer": signer_address},
            open_browser=self.open_browser,
        )
        request_id = req.get("requestId")
        if not request_id:
            raise WalletBridgeError(f"failed_to_create_sign_request: {req}")
        logger.info("Sign request %s created for %s", request_id, signer_address)

        outcome = self.client.wait_for_signed_request(request_id, timeout_seconds=self.timeout_seconds)
        if outcome.status == "rejected":
            raise SignerRejection(outcome.error or "User declined the request", reason="rejected")
        if outcome.status != "signed" or not outcome.signed_xdr:
            raise WalletBridgeError(outcome.error or "not_signed")
        return outcome.signed_xdr


class KeypairSigner:
    """Signer holding a secret key in-process."""

    def __init__(self, keypair: Keypair, network_passphrase: str):
        self.keypair = keypair
        self.network_passphrase = network_passphrase

    @classmethod
    def from_secret(cls, secret: str, network_passphrase: str) -> "KeypairSigner":
        return cls(Keypair.from_secret(secret), network_passphrase)

    @property
    def address(self) -> str:
        return self.keypair.public_key

    def sign(self, envelope_xdr: str, signer_address: str) -> str:
        if signer_address != self.keypair.public_key:
            raise ValidationError(
                f"key for {self.keypair.public_key} cannot sign for {signer_address}",
                field="signer_address",
                value=signer_address,
            )
        envelope = TransactionEnvelope.from_xdr(envelope_xdr, network_passphrase=self.network_passphrase)
        envelope.sign(self.keypair)
        return envelope.to_xdr()
