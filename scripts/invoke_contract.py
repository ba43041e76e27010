"""
Invoke one Soroban contract function from the command line.

    python scripts/invoke_contract.py --contract C... --function get_total_count \
        --caller G... --secret S...
    python scripts/invoke_contract.py --function send_feedback --arg string:hello \
        --caller G... --bridge-url http://127.0.0.1:8787

Without --secret the prepared XDR is signed through the local wallet bridge.
Contract, RPC URL and network fall back to the SOROBAN_* environment variables.
"""

import argparse
import logging
import sys

from soroban_orchestrator import codec
from soroban_orchestrator.codec import SUPPORTED_TYPES
from soroban_orchestrator.exceptions import ClassifiedError, ValidationError
from soroban_orchestrator.orchestrator import ContractCallOrchestrator
from soroban_orchestrator.status import LoggingObserver, describe_error, explorer_url
from soroban_orchestrator.stellar_client import OrchestratorConfig
from soroban_orchestrator.wallet_bridge import DEFAULT_BRIDGE_URL, BridgeSigner, KeypairSigner, WalletBridgeClient


def parse_argument(raw: str):
    """``u64:7`` → (7, "u64"); untyped values are strings."""
    type_name, sep, text = raw.partition(":")
    if not sep or type_name not in SUPPORTED_TYPES:
        return raw, "string"
    if type_name in {"u32", "i32", "u64", "i64", "u128", "i128"}:
        return int(text), type_name
    if type_name == "bool":
        return text.lower() in {"1", "true", "yes"}, type_name
    if type_name == "bytes":
        return bytes.fromhex(text), type_name
    return text, type_name


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Invoke a Soroban contract function")
    parser.add_argument("--contract", help="contract id (defaults to SOROBAN_CONTRACT_ID)")
    parser.add_argument("--function", required=True, help="contract function name")
    parser.add_argument("--arg", action="append", default=[], help="TYPE:VALUE, repeatable, in order")
    parser.add_argument("--caller", required=True, help="G... address of the calling account")
    parser.add_argument("--secret", help="sign locally with this secret key instead of the wallet bridge")
    parser.add_argument("--bridge-url", default=DEFAULT_BRIDGE_URL)
    parser.add_argument("--player-id", default="cli", help="wallet bridge session id")
    parser.add_argument("--verbose", action="store_true")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = OrchestratorConfig.from_env(contract_id=args.contract)
    except (EnvironmentError, ValidationError) as exc:
        print(f"configuration error: {exc}", file=sys.stderr)
        return 2

    try:
        typed = [parse_argument(raw) for raw in args.arg]
    except ValueError as exc:
        print(f"invalid --arg: {exc}", file=sys.stderr)
        return 2

    if args.secret:
        signer = KeypairSigner.from_secret(args.secret, config.network_passphrase)
    else:
        signer = BridgeSigner(
            WalletBridgeClient(args.bridge_url),
            player_id=args.player_id,
            network_passphrase=config.network_passphrase,
            action=args.function,
        )
        try:
            account = signer.ensure_wallet_connected()
        except OSError as exc:
            print(f"wallet bridge unreachable at {args.bridge_url}: {exc}", file=sys.stderr)
            return 2
        if not account.get("connected"):
            print("wallet not connected yet; approve the connection in the browser", file=sys.stderr)

    orchestrator = ContractCallOrchestrator.from_config(config, signer)
    try:
        outcome = orchestrator.invoke_deferred(
            args.function,
            lambda: orchestrator.request(
                args.function,
                [codec.encode(value, type_name) for value, type_name in typed],
                caller=args.caller,
            ),
            LoggingObserver(args.function),
        )
    except ClassifiedError as exc:
        report = describe_error(exc)
        print(f"[{report.severity.value}] {report.kind.value}: {report.message}", file=sys.stderr)
        return 1

    print("Result:", outcome.return_value)
    print("Hash:  ", outcome.transaction_hash)
    print("Link:  ", explorer_url(outcome.transaction_hash, config.network_passphrase))
    return 0


if __name__ == "__main__":
    sys.exit(main())
