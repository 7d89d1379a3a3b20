"""Command line front end for a running xmr-bridge."""

from __future__ import annotations

import argparse
import json
import os
import sys
from dataclasses import asdict, is_dataclass
from typing import Any

from wallet_client.bridge_client import BridgeClient, BridgeRequestError, TxStatus
from wallet_client.intent import parse_payment_intent


def _print(obj: Any) -> None:
    if is_dataclass(obj):
        obj = asdict(obj)
    print(json.dumps(obj, indent=2, sort_keys=True))


def _cmd_send(client: BridgeClient, args: argparse.Namespace) -> int:
    estimate = client.estimate(args.address, args.amount)
    print(f"fee ~ {estimate.fee_xmr:.12f} XMR", file=sys.stderr)
    if not args.yes:
        answer = input(f"Send {args.amount} XMR to {args.address[:12]}...? [y/N] ").strip().lower()
        if answer not in {"y", "yes"}:
            print("aborted", file=sys.stderr)
            return 1

    if estimate.tx_metadata:
        sent = client.relay(estimate.tx_metadata)
    else:
        sent = client.transfer(args.address, args.amount)
    print(f"sent {sent.txid}", file=sys.stderr)
    if args.no_wait:
        _print(sent)
        return 0

    def _report(status: TxStatus) -> None:
        where = "in pool" if status.in_pool else f"{status.confirmations} confirmation(s)"
        print(f"  {sent.txid[:12]}... {where}", file=sys.stderr)

    status = client.wait_for_confirmation(
        sent.txid,
        min_confirmations=args.confirmations,
        poll_interval_s=args.poll_interval,
        timeout_s=args.timeout,
        on_update=_report,
    )
    _print(status)
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(add_help=True, description=__doc__)
    parser.add_argument(
        "--bridge-url",
        default=os.getenv("XMR_BRIDGE_URL", "http://127.0.0.1:8787"),
    )
    parser.add_argument("--api-key", default=os.getenv("XMR_BRIDGE_KEY") or None)
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("health")

    p = sub.add_parser("address", help="Create a receiving subaddress.")
    p.add_argument("--label", default="")

    p = sub.add_parser("estimate")
    p.add_argument("address")
    p.add_argument("amount", type=float)

    p = sub.add_parser("send", help="Estimate, confirm, relay and wait for confirmations.")
    p.add_argument("address")
    p.add_argument("amount", type=float)
    p.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation.")
    p.add_argument("--no-wait", action="store_true")
    p.add_argument("--confirmations", type=int, default=1)
    p.add_argument("--poll-interval", type=float, default=5.0)
    p.add_argument("--timeout", type=float, default=None)

    p = sub.add_parser("status")
    p.add_argument("txid")

    p = sub.add_parser("proof")
    p.add_argument("txid")
    p.add_argument("address")
    p.add_argument("--message", default=None)

    p = sub.add_parser("verify")
    p.add_argument("txid")
    p.add_argument("address")
    p.add_argument("signature")
    p.add_argument("--message", default=None)

    p = sub.add_parser("detect", help="Look for a payment request in free text (offline).")
    p.add_argument("text", nargs="+")

    args = parser.parse_args()

    if args.command == "detect":
        intent = parse_payment_intent(" ".join(args.text))
        if intent is None:
            print("no payment request found", file=sys.stderr)
            return 1
        _print(intent)
        return 0

    client = BridgeClient(args.bridge_url, api_key=args.api_key)
    try:
        if args.command == "health":
            _print(client.health())
        elif args.command == "address":
            _print(client.create_address(args.label))
        elif args.command == "estimate":
            _print(client.estimate(args.address, args.amount))
        elif args.command == "send":
            return _cmd_send(client, args)
        elif args.command == "status":
            _print(client.tx_status(args.txid))
        elif args.command == "proof":
            _print(client.create_proof(args.txid, args.address, args.message))
        elif args.command == "verify":
            _print(client.verify_proof(args.txid, args.address, args.signature, args.message))
    except BridgeRequestError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    except TimeoutError as e:
        print(f"error: {e}", file=sys.stderr)
        return 3
    return 0


if __name__ == "__main__":
    sys.exit(main())
