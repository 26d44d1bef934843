#!/usr/bin/env python3
"""
finality-race: which endpoint gets a transaction to finality first?

Loads the config, picks sender/recipient, builds one conflicting transfer per
endpoint (same nonce, decreasing amounts), releases them together and reports
which one confirmed first.

Run:
 finality-race --config config.json
 finality-race --dry-run        # simulate only, nothing is broadcast
"""

import argparse
import logging
import os
import sys

import requests
from web3.exceptions import Web3Exception

from . import __version__
from .accounts import resolve_accounts
from .builder import LocalSigner, build_conflict_set
from .chain import make_web3, read_chain_state
from .config import DEFAULT_CONFIG_PATH, RaceConfig
from .engine import RaceSettings, run_race
from .errors import ChainReadError, RaceError
from .report import DEFAULT_RECORD_PATH, print_summary, write_run_record
from .session import session_factory
from .simulate import simulate_transactions


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="finality-race", description=__doc__.strip().splitlines()[0])
    parser.add_argument("-c", "--config", default=os.environ.get("RACE_CONFIG", DEFAULT_CONFIG_PATH),
                        help="path to the JSON config file")
    parser.add_argument("--dry-run", action="store_true",
                        help="construct and simulate the transactions without sending them")
    parser.add_argument("--record", default=str(DEFAULT_RECORD_PATH), help="where to write the JSON run record")
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def read_setup(w3, conf):
    """Sender, recipient and the sender's chain state, read from rpc_urls[0]."""
    try:
        sender, recipient = resolve_accounts(w3, conf)
        state = read_chain_state(w3, sender.address, conf.chain_id, conf.priority_gwei)
    except (requests.exceptions.RequestException, Web3Exception, ValueError) as e:
        # web3 raises ValueError for JSON-RPC error responses
        raise ChainReadError(conf.rpc_urls[0], e) from e
    return sender, recipient, state


def run_dry(transactions, conf):
    print("\n--- DRY-RUN: simulating transactions ---")
    attempts = simulate_transactions(transactions, conf.request_timeout, conf.poa)
    succeeded = 0
    for i, a in enumerate(attempts):
        if a.ok:
            succeeded += 1
            print(f"  Sim {i}: {a.endpoint.name} -> SUCCEEDED, gas {a.gas_estimate} ({a.duration_ms:.0f}ms)")
        else:
            print(f"  Sim {i}: {a.endpoint.name} -> FAILED: {a.error} ({a.duration_ms:.0f}ms)")
    print(f"Dry-run finished: {succeeded} succeeded, {len(attempts) - succeeded} failed.")


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s",
    )

    print("finality-race initializing...")
    if args.dry_run:
        print("*** DRY-RUN MODE ENABLED ***")

    try:
        conf = RaceConfig.load(args.config)
        endpoints = conf.endpoints()
        print(f"Loaded {args.config}: {len(endpoints)} endpoints")

        w3 = make_web3(conf.rpc_urls[0], conf.request_timeout, conf.poa)
        sender, recipient, state = read_setup(w3, conf)
        print("Sender:", sender.address, "balance:", sender.balance)
        print("Recipient:", recipient.address)

        transactions = build_conflict_set(
            LocalSigner(sender.account), recipient.address, endpoints, state, conf.gas_limit
        )
        print(f"Constructed {len(transactions)} conflicting transactions at nonce {state.nonce}:")
        for tx in transactions:
            print(f"  Tx {tx.index}: {tx.signature} amount {tx.amount_wei} wei -> {tx.endpoint.name}")

        if args.dry_run:
            run_dry(transactions, conf)
            return 0

        print("\n--- LIVE RUN: racing transactions ---")
        result = run_race(transactions, session_factory(conf), RaceSettings.from_config(conf))
    except RaceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print_summary(result)
    path = write_run_record(result, args.record, extra={"sender": sender.address, "recipient": recipient.address})
    print(f"\nRun complete. Saved {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
