"""
Console summary and JSON run record for a finished race.
"""

import json
from pathlib import Path

from web3 import Web3

DEFAULT_RECORD_PATH = Path("artifacts") / "run-record.json"


def _ms(value):
    return None if value is None else round(value, 3)


def result_to_dict(result):
    winner = result.winner
    return {
        "winner": winner.outcome.endpoint.name if winner else None,
        "entries": [
            {
                "endpoint": e.transaction.endpoint.url,
                "label": e.transaction.endpoint.label,
                "kind": e.transaction.endpoint.kind,
                "signature": e.transaction.signature,
                "amount_wei": str(e.transaction.amount_wei),
                "nonce": e.transaction.nonce,
                "status": e.outcome.status.value,
                "sent_ms": _ms(e.dispatch.sent_duration_ms) if e.dispatch else None,
                "confirm_ms": _ms(e.outcome.confirm_duration_ms),
                "block_number": e.outcome.block_number,
                "error": e.outcome.error,
            }
            for e in result.entries
        ],
    }


def write_run_record(result, path=DEFAULT_RECORD_PATH, extra=None):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    record = result_to_dict(result)
    if extra:
        record.update(extra)
    with open(path, "w") as fh:
        json.dump(record, fh, indent=2)
    return path


def print_summary(result):
    winner = result.winner
    if winner:
        o = winner.outcome
        print("\n--- Race complete: winner found ---")
        print(f"Fastest transaction: {o.signature}")
        print(f"Winning endpoint:    {o.endpoint.name}")
        print(f"Amount sent:         {Web3.from_wei(winner.transaction.amount_wei, 'ether')} ETH")
        print(f"Send -> confirmed:   {o.confirm_duration_ms:.0f} ms (block {o.block_number})")
    else:
        print("\n--- Race complete: no winner ---")

    print("\nPer-endpoint results (input order):")
    for e in result.entries:
        sent = f"{e.dispatch.sent_duration_ms:.0f}ms" if e.dispatch else "-"
        line = f"  - {e.outcome.endpoint.name}: {e.outcome.status.value}, sent {sent}"
        if e.outcome.confirm_duration_ms is not None:
            line += f", confirmed {e.outcome.confirm_duration_ms:.0f}ms"
        if e.outcome.error:
            line += f", error: {e.outcome.error}"
        print(line)
