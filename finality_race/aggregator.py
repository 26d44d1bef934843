from .errors import IncompleteRace
from .models import RaceEntry, RaceResult, Status


def aggregate(transactions, records, outcomes):
    """
    Join dispatch records and outcomes per endpoint, keeping the input order.
    Raises IncompleteRace if an endpoint has no outcome or the race produced
    more than one winner.
    """
    entries = []
    for tx, record, outcome in zip(transactions, records, outcomes):
        if outcome is None:
            raise IncompleteRace(f"No outcome recorded for {tx.endpoint.name}")
        entries.append(RaceEntry(transaction=tx, dispatch=record, outcome=outcome))
    if len(entries) != len(transactions):
        raise IncompleteRace(f"Expected {len(transactions)} entries, got {len(entries)}")

    winners = [e for e in entries if e.outcome.status is Status.WINNER_CONFIRMED]
    if len(winners) > 1:
        raise IncompleteRace(f"{len(winners)} endpoints claimed the win")
    return RaceResult(entries)
