from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from hexbytes import HexBytes


class Status(str, Enum):
    WINNER_CONFIRMED = "WinnerConfirmed"
    LOSER_CONFIRMED = "LoserConfirmed"
    ONCHAIN_REJECTED = "OnChainRejected"
    SUBMISSION_FAILED = "SubmissionFailed"
    TIMED_OUT = "TimedOut"


# WatchResult kinds
CONFIRMED = "confirmed"
REJECTED = "rejected"
WATCH_TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class Endpoint:
    url: str
    label: str = ""
    kind: str = "rpc"  # "rpc" or "relay"
    watch_url: Optional[str] = None  # relays cannot answer receipt queries

    @property
    def name(self) -> str:
        return self.label or self.url


@dataclass(frozen=True)
class ConflictingTransaction:
    endpoint: Endpoint
    index: int
    params: dict
    raw: HexBytes
    signature: str
    sender: str
    nonce: int
    amount_wei: int


@dataclass(frozen=True)
class WatchResult:
    kind: str
    observed_at: float
    code: Optional[str] = None
    block_number: Optional[int] = None


@dataclass(frozen=True)
class DispatchRecord:
    endpoint: Endpoint
    signature: str
    send_start: float
    send_complete: float

    @property
    def sent_duration(self) -> float:
        return self.send_complete - self.send_start

    @property
    def sent_duration_ms(self) -> float:
        return self.sent_duration * 1000.0


@dataclass(frozen=True)
class RaceOutcome:
    endpoint: Endpoint
    signature: str
    status: Status
    confirm_duration: Optional[float] = None
    error: Optional[str] = None
    block_number: Optional[int] = None

    @property
    def confirm_duration_ms(self) -> Optional[float]:
        if self.confirm_duration is None:
            return None
        return self.confirm_duration * 1000.0

    @property
    def is_winner(self) -> bool:
        return self.status is Status.WINNER_CONFIRMED


@dataclass(frozen=True)
class RaceEntry:
    transaction: ConflictingTransaction
    dispatch: Optional[DispatchRecord]  # None when the endpoint never got released
    outcome: RaceOutcome


@dataclass
class RaceResult:
    entries: list[RaceEntry] = field(default_factory=list)

    @property
    def winner(self) -> Optional[RaceEntry]:
        for entry in self.entries:
            if entry.outcome.is_winner:
                return entry
        return None

    def by_status(self, status: Status) -> list[RaceEntry]:
        return [e for e in self.entries if e.outcome.status is status]
