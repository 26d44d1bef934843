import threading
import time

import pytest
from hexbytes import HexBytes

from finality_race.models import CONFIRMED, REJECTED, WATCH_TIMED_OUT, ConflictingTransaction, Endpoint, WatchResult
from finality_race.errors import SubmissionError

SENDER = "0x19E7E376E7C213B7E7e7e46cc70A5dD086DAff2A"


def make_transactions(labels, nonce=7):
    txs = []
    for i, label in enumerate(labels):
        endpoint = Endpoint(url=f"http://{label.lower()}.test:8545", label=label)
        txs.append(ConflictingTransaction(
            endpoint=endpoint,
            index=i,
            params={"nonce": nonce, "value": 1000 - i},
            raw=HexBytes(bytes([i + 1]) * 8),
            signature="0x" + f"{i + 1:02x}" * 32,
            sender=SENDER,
            nonce=nonce,
            amount_wei=1000 - i,
        ))
    return txs


class FakeSession:
    """
    Scripted endpoint. `watch` is one of:
      ("confirm", delay)        confirmed `delay` seconds after the send
      ("reject", code, delay)   rejected with `code`
      ("silent",)               never resolves; honours the deadline
      ("hang", seconds)         ignores the deadline, only the cancel event stops it
      ("crash",)                raises out of the worker
    """

    def __init__(self, endpoint, setup_delay=0.0, setup_error=None, submit_error=None, watch=("confirm", 0.01)):
        self.endpoint = endpoint
        self.setup_delay = setup_delay
        self.setup_error = setup_error
        self.submit_error = submit_error
        self.watch_plan = watch
        self.submitted_at = None
        self.closed = False

    def warm_up(self):
        time.sleep(self.setup_delay)
        if self.setup_error:
            raise self.setup_error

    def submit(self, tx):
        self.submitted_at = time.perf_counter()
        if self.submit_error:
            raise SubmissionError(self.endpoint.name, self.submit_error)
        return tx.signature

    def watch(self, tx, deadline, cancelled):
        plan = self.watch_plan
        if plan[0] == "confirm":
            cancelled.wait(plan[1])
            return WatchResult(CONFIRMED, time.perf_counter(), block_number=100)
        if plan[0] == "reject":
            cancelled.wait(plan[2])
            return WatchResult(REJECTED, time.perf_counter(), code=plan[1])
        if plan[0] == "crash":
            raise RuntimeError("watcher blew up")
        if plan[0] == "silent":
            cancelled.wait(max(0.0, deadline - time.perf_counter()))
            return WatchResult(WATCH_TIMED_OUT, time.perf_counter())
        cancelled.wait(plan[1])
        return WatchResult(CONFIRMED, time.perf_counter())

    def close(self):
        self.closed = True


class FakeNetwork:
    """Maps endpoint labels to FakeSession kwargs; acts as the session factory."""

    def __init__(self, **plans):
        self.plans = plans
        self.sessions = {}
        self._lock = threading.Lock()

    def __call__(self, endpoint):
        session = FakeSession(endpoint, **self.plans.get(endpoint.label, {}))
        with self._lock:
            self.sessions[endpoint.label] = session
        return session


@pytest.fixture
def transactions():
    return make_transactions


@pytest.fixture
def network():
    return FakeNetwork
