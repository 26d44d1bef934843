"""
Dispatch worker: one thread per endpoint.

warm up -> arrive at barrier -> wait for own release -> submit -> publish
DispatchRecord -> watch -> settle RaceOutcome.
"""

import logging
import threading
import time

from .barrier import ABORT
from .confirmation import SETUP_TIMEOUT, classify
from .errors import SubmissionError
from .models import DispatchRecord, RaceOutcome, Status

logger = logging.getLogger(__name__)


class Board:
    """
    Per-endpoint result slots. Each slot is written at most once; the engine
    uses settle() to force TimedOut on stragglers, and whichever write lands
    first stands.
    """

    def __init__(self, size):
        self.records = [None] * size
        self.outcomes = [None] * size
        self._lock = threading.Lock()

    def publish(self, index, record):
        self.records[index] = record

    def settle(self, index, outcome):
        with self._lock:
            if self.outcomes[index] is not None:
                return False
            self.outcomes[index] = outcome
            return True


def failed(tx, error):
    return RaceOutcome(tx.endpoint, tx.signature, Status.SUBMISSION_FAILED, error=error)


class DispatchWorker:
    def __init__(self, tx, make_session, barrier, winner, board, cancelled, release_timeout):
        self.tx = tx
        self.make_session = make_session
        self.barrier = barrier
        self.winner = winner
        self.board = board
        self.cancelled = cancelled
        self.release_timeout = release_timeout

    def run(self):
        tx = self.tx
        session = None
        try:
            try:
                session = self.make_session(tx.endpoint)
                session.warm_up()
            except Exception as e:
                logger.error("Warm-up for %s failed: %s", tx.endpoint.name, e)
                self.barrier.arrive(tx.index, ready=False)
                self.board.settle(tx.index, failed(tx, f"SetupError: {e}"))
                return

            self.barrier.arrive(tx.index)
            deadline = self.barrier.await_release(tx.index, self.release_timeout)
            if deadline is ABORT:
                self.board.settle(tx.index, failed(tx, SETUP_TIMEOUT))
                return

            send_start = time.perf_counter()
            try:
                session.submit(tx)
                error = None
            except SubmissionError as e:
                error = e
            send_complete = time.perf_counter()

            record = DispatchRecord(tx.endpoint, tx.signature, send_start, send_complete)
            self.board.publish(tx.index, record)
            if error is not None:
                logger.error("%s. Time: %.0fms", error, record.sent_duration_ms)
                self.board.settle(tx.index, failed(tx, str(error.cause)))
                return
            logger.info("Sent %s via %s in %.0fms", tx.signature, tx.endpoint.name, record.sent_duration_ms)

            result = session.watch(tx, deadline, self.cancelled)
            self.board.settle(tx.index, classify(tx, record, result, self.winner, deadline))
        finally:
            if session is not None:
                session.close()
