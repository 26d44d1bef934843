"""
Confirmation race: receipt polling per endpoint, a single-assignment winner
cell, and the mapping from watch results to race outcomes.
"""

import logging
import threading
import time

from web3.exceptions import TransactionNotFound

from .models import CONFIRMED, REJECTED, WATCH_TIMED_OUT, RaceOutcome, Status, WatchResult

logger = logging.getLogger(__name__)

REVERTED = "Reverted"
NONCE_CONSUMED = "NonceConsumed"
# not released: still warming up at the prepare deadline
SETUP_TIMEOUT = "SetupTimeout"


class WinnerCell:
    """
    Exactly-once winner slot. claim() is a test-and-set on a lock that is
    never released: the first caller gets True, every later caller False.
    """

    def __init__(self):
        self._flag = threading.Lock()
        self._index = None

    def claim(self, index):
        if not self._flag.acquire(blocking=False):
            return False
        self._index = index
        return True

    @property
    def index(self):
        return self._index

    @property
    def claimed(self):
        return self._flag.locked()


class ReceiptWatcher:
    """
    Polls one endpoint for a transaction until it is confirmed
    (`confirmations` blocks deep), reverted, superseded by another transaction
    with the same nonce, or the deadline passes.
    """

    def __init__(self, w3, confirmations=1, poll_interval=1.0):
        self.w3 = w3
        self.confirmations = confirmations
        self.poll_interval = poll_interval

    def poll_once(self, tx):
        """One status check. Returns a WatchResult or None if still pending."""
        # nonce first: if it is already spent and we still have no receipt,
        # some other transaction took it
        spent_nonce = self.w3.eth.get_transaction_count(tx.sender) > tx.nonce
        try:
            receipt = self.w3.eth.get_transaction_receipt(tx.signature)
        except TransactionNotFound:
            receipt = None

        if receipt is None:
            if spent_nonce:
                return WatchResult(REJECTED, time.perf_counter(), code=NONCE_CONSUMED)
            return None

        block_number = receipt["blockNumber"]
        if receipt["status"] == 0:
            return WatchResult(REJECTED, time.perf_counter(), code=REVERTED, block_number=block_number)
        depth = self.w3.eth.block_number - block_number + 1
        if depth >= self.confirmations:
            return WatchResult(CONFIRMED, time.perf_counter(), block_number=block_number)
        return None

    def watch(self, tx, deadline, cancelled):
        while not cancelled.is_set() and time.perf_counter() < deadline:
            try:
                result = self.poll_once(tx)
            except Exception as e:
                # transient RPC failure: keep polling until the deadline
                logger.warning("Status check for %s on %s failed: %s", tx.signature, tx.endpoint.name, e)
                result = None
            if result is not None:
                return result
            cancelled.wait(min(self.poll_interval, max(0.0, deadline - time.perf_counter())))
        return WatchResult(WATCH_TIMED_OUT, time.perf_counter())


def classify(tx, record, result, winner, deadline):
    """Turn a WatchResult into the endpoint's terminal RaceOutcome."""
    endpoint, signature = tx.endpoint, tx.signature

    if result.kind == CONFIRMED and result.observed_at <= deadline:
        duration = result.observed_at - record.send_start
        if winner.claim(tx.index):
            logger.info("%s confirmed first via %s in %.0fms", signature, endpoint.name, duration * 1000)
            return RaceOutcome(endpoint, signature, Status.WINNER_CONFIRMED, duration, block_number=result.block_number)
        return RaceOutcome(endpoint, signature, Status.LOSER_CONFIRMED, duration, block_number=result.block_number)

    if result.kind == REJECTED:
        return RaceOutcome(endpoint, signature, Status.ONCHAIN_REJECTED, error=result.code,
                           block_number=result.block_number)

    return RaceOutcome(endpoint, signature, Status.TIMED_OUT)
