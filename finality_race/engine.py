"""
Race engine: prepares one session per endpoint, releases them together,
races confirmations and returns the per-endpoint results in input order.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass

from .aggregator import aggregate
from .barrier import ReleaseBarrier
from .confirmation import SETUP_TIMEOUT, WinnerCell
from .dispatch import Board, DispatchWorker, failed
from .errors import IncompleteRace, NoReadyEndpoints
from .models import RaceOutcome, Status

logger = logging.getLogger(__name__)


@dataclass
class RaceSettings:
    prepare_timeout: float = 15.0
    race_timeout: float = 30.0
    # extra time after the deadline for polls already in flight
    grace: float = 2.0

    @classmethod
    def from_config(cls, conf):
        return cls(
            prepare_timeout=conf.prepare_timeout,
            race_timeout=conf.race_timeout,
            grace=min(conf.request_timeout, conf.poll_interval * 2),
        )


def run_race(transactions, make_session, settings=None):
    """
    Race `transactions` (one per endpoint, from build_conflict_set).

    make_session: endpoint -> session with warm_up/submit/watch/close.
    Returns a RaceResult. Raises NoReadyEndpoints if no session warmed up in time.
    """
    settings = settings or RaceSettings()
    n = len(transactions)
    if [tx.index for tx in transactions] != list(range(n)):
        raise ValueError("transaction indexes must match their position")
    barrier = ReleaseBarrier(n)
    winner = WinnerCell()
    board = Board(n)
    cancelled = threading.Event()

    executor = ThreadPoolExecutor(max_workers=n, thread_name_prefix="dispatch")
    try:
        logger.info("Phase 1: preparing %d sessions...", n)
        futures = []
        for tx in transactions:
            worker = DispatchWorker(
                tx, make_session, barrier, winner, board, cancelled,
                release_timeout=settings.prepare_timeout + settings.grace,
            )
            futures.append(executor.submit(worker.run))

        ready = barrier.wait_ready(settings.prepare_timeout)
        if not ready:
            barrier.release([], None)
            raise NoReadyEndpoints(n)

        deadline = time.perf_counter() + settings.race_timeout
        barrier.release(ready, deadline)
        logger.info("Phase 2: released %d/%d endpoints", len(ready), n)

        for i, tx in enumerate(transactions):
            if i not in ready:
                board.settle(i, failed(tx, SETUP_TIMEOUT))

        logger.info("Phase 3: racing confirmations (timeout %.1fs)...", settings.race_timeout)
        released = [futures[i] for i in ready]
        remaining = deadline + settings.grace - time.perf_counter()
        done, pending = wait(released, timeout=max(0.0, remaining))
        if pending:
            logger.warning("Overall race timeout reached with %d endpoints unresolved", len(pending))
        cancelled.set()

        for fut in done:
            exc = fut.exception()
            if exc is not None:
                raise IncompleteRace(f"Dispatch worker crashed: {exc!r}") from exc
        index_of = {futures[i]: i for i in ready}
        for fut in pending:
            tx = transactions[index_of[fut]]
            if board.settle(tx.index, RaceOutcome(tx.endpoint, tx.signature, Status.TIMED_OUT)):
                logger.warning("%s forced to TimedOut", tx.endpoint.name)

        return aggregate(transactions, board.records, board.outcomes)
    finally:
        cancelled.set()
        # do not block on sessions still stuck in warm-up
        executor.shutdown(wait=False, cancel_futures=True)
