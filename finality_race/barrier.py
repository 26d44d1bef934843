"""
Two-phase release barrier.

Workers warm up at their own pace and report in with arrive(). The
coordinator collects arrivals until everyone is in or the prepare timeout
passes, then release() puts one message into each worker's private gate:
the race deadline for ready workers, ABORT for everyone else. Each worker
blocks on its own gate, so no worker re-checks a shared flag after being
woken.
"""

import logging
import queue
import time

logger = logging.getLogger(__name__)

ABORT = None


class ReleaseBarrier:
    def __init__(self, parties):
        self.parties = parties
        self._arrivals = queue.SimpleQueue()
        self._gates = [queue.SimpleQueue() for _ in range(parties)]
        self._released = False

    def arrive(self, index, ready=True):
        """Called by worker `index` once its warm-up finished (or failed)."""
        self._arrivals.put((index, ready))

    def wait_ready(self, timeout):
        """
        Block until all parties arrived or `timeout` seconds passed.
        Returns the sorted indexes of workers that arrived ready.
        """
        deadline = time.perf_counter() + timeout
        ready, arrived = set(), set()
        while len(arrived) < self.parties:
            remaining = deadline - time.perf_counter()
            if remaining <= 0:
                break
            try:
                index, ok = self._arrivals.get(timeout=remaining)
            except queue.Empty:
                break
            arrived.add(index)
            if ok:
                ready.add(index)
        missing = self.parties - len(arrived)
        if missing:
            logger.warning("%d of %d endpoints not ready after %.1fs", missing, self.parties, timeout)
        return sorted(ready)

    def release(self, ready, deadline):
        """Fan out: `deadline` to every ready gate, ABORT to the rest. One shot."""
        if self._released:
            raise RuntimeError("barrier already released")
        self._released = True
        ready = set(ready)
        for index in ready:
            self._gates[index].put(deadline)
        for index in range(self.parties):
            if index not in ready:
                self._gates[index].put(ABORT)

    def await_release(self, index, timeout=None):
        """
        Worker side. Returns the race deadline, or ABORT if this worker was
        excluded (or nothing arrived within `timeout`).
        """
        try:
            return self._gates[index].get(timeout=timeout)
        except queue.Empty:
            return ABORT
