"""
Dry-run: ask every endpoint to simulate (eth_estimateGas) its own conflicting
transaction concurrently. Nothing is broadcast.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

from .chain import make_web3

logger = logging.getLogger(__name__)

SIMULATED_FIELDS = ("to", "value", "maxFeePerGas", "maxPriorityFeePerGas", "gasPrice")


@dataclass
class SimulationAttempt:
    endpoint: object
    signature: str
    amount_wei: int
    ok: bool
    duration_ms: float
    gas_estimate: Optional[int] = None
    error: Optional[str] = None


def simulate_one(tx, request_timeout=10.0, poa=False):
    url = tx.endpoint.watch_url if tx.endpoint.kind == "relay" else tx.endpoint.url
    call = {"from": tx.sender, **{k: tx.params[k] for k in SIMULATED_FIELDS if k in tx.params}}
    t0 = time.perf_counter()
    try:
        gas = make_web3(url, request_timeout, poa).eth.estimate_gas(call)
    except Exception as e:
        duration = (time.perf_counter() - t0) * 1000
        logger.info("Simulation of %s on %s FAILED: %s (%.0fms)", tx.signature, tx.endpoint.name, e, duration)
        return SimulationAttempt(tx.endpoint, tx.signature, tx.amount_wei, False, duration, error=str(e))
    duration = (time.perf_counter() - t0) * 1000
    logger.info("Simulation of %s on %s SUCCEEDED: gas %s (%.0fms)", tx.signature, tx.endpoint.name, gas, duration)
    return SimulationAttempt(tx.endpoint, tx.signature, tx.amount_wei, True, duration, gas_estimate=gas)


def simulate_transactions(transactions, request_timeout=10.0, poa=False):
    if not transactions:
        return []
    with ThreadPoolExecutor(max_workers=len(transactions), thread_name_prefix="simulate") as ex:
        futures = [ex.submit(simulate_one, tx, request_timeout, poa) for tx in transactions]
        return [f.result() for f in futures]
