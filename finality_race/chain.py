"""
web3 plumbing shared by the builder, the sessions and the dry-run:
provider construction, EIP-1559 fee quotes and sender state reads.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from web3 import HTTPProvider, Web3
from web3.middleware import geth_poa_middleware

logger = logging.getLogger(__name__)

MAX_FEE_CAP_GWEI = 500  # safe cap to prevent RPC error


@dataclass(frozen=True)
class FeeQuote:
    max_fee: int  # gasPrice when legacy
    max_priority_fee: Optional[int]
    legacy: bool

    def tx_fields(self):
        if self.legacy:
            return {"gasPrice": self.max_fee}
        return {"maxFeePerGas": self.max_fee, "maxPriorityFeePerGas": self.max_priority_fee}


@dataclass(frozen=True)
class ChainState:
    balance: int
    nonce: int
    chain_id: int
    fees: FeeQuote


def make_web3(url, request_timeout=10.0, poa=False, session=None) -> Web3:
    """
    Build a Web3 bound to one endpoint. Passing a requests.Session keeps the
    TCP/TLS connection alive between the warm-up call and the send.
    """
    provider = HTTPProvider(url, request_kwargs={"timeout": request_timeout}, session=session)
    w3 = Web3(provider)
    if poa:
        w3.middleware_onion.inject(geth_poa_middleware, layer=0)
    return w3


def new_http_session(pool_size=1) -> requests.Session:
    session = requests.Session()
    adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def get_eip1559_fees(w3: Web3, priority_gwei=2) -> FeeQuote:
    """
    Calculates maxFeePerGas and maxPriorityFeePerGas as 2 * base fee + tip.
    Falls back to legacy gasPrice on chains without baseFeePerGas.
    """
    max_priority_fee = Web3.to_wei(priority_gwei, "gwei")

    latest_block = w3.eth.get_block("latest")
    base_fee = latest_block.get("baseFeePerGas")
    if base_fee is None:
        logger.warning("baseFeePerGas missing. Falling back to legacy gasPrice.")
        return FeeQuote(max_fee=w3.eth.gas_price, max_priority_fee=None, legacy=True)

    max_fee = (2 * base_fee) + max_priority_fee
    max_fee_cap = Web3.to_wei(MAX_FEE_CAP_GWEI, "gwei")
    if max_fee > max_fee_cap:
        logger.warning(
            "Calculated maxFeePerGas (%.2f Gwei) exceeded cap. Capping at %s Gwei.",
            Web3.from_wei(max_fee, "gwei"), MAX_FEE_CAP_GWEI,
        )
        max_fee = max_fee_cap
    # the tip can never exceed the cap
    return FeeQuote(max_fee=max_fee, max_priority_fee=min(max_priority_fee, max_fee), legacy=False)


def read_chain_state(w3: Web3, address, chain_id=None, priority_gwei=2) -> ChainState:
    address = Web3.to_checksum_address(address)
    balance = w3.eth.get_balance(address)
    nonce = w3.eth.get_transaction_count(address)
    fees = get_eip1559_fees(w3, priority_gwei)
    state = ChainState(
        balance=balance,
        nonce=nonce,
        chain_id=chain_id if chain_id is not None else w3.eth.chain_id,
        fees=fees,
    )
    logger.info(
        "Sender %s: balance %s wei, nonce %s, chain %s", address, state.balance, state.nonce, state.chain_id
    )
    return state
