"""
Per-endpoint sessions.

A session owns the HTTP connection to one endpoint. warm_up() pays the
connection cost (DNS, TLS, first JSON-RPC round trip) before the release
barrier opens so that it never shows up in the measured send time.
"""

import logging
import time

import requests
from eth_account import Account
from flashbots import flashbot
from flashbots.provider import FlashbotProvider
from web3 import Web3

from .chain import make_web3, new_http_session
from .confirmation import ReceiptWatcher
from .errors import SubmissionError

logger = logging.getLogger(__name__)

# relay accepts the private tx for this many blocks after warm-up
RELAY_MAX_BLOCKS = 25


class Web3Session:
    def __init__(self, endpoint, request_timeout=10.0, poa=False, confirmations=1, poll_interval=1.0, w3=None):
        self.endpoint = endpoint
        self.request_timeout = request_timeout
        self.poa = poa
        self.confirmations = confirmations
        self.poll_interval = poll_interval
        self.w3 = w3
        self._http = None
        self.chain_id = None
        self.head = None
        self.warm_up_duration = None

    def _connect(self):
        self._http = new_http_session()
        return make_web3(self.endpoint.url, self.request_timeout, self.poa, session=self._http)

    def warm_up(self):
        t0 = time.perf_counter()
        if self.w3 is None:
            self.w3 = self._connect()
        self.chain_id = self.w3.eth.chain_id
        self.head = self.w3.eth.block_number
        self.warm_up_duration = time.perf_counter() - t0
        logger.info(
            "Session %s ready (chain %s, head %s) in %.0fms",
            self.endpoint.name, self.chain_id, self.head, self.warm_up_duration * 1000,
        )

    def submit(self, tx):
        try:
            tx_hash = self.w3.eth.send_raw_transaction(tx.raw)
        except Exception as e:
            raise SubmissionError(self.endpoint.name, e) from e
        return Web3.to_hex(tx_hash)

    def watch(self, tx, deadline, cancelled):
        watcher = ReceiptWatcher(self.w3, self.confirmations, self.poll_interval)
        return watcher.watch(tx, deadline, cancelled)

    def close(self):
        if self._http is not None:
            self._http.close()
            self._http = None


class RelaySession(Web3Session):
    """
    Private transaction relay (eth_sendPrivateTransaction via the flashbots
    middleware). The relay only takes the send; chain reads go to the
    endpoint's watch_url.
    """

    def __init__(self, endpoint, searcher_privkey, **kwargs):
        super().__init__(endpoint, **kwargs)
        self.searcher = Account.from_key(searcher_privkey)
        self.max_block_number = None
        self.relay = None
        self._relay_http = None

    def _connect(self):
        self._http = new_http_session()
        w3 = make_web3(self.endpoint.watch_url, self.request_timeout, self.poa, session=self._http)
        flashbot(w3, self.searcher, endpoint_uri=self.endpoint.url)
        return w3

    def _open_relay(self):
        # web3 caches one requests.Session per (thread, uri); the flashbots
        # middleware created in this same thread picks this one up for the send
        self._relay_http = new_http_session()
        self.relay = FlashbotProvider(
            self.searcher, self.endpoint.url,
            request_kwargs={"timeout": self.request_timeout}, session=self._relay_http,
        )
        try:
            self.relay.make_request("eth_blockNumber", [])
        except requests.exceptions.HTTPError as e:
            # the relay answered, it just does not serve reads
            logger.debug("Relay %s refused warm-up read: %s", self.endpoint.name, e)

    def warm_up(self):
        super().warm_up()
        t0 = time.perf_counter()
        self._open_relay()
        self.warm_up_duration += time.perf_counter() - t0
        # fixed up front so the send does not pay for a block_number call
        self.max_block_number = self.head + RELAY_MAX_BLOCKS

    def submit(self, tx):
        try:
            self.w3.flashbots.send_private_transaction(
                {"signed_transaction": tx.raw}, max_block_number=self.max_block_number
            )
        except Exception as e:
            raise SubmissionError(self.endpoint.name, e) from e
        # the relay does not echo a hash; it is the signed payload's hash
        return tx.signature

    def close(self):
        super().close()
        if self._relay_http is not None:
            self._relay_http.close()
            self._relay_http = None


def session_factory(conf):
    """Return a callable endpoint -> session, configured from a RaceConfig."""

    def make(endpoint):
        kwargs = {
            "request_timeout": conf.request_timeout,
            "poa": conf.poa,
            "confirmations": conf.confirmations,
            "poll_interval": conf.poll_interval,
        }
        if endpoint.kind == "relay":
            return RelaySession(endpoint, conf.flashbots_signer, **kwargs)
        return Web3Session(endpoint, **kwargs)

    return make
