import threading
import time
from unittest.mock import MagicMock

from web3.exceptions import TransactionNotFound

from finality_race.confirmation import NONCE_CONSUMED, REVERTED, ReceiptWatcher, WinnerCell, classify
from finality_race.models import CONFIRMED, REJECTED, WATCH_TIMED_OUT, DispatchRecord, Status, WatchResult


def fake_w3(receipt=None, tx_count=7, head=100):
    w3 = MagicMock()
    w3.eth.get_transaction_count.return_value = tx_count
    w3.eth.block_number = head
    if receipt is None:
        w3.eth.get_transaction_receipt.side_effect = TransactionNotFound("not found")
    else:
        w3.eth.get_transaction_receipt.return_value = receipt
    return w3


class TestWinnerCell:
    def test_first_claim_wins(self):
        cell = WinnerCell()
        assert not cell.claimed
        assert cell.claim(2)
        assert not cell.claim(0)
        assert cell.index == 2
        assert cell.claimed

    def test_concurrent_claims_have_one_winner(self):
        cell = WinnerCell()
        start = threading.Barrier(16)
        wins = []

        def contender(i):
            start.wait()
            if cell.claim(i):
                wins.append(i)

        threads = [threading.Thread(target=contender, args=(i,)) for i in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(wins) == 1
        assert cell.index == wins[0]


class TestReceiptWatcher:
    def test_pending_transaction(self, transactions):
        tx = transactions(["A", "B"])[0]
        assert ReceiptWatcher(fake_w3(tx_count=7)).poll_once(tx) is None

    def test_confirmed_receipt(self, transactions):
        tx = transactions(["A", "B"])[0]
        w3 = fake_w3(receipt={"status": 1, "blockNumber": 100}, tx_count=8, head=100)
        result = ReceiptWatcher(w3).poll_once(tx)
        assert result.kind == CONFIRMED
        assert result.block_number == 100

    def test_waits_for_confirmation_depth(self, transactions):
        tx = transactions(["A", "B"])[0]
        w3 = fake_w3(receipt={"status": 1, "blockNumber": 100}, tx_count=8, head=101)
        assert ReceiptWatcher(w3, confirmations=3).poll_once(tx) is None
        w3.eth.block_number = 102
        assert ReceiptWatcher(w3, confirmations=3).poll_once(tx).kind == CONFIRMED

    def test_reverted_receipt(self, transactions):
        tx = transactions(["A", "B"])[0]
        w3 = fake_w3(receipt={"status": 0, "blockNumber": 99}, tx_count=8)
        result = ReceiptWatcher(w3).poll_once(tx)
        assert (result.kind, result.code) == (REJECTED, REVERTED)

    def test_nonce_taken_by_another_transaction(self, transactions):
        tx = transactions(["A", "B"])[0]
        result = ReceiptWatcher(fake_w3(tx_count=8)).poll_once(tx)
        assert (result.kind, result.code) == (REJECTED, NONCE_CONSUMED)

    def test_watch_stops_at_deadline(self, transactions):
        tx = transactions(["A", "B"])[0]
        watcher = ReceiptWatcher(fake_w3(tx_count=7), poll_interval=0.02)
        t0 = time.perf_counter()
        result = watcher.watch(tx, t0 + 0.1, threading.Event())
        assert result.kind == WATCH_TIMED_OUT
        assert time.perf_counter() - t0 < 0.5

    def test_watch_survives_rpc_errors(self, transactions):
        tx = transactions(["A", "B"])[0]
        w3 = fake_w3(receipt={"status": 1, "blockNumber": 100}, tx_count=8)
        w3.eth.get_transaction_count.side_effect = [ConnectionError("503"), 8]
        watcher = ReceiptWatcher(w3, poll_interval=0.01)
        result = watcher.watch(tx, time.perf_counter() + 1, threading.Event())
        assert result.kind == CONFIRMED

    def test_watch_returns_when_cancelled(self, transactions):
        tx = transactions(["A", "B"])[0]
        cancelled = threading.Event()
        cancelled.set()
        result = ReceiptWatcher(fake_w3()).watch(tx, time.perf_counter() + 10, cancelled)
        assert result.kind == WATCH_TIMED_OUT


class TestClassify:
    def setup_method(self):
        self.now = time.perf_counter()

    def record(self, tx):
        return DispatchRecord(tx.endpoint, tx.signature, self.now, self.now + 0.01)

    def test_first_and_second_confirmation(self, transactions):
        a, b = transactions(["A", "B"])
        cell = WinnerCell()
        confirmed = WatchResult(CONFIRMED, self.now + 0.5, block_number=10)

        first = classify(a, self.record(a), confirmed, cell, deadline=self.now + 5)
        second = classify(b, self.record(b), confirmed, cell, deadline=self.now + 5)

        assert first.status is Status.WINNER_CONFIRMED
        assert abs(first.confirm_duration - 0.5) < 1e-9
        assert second.status is Status.LOSER_CONFIRMED
        assert cell.index == a.index

    def test_confirmation_after_deadline_does_not_win(self, transactions):
        a, _ = transactions(["A", "B"])
        cell = WinnerCell()
        late = WatchResult(CONFIRMED, self.now + 6)
        outcome = classify(a, self.record(a), late, cell, deadline=self.now + 5)
        assert outcome.status is Status.TIMED_OUT
        assert not cell.claimed

    def test_rejection_carries_code(self, transactions):
        a, _ = transactions(["A", "B"])
        rejected = WatchResult(REJECTED, self.now, code=REVERTED, block_number=12)
        outcome = classify(a, self.record(a), rejected, WinnerCell(), deadline=self.now + 5)
        assert outcome.status is Status.ONCHAIN_REJECTED
        assert outcome.error == REVERTED
        assert outcome.block_number == 12
