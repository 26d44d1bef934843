"""
Conflict set construction.

Every transaction in the set spends the same sender nonce, so the chain can
include at most one of them. Amounts follow a decreasing percentage of the
spendable balance (90%, 89%, 88%, ...) so that each endpoint gets a distinct
transaction hash.
"""

import logging

from eth_account import Account
from web3 import Web3

from .errors import ConfigError, InsufficientBalance, SigningError
from .models import ConflictingTransaction

logger = logging.getLogger(__name__)

# basis points of the spendable balance: 90%, 89%, 88%, ...
START_BPS = 9_000
STEP_BPS = 100
TRANSFER_GAS = 21_000


class LocalSigner:
    """Signs with an in-memory eth_account key."""

    def __init__(self, account):
        self.account = account

    @property
    def address(self):
        return self.account.address

    def sign(self, params):
        try:
            return Account.sign_transaction(params, self.account.key)
        except (ValueError, TypeError) as e:
            raise SigningError(f"Failed to sign transaction: {e}") from e


def transfer_schedule(balance, reserve, count):
    """
    Amounts for `count` conflicting transfers out of `balance - reserve`.
    Raises InsufficientBalance if the schedule cannot give every transaction a
    distinct, non-zero amount.
    """
    available = balance - reserve
    if available <= 0:
        raise InsufficientBalance(
            f"Sender balance ({balance} wei) is too low. Must be > {reserve} wei to construct transactions.",
            balance=balance,
        )

    amounts = []
    for i in range(count):
        bps = START_BPS - STEP_BPS * i
        if bps <= 0:
            raise InsufficientBalance(f"Share for transaction {i} dropped to {bps / 100:.0f}%", balance=balance)
        amount = available * bps // 10_000
        if amount == 0 or (amounts and amount >= amounts[-1]):
            raise InsufficientBalance(
                f"Balance {balance} wei too small for {count} distinct transfers (tx {i} -> {amount} wei)",
                balance=balance,
            )
        amounts.append(amount)
    return amounts


def build_conflict_set(signer, recipient, endpoints, state, gas_limit=TRANSFER_GAS):
    """
    Build one signed transfer per endpoint, all at `state.nonce`.

    state: ChainState of the sender (balance, nonce, chain id, fee quote).
    Returns ConflictingTransactions in endpoint order.
    """
    if len(endpoints) < 2:
        raise ConfigError(f"Need at least 2 endpoints to race, got {len(endpoints)}")

    reserve = gas_limit * state.fees.max_fee
    amounts = transfer_schedule(state.balance, reserve, len(endpoints))
    recipient = Web3.to_checksum_address(recipient)

    transactions = []
    for i, (endpoint, amount) in enumerate(zip(endpoints, amounts)):
        params = {
            "to": recipient,
            "value": amount,
            "nonce": state.nonce,
            "gas": gas_limit,
            "chainId": state.chain_id,
            **state.fees.tx_fields(),
        }
        signed = signer.sign(params)
        tx = ConflictingTransaction(
            endpoint=endpoint,
            index=i,
            params=params,
            raw=signed.rawTransaction,
            signature=Web3.to_hex(signed.hash),
            sender=signer.address,
            nonce=state.nonce,
            amount_wei=amount,
        )
        logger.info(
            "Tx %d for %s: %s wei (%.0f%% of spendable), sig %s",
            i, endpoint.name, amount, (START_BPS - STEP_BPS * i) / 100, tx.signature,
        )
        transactions.append(tx)
    return transactions
