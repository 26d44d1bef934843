"""
Sender / recipient selection.

Two keys are loaded; whichever holds the larger balance sends, the other
receives. An explicit recipient address in the config skips key 2.
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

from .errors import KeyLoadError

logger = logging.getLogger(__name__)


@dataclass
class AccountInfo:
    address: str
    balance: int = 0
    account: Optional[LocalAccount] = None
    role: Optional[str] = None  # "sender" / "recipient"


def load_account(private_key=None, keyfile=None, password=None) -> LocalAccount:
    if private_key:
        try:
            return Account.from_key(private_key)
        except (ValueError, TypeError) as e:
            raise KeyLoadError(f"Invalid private key: {e}") from e

    if keyfile is None:
        raise KeyLoadError("No private key or keyfile configured")
    if not keyfile.exists():
        raise KeyLoadError(f"Keyfile not found: {keyfile}")
    try:
        with open(keyfile, "r") as f:
            keystore = json.load(f)
        key = Account.decrypt(keystore, password or "")
    except (ValueError, TypeError, KeyError) as e:
        raise KeyLoadError(f"Failed to read keyfile {keyfile}: {e}") from e
    return Account.from_key(key)


def determine_account_roles(w3: Web3, account_1: LocalAccount, account_2: LocalAccount):
    balance_1 = w3.eth.get_balance(account_1.address)
    balance_2 = w3.eth.get_balance(account_2.address)
    logger.info("Account 1 (%s): %s ETH", account_1.address, Web3.from_wei(balance_1, "ether"))
    logger.info("Account 2 (%s): %s ETH", account_2.address, Web3.from_wei(balance_2, "ether"))

    info_1 = AccountInfo(account_1.address, balance_1, account_1)
    info_2 = AccountInfo(account_2.address, balance_2, account_2)
    if balance_1 >= balance_2:
        logger.info("Account 1 has higher or equal balance. Setting as Sender.")
        sender, recipient = info_1, info_2
    else:
        logger.info("Account 2 has higher balance. Setting as Sender.")
        sender, recipient = info_2, info_1
    sender.role = "sender"
    recipient.role = "recipient"
    return sender, recipient


def resolve_accounts(w3: Web3, conf):
    """Load keys per config and return (sender, recipient) AccountInfo."""
    account_1 = load_account(conf.private_key_1, conf.keyfile_path(1), conf.keystore_password)
    if conf.recipient:
        sender = AccountInfo(account_1.address, w3.eth.get_balance(account_1.address), account_1, "sender")
        recipient = AccountInfo(Web3.to_checksum_address(conf.recipient), role="recipient")
        return sender, recipient
    account_2 = load_account(conf.private_key_2, conf.keyfile_path(2), conf.keystore_password)
    return determine_account_roles(w3, account_1, account_2)
