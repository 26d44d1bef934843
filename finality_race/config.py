"""
Run configuration.

Endpoints and race tuning come from a JSON file (default config.json):

    {
      "rpc_urls": ["https://rpc-a.example", "https://rpc-b.example"],
      "relay_urls": ["https://relay.flashbots.net"],
      "keyfile_1": "~/.keys/racer1.json",
      "keyfile_2": "~/.keys/racer2.json",
      "confirmations": 1,
      "race_timeout": 30
    }

Secrets come from the environment (a .env file is loaded first):
 - PRIVATE_KEY_1, PRIVATE_KEY_2 (hex private keys, 0x...; override keyfiles)
 - KEYSTORE_PASSWORD (if keyfiles are encrypted keystores)
 - CHAIN_ID (optional, otherwise read from the first RPC)
 - FLASHBOTS_SIGNER_PRIVKEY (required if relay_urls is set)
 - RACE_CONFIG (optional, default config path)
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from web3 import Web3

from .errors import ConfigError, InsufficientRpcUrls, NoRpcUrls
from .models import Endpoint

load_dotenv()

DEFAULT_CONFIG_PATH = "config.json"

DEFAULTS = {
    "confirmations": 1,
    "prepare_timeout": 15.0,
    "race_timeout": 30.0,
    "poll_interval": 1.0,
    "request_timeout": 10.0,
    "gas_limit": 21_000,
    "priority_gwei": 2,
}


def _number(data, key, cast):
    value = data.get(key, DEFAULTS.get(key))
    try:
        return cast(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{key} must be a number, got {value!r}") from e


@dataclass
class RaceConfig:
    rpc_urls: list[str]
    relay_urls: list[str] = field(default_factory=list)
    keyfile_1: Optional[str] = None
    keyfile_2: Optional[str] = None
    recipient: Optional[str] = None
    confirmations: int = DEFAULTS["confirmations"]
    prepare_timeout: float = DEFAULTS["prepare_timeout"]
    race_timeout: float = DEFAULTS["race_timeout"]
    poll_interval: float = DEFAULTS["poll_interval"]
    request_timeout: float = DEFAULTS["request_timeout"]
    gas_limit: int = DEFAULTS["gas_limit"]
    priority_gwei: float = DEFAULTS["priority_gwei"]
    poa: bool = False

    # from env
    private_key_1: Optional[str] = None
    private_key_2: Optional[str] = None
    keystore_password: Optional[str] = None
    chain_id: Optional[int] = None
    flashbots_signer: Optional[str] = None

    @classmethod
    def load(cls, path=None):
        path = path or os.environ.get("RACE_CONFIG", DEFAULT_CONFIG_PATH)
        config_path = Path(os.path.expanduser(path))
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        try:
            with open(config_path, "r") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Expected a JSON object in {config_path}")

        return cls.from_dict(data, env=os.environ)

    @classmethod
    def from_dict(cls, data, env=None):
        env = env if env is not None else {}
        rpc_urls = list(data.get("rpc_urls") or [])
        relay_urls = list(data.get("relay_urls") or [])
        if not rpc_urls:
            raise NoRpcUrls()
        if len(rpc_urls) + len(relay_urls) < 2:
            raise InsufficientRpcUrls(len(rpc_urls) + len(relay_urls))

        chain_id = env.get("CHAIN_ID")
        conf = cls(
            rpc_urls=rpc_urls,
            relay_urls=relay_urls,
            keyfile_1=data.get("keyfile_1"),
            keyfile_2=data.get("keyfile_2"),
            recipient=data.get("recipient"),
            confirmations=_number(data, "confirmations", int),
            prepare_timeout=_number(data, "prepare_timeout", float),
            race_timeout=_number(data, "race_timeout", float),
            poll_interval=_number(data, "poll_interval", float),
            request_timeout=_number(data, "request_timeout", float),
            gas_limit=_number(data, "gas_limit", int),
            priority_gwei=_number(data, "priority_gwei", float),
            poa=str(data.get("poa", "false")).lower() in ("1", "true", "yes"),
            private_key_1=env.get("PRIVATE_KEY_1") or None,
            private_key_2=env.get("PRIVATE_KEY_2") or None,
            keystore_password=env.get("KEYSTORE_PASSWORD"),
            chain_id=_number(env, "CHAIN_ID", int) if chain_id else None,
            flashbots_signer=env.get("FLASHBOTS_SIGNER_PRIVKEY") or None,
        )
        if conf.recipient and not Web3.is_address(conf.recipient):
            raise ConfigError(f"recipient is not an address: {conf.recipient}")
        if conf.confirmations < 1:
            raise ConfigError("confirmations must be >= 1")
        if conf.relay_urls and not conf.flashbots_signer:
            raise ConfigError("relay_urls set but FLASHBOTS_SIGNER_PRIVKEY not set")
        return conf

    def endpoints(self):
        """Race endpoints in input order: public RPCs first, then relays."""
        eps = [Endpoint(url=u) for u in self.rpc_urls]
        # relays are watched through the first public RPC
        eps += [Endpoint(url=u, kind="relay", watch_url=self.rpc_urls[0]) for u in self.relay_urls]
        return eps

    def keyfile_path(self, which):
        raw = self.keyfile_1 if which == 1 else self.keyfile_2
        return Path(os.path.expanduser(raw)) if raw else None
