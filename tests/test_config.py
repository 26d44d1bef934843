import json

import pytest

from finality_race.config import RaceConfig
from finality_race.errors import ConfigError, InsufficientRpcUrls, NoRpcUrls


def write_config(tmp_path, content):
    path = tmp_path / "config.json"
    path.write_text(content if isinstance(content, str) else json.dumps(content))
    return path


def test_load_config_success(tmp_path, monkeypatch):
    monkeypatch.setenv("PRIVATE_KEY_1", "0x" + "11" * 32)
    monkeypatch.setenv("CHAIN_ID", "11155111")
    path = write_config(tmp_path, {
        "rpc_urls": ["http://localhost:8545", "https://rpc.sepolia.org"],
        "keyfile_2": "~/.keys/two.json",
        "race_timeout": 12,
    })

    conf = RaceConfig.load(str(path))

    assert conf.rpc_urls == ["http://localhost:8545", "https://rpc.sepolia.org"]
    assert conf.private_key_1 == "0x" + "11" * 32
    assert conf.chain_id == 11155111
    assert conf.race_timeout == 12.0
    assert conf.confirmations == 1
    assert not str(conf.keyfile_path(2)).startswith("~")
    assert conf.keyfile_path(1) is None


def test_load_config_file_not_found(tmp_path):
    with pytest.raises(ConfigError):
        RaceConfig.load(str(tmp_path / "missing.json"))


def test_load_config_invalid_json(tmp_path):
    with pytest.raises(ConfigError):
        RaceConfig.load(str(write_config(tmp_path, "invalid json content")))


def test_load_config_no_rpc_urls(tmp_path):
    with pytest.raises(NoRpcUrls):
        RaceConfig.load(str(write_config(tmp_path, {"rpc_urls": []})))


def test_load_config_insufficient_rpc_urls(tmp_path):
    with pytest.raises(InsufficientRpcUrls):
        RaceConfig.load(str(write_config(tmp_path, {"rpc_urls": ["http://localhost:8545"]})))


def test_relay_counts_as_endpoint_and_needs_signer():
    data = {"rpc_urls": ["http://localhost:8545"], "relay_urls": ["https://relay.test"]}
    with pytest.raises(ConfigError):
        RaceConfig.from_dict(data, env={})

    conf = RaceConfig.from_dict(data, env={"FLASHBOTS_SIGNER_PRIVKEY": "0x" + "33" * 32})
    endpoints = conf.endpoints()
    assert [e.kind for e in endpoints] == ["rpc", "relay"]
    assert endpoints[1].watch_url == "http://localhost:8545"


def test_confirmations_must_be_positive():
    with pytest.raises(ConfigError):
        RaceConfig.from_dict({"rpc_urls": ["http://a", "http://b"], "confirmations": 0})


@pytest.mark.parametrize("key,value", [("race_timeout", "soon"), ("gas_limit", None), ("confirmations", [1])])
def test_non_numeric_setting_is_a_config_error(key, value):
    with pytest.raises(ConfigError, match=key):
        RaceConfig.from_dict({"rpc_urls": ["http://a", "http://b"], key: value})


def test_non_numeric_chain_id_is_a_config_error():
    with pytest.raises(ConfigError, match="CHAIN_ID"):
        RaceConfig.from_dict({"rpc_urls": ["http://a", "http://b"]}, env={"CHAIN_ID": "sepolia"})


def test_recipient_must_be_an_address():
    with pytest.raises(ConfigError, match="recipient"):
        RaceConfig.from_dict({"rpc_urls": ["http://a", "http://b"], "recipient": "alice"})
