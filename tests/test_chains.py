import pytest

import pulsebot.chains as chains
from pulsebot.config import Settings


def registry(env="mainnet", **kw):
    return chains.NetworkRegistry(Settings(_env_file=None, network_env=env, **kw))


def test_networks_per_environment():
    assert [n.id for n in registry("mainnet").networks] == ["base-mainnet", "ethereum-mainnet"]
    assert [n.id for n in registry("testnet").networks] == ["base-sepolia", "ethereum-sepolia"]


def test_descriptor_fields():
    eth = registry().get("ethereum-mainnet")
    assert eth.chain_id == 1
    assert eth.chain_type == "ethereum"
    assert eth.native_currency == "ETH"
    assert eth.is_mainnet
    assert not chains.BASE_SEPOLIA.is_mainnet


def test_rpc_urls_come_from_settings():
    r = registry("testnet", ethereum_testnet_rpc_url="https://sepolia.example")
    assert r.get("ethereum-sepolia").rpc_url == "https://sepolia.example"
    assert r.get("base-sepolia").rpc_url == "https://sepolia.base.org"


def test_unknown_network_raises():
    with pytest.raises(KeyError):
        registry().get("does_not_exist")


def test_best_network_for_token():
    r = registry()
    assert r.best_network_for_token("uni").id == "ethereum-mainnet"
    assert r.best_network_for_token("EIGEN").chain_type == "ethereum"
    assert r.best_network_for_token("USDC").id == "base-mainnet"
    assert r.best_network_for_token("DEGEN").id == "base-mainnet"


def test_by_chain_type():
    r = registry("testnet")
    assert r.by_chain_type("base").id == "base-sepolia"
    assert r.by_chain_type("solana") is None


def test_build_explorer_url():
    assert chains.build_explorer_url("0xabc", "base-sepolia") == "https://sepolia.basescan.org/tx/0xabc"
    assert chains.build_explorer_url("0xabc", "ethereum-mainnet") == "https://etherscan.io/tx/0xabc"
    assert chains.build_explorer_url("0xabc", "somewhere") == "https://etherscan.io/tx/0xabc"


def test_summary():
    assert "Base Mainnet (base-mainnet)" in registry().summary()
