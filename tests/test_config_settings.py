import pytest
from pydantic import ValidationError

from pulsebot.config import Settings


def test_testnet_defaults(monkeypatch):
    monkeypatch.delenv("NETWORK_ENV", raising=False)
    monkeypatch.delenv("BASE_TESTNET_RPC_URL", raising=False)
    s = Settings(_env_file=None)
    assert s.network_env == "testnet"
    assert s.base_testnet_rpc_url == "https://sepolia.base.org"
    assert s.trade_balance_fraction == 0.10
    assert s.dex_min_trade_eth == 0.0015
    assert s.confirmation_timeout_sec == 300.0
    assert s.fallback_slippage_pct is None


def test_mainnet_from_env(monkeypatch):
    monkeypatch.setenv("NETWORK_ENV", "MAINNET")
    monkeypatch.setenv("ETHEREUM_MAINNET_RPC_URL", "https://eth.example")
    monkeypatch.delenv("BASE_MAINNET_RPC_URL", raising=False)
    s = Settings(_env_file=None)
    assert s.network_env == "mainnet"
    assert s.base_mainnet_rpc_url == "https://mainnet.base.org"
    assert s.rpc_url_for("ethereum-mainnet") == "https://eth.example"
    assert s.rpc_url_for("unknown") is None


def test_invalid_network_env():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, network_env="devnet")


def test_family_switches_and_minimums():
    s = Settings(_env_file=None, base_enabled=False, ethereum_min_trade_eth=0.002)
    assert not s.family_enabled("base")
    assert s.family_enabled("ethereum")
    assert not s.family_enabled("solana")
    assert s.min_trade_for("ethereum") == 0.002
    assert s.min_trade_for("base") == 0.001


def test_slippage_bounds():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, max_slippage_pct=100)
    with pytest.raises(ValidationError):
        Settings(_env_file=None, fallback_slippage_pct=-1)
