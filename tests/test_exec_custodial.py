import pytest

from pulsebot.errors import CustodialTradeError
from pulsebot.exec.custodial import asset_id_for_token, execute_custodial_trade
from fakes import FakeCustodialTrade, FakeCustodialWallet


def test_asset_id_for_token():
    assert asset_id_for_token("usdc", "0xAAA") == "usdc"
    assert asset_id_for_token("EIGEN", "0xAAA") == "eigen"
    assert asset_id_for_token("DEGEN", "0xAbCd") == "0xabcd"


@pytest.mark.asyncio
async def test_custodial_trade_returns_hash():
    wallet = FakeCustodialWallet(FakeCustodialTrade(tx={"transaction_hash": "0xfeed"}))
    tx_hash = await execute_custodial_trade(wallet, 0.1, "USDC", "0xabc")
    assert tx_hash == "0xfeed"
    assert wallet.created == [(0.1, "eth", "usdc")]


@pytest.mark.asyncio
async def test_custodial_trade_without_transaction():
    wallet = FakeCustodialWallet(FakeCustodialTrade(tx=None))
    assert await execute_custodial_trade(wallet, 0.1, "DEGEN", "0xABC") is None
    assert wallet.created[0][2] == "0xabc"


@pytest.mark.asyncio
async def test_custodial_trade_failure_wrapped():
    wallet = FakeCustodialWallet(FakeCustodialTrade(fail=RuntimeError("rejected")))
    with pytest.raises(CustodialTradeError) as ei:
        await execute_custodial_trade(wallet, 0.1, "USDC", "0xabc")
    assert "rejected" in str(ei.value)


@pytest.mark.asyncio
async def test_custodial_trade_settle_timeout():
    wallet = FakeCustodialWallet(FakeCustodialTrade(hang=True))
    with pytest.raises(CustodialTradeError) as ei:
        await execute_custodial_trade(wallet, 0.1, "USDC", "0xabc", settle_timeout=0.01)
    assert "did not settle" in str(ei.value)
