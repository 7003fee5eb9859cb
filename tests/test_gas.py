import asyncio

import pytest

from pulsebot.errors import GasEstimationError
from pulsebot.onchain.gas import (
    GasManager,
    NetworkGasSettings,
    create_gas_manager,
    gwei,
    max_gas_cost,
    settings_for_chain,
)
from pulsebot.types import FeeMarketGas, LegacyGas
from fakes import FakeContract, FakeEth, FakeW3, SleepRecorder

LEGACY_MAINNET = NetworkGasSettings(True, 56, False, 1.2, 1)
LEGACY_TESTNET = NetworkGasSettings(False, 97, False, 1.2, 1)


def test_gwei_helper():
    assert gwei(1) == 10**9
    assert gwei("0.1") == 10**8


def test_unknown_chain_defaults():
    s = settings_for_chain(424242)
    assert s.chain_id == 424242
    assert not s.is_mainnet
    assert s.supports_1559


def test_gas_limit_buffer_and_floor():
    mainnet = create_gas_manager(FakeW3(), 1)
    testnet = create_gas_manager(FakeW3(), 11155111)
    assert mainnet.buffered_gas_limit(200_000) == 240_000
    assert mainnet.buffered_gas_limit(100_000) == 150_000
    assert testnet.buffered_gas_limit(50_000) == 100_000
    assert testnet.buffered_gas_limit(200_000) == 240_000


def test_urgency_multipliers():
    mainnet = create_gas_manager(FakeW3(), 1)
    testnet = create_gas_manager(FakeW3(), 84532)
    assert [mainnet.urgency_multiplier(u) for u in ("standard", "fast", "rapid")] == [1.2, 2.0, 3.0]
    assert [testnet.urgency_multiplier(u) for u in ("standard", "fast", "rapid")] == [1.0, 1.5, 2.0]


@pytest.mark.asyncio
async def test_fee_market_config_mainnet():
    gm = create_gas_manager(FakeW3(FakeEth(base_fee=gwei(10))), 1)
    cfg = await gm.get_gas_config(200_000)
    assert isinstance(cfg, FeeMarketGas)
    assert cfg.gas_limit == 240_000
    # priority 2 gwei * 1.2, max fee = base * 1.2 + priority
    assert cfg.max_priority_fee_per_gas == gwei("2.4")
    assert cfg.max_fee_per_gas == gwei("14.4")
    assert max_gas_cost(cfg) == 240_000 * gwei("14.4")
    params = cfg.to_tx_params()
    assert params["type"] == 2 and "gasPrice" not in params


@pytest.mark.asyncio
async def test_fee_market_floors_on_testnet():
    gm = create_gas_manager(FakeW3(FakeEth(base_fee=1)), 11155111)
    cfg = await gm.get_gas_config(21_000)
    assert cfg.max_fee_per_gas >= gwei("0.1")
    assert cfg.max_priority_fee_per_gas >= gwei("0.01")
    assert cfg.gas_limit == 100_000


@pytest.mark.asyncio
async def test_fee_market_fallback_when_block_fails():
    eth = FakeEth(block_error=RuntimeError("rpc down"))
    mainnet = create_gas_manager(FakeW3(eth), 1)
    testnet = create_gas_manager(FakeW3(eth), 11155111)
    m = await mainnet.get_gas_config(200_000)
    t = await testnet.get_gas_config(200_000)
    assert (m.max_fee_per_gas, m.max_priority_fee_per_gas) == (gwei(15), gwei(2))
    assert (t.max_fee_per_gas, t.max_priority_fee_per_gas) == (gwei(3), gwei("0.2"))


@pytest.mark.asyncio
async def test_legacy_config_scales_gas_price():
    gm = GasManager(FakeW3(FakeEth(gas_price=gwei(5))), LEGACY_MAINNET)
    cfg = await gm.get_gas_config(200_000, "fast")
    assert isinstance(cfg, LegacyGas)
    assert cfg.gas_price == gwei(10)
    assert cfg.to_tx_params() == {"gas": 240_000, "gasPrice": gwei(10)}


@pytest.mark.asyncio
async def test_legacy_floor_and_fallback():
    low = GasManager(FakeW3(FakeEth(gas_price=1)), LEGACY_TESTNET)
    assert (await low.get_gas_config(10)).gas_price == gwei("0.1")

    broken = GasManager(FakeW3(FakeEth(gas_price_error=RuntimeError("x"))), LEGACY_MAINNET)
    assert (await broken.get_gas_config(10)).gas_price == gwei(10)


@pytest.mark.asyncio
async def test_gas_config_deterministic_for_same_inputs():
    gm = create_gas_manager(FakeW3(FakeEth(base_fee=gwei(3))), 8453)
    a = await gm.get_gas_config(180_000)
    b = await gm.get_gas_config(180_000)
    assert a == b


@pytest.mark.asyncio
async def test_estimate_gas_with_retry_recovers():
    sleep = SleepRecorder()
    contract = FakeContract("0x" + "11" * 20)
    outcomes = [RuntimeError("execution reverted"), 123_456]

    async def flaky_estimate(tx):
        res = outcomes.pop(0)
        if isinstance(res, Exception):
            raise res
        return res

    fn = contract.functions.swap()
    fn.estimate_gas = flaky_estimate
    gm = create_gas_manager(FakeW3(), 1, sleep=sleep)
    assert await gm.estimate_gas_with_retry(fn, {"value": 1}, retries=3) == 123_456
    assert sleep.delays == [1.0]


@pytest.mark.asyncio
async def test_estimate_gas_with_retry_gives_up():
    sleep = SleepRecorder()
    contract = FakeContract("0x" + "11" * 20, estimate=RuntimeError("execution reverted"))
    gm = create_gas_manager(FakeW3(), 1, sleep=sleep)
    with pytest.raises(GasEstimationError) as ei:
        await gm.estimate_gas_with_retry(contract.functions.swap(), {}, retries=3)
    assert ei.value.attempts == 3
    assert "execution reverted" in str(ei.value)
    assert sleep.delays == [1.0, 2.0]
    assert len(contract.estimates) == 3


@pytest.mark.asyncio
async def test_estimate_gas_times_out():
    contract = FakeContract("0x" + "11" * 20)

    async def hang(tx):
        await asyncio.sleep(10)

    fn = contract.functions.swap()
    fn.estimate_gas = hang
    gm = GasManager(FakeW3(), settings_for_chain(1), rpc_timeout=0.01, sleep=SleepRecorder())
    with pytest.raises(GasEstimationError):
        await gm.estimate_gas_with_retry(fn, {}, retries=2)
