import asyncio

import pytest
from eth_account import Account
from web3.exceptions import TimeExhausted

from pulsebot.errors import ConfigurationError, ConfirmationTimeoutError, SubmissionError
from pulsebot.onchain.eth import EvmWallet, WalletLocks, get_eth_client, is_address
from fakes import FakeEth, FakeW3

KEY = "0x" + "11" * 32
LEGACY_TX = {"to": "0x" + "22" * 20, "value": 1, "gas": 21_000, "gasPrice": 10**9}


def make_wallet(eth=None):
    return EvmWallet(FakeW3(eth or FakeEth()), Account.from_key(KEY), chain_id=11155111)


def test_is_address():
    assert is_address("0x1f9840a85d5af5bf1d1762f925bdaddc4201f984")
    assert not is_address("0x123")
    assert not is_address(None)


def test_missing_rpc_url_is_configuration_error():
    with pytest.raises(ConfigurationError):
        get_eth_client("")


def test_from_key_requires_private_key():
    with pytest.raises(ConfigurationError):
        EvmWallet.from_key("http://localhost:8545", None, 1)


def test_wallet_lock_shared_per_address():
    locks = WalletLocks()
    a = locks.get("0x" + "AB" * 20)
    b = locks.get("0x" + "ab" * 20)
    c = locks.get("0x" + "cd" * 20)
    assert a is b
    assert a is not c
    assert WalletLocks().get("0x" + "ab" * 20) is not a


def test_fresh_wallet_locks_per_event_loop():
    async def contend(locks):
        async def hold():
            async with locks.get("0x" + "ab" * 20):
                await asyncio.sleep(0)

        await asyncio.gather(hold(), hold())

    asyncio.run(contend(WalletLocks()))
    asyncio.run(contend(WalletLocks()))


@pytest.mark.asyncio
async def test_get_balance():
    wallet = make_wallet(FakeEth(balance=42))
    assert await wallet.get_balance() == 42


@pytest.mark.asyncio
async def test_sign_and_send_fills_nonce_and_chain():
    eth = FakeEth()
    wallet = make_wallet(eth)
    tx_hash = await wallet.sign_and_send(dict(LEGACY_TX))
    assert tx_hash == "0x" + "12" * 32
    assert len(eth.raw_sent) == 1

    decoded = Account.recover_transaction(eth.raw_sent[0])
    assert decoded == wallet.address


@pytest.mark.asyncio
async def test_send_failure_is_submission_error():
    eth = FakeEth()

    async def reject(raw):
        raise ValueError("nonce too low")

    eth.send_raw_transaction = reject
    with pytest.raises(SubmissionError) as ei:
        await make_wallet(eth).sign_and_send(dict(LEGACY_TX))
    assert "nonce too low" in str(ei.value)


@pytest.mark.asyncio
async def test_wait_for_receipt_returns_dict():
    eth = FakeEth()
    eth.receipt = {"status": 1, "blockNumber": 9}
    rcpt = await make_wallet(eth).wait_for_receipt("0xabc", timeout=1)
    assert rcpt["status"] == 1


@pytest.mark.asyncio
async def test_wait_for_receipt_timeout():
    eth = FakeEth()
    eth.receipt_error = TimeExhausted("not mined")
    with pytest.raises(ConfirmationTimeoutError) as ei:
        await make_wallet(eth).wait_for_receipt("0xabc", timeout=300)
    assert ei.value.tx_hash == "0xabc"
    assert "300s" in str(ei.value)


@pytest.mark.asyncio
async def test_wait_for_receipt_outer_timeout():
    eth = FakeEth()

    async def hang(tx_hash, timeout=120):
        await asyncio.sleep(10)

    eth.wait_for_transaction_receipt = hang
    with pytest.raises(ConfirmationTimeoutError):
        await make_wallet(eth).wait_for_receipt("0xabc", timeout=-4.99)
