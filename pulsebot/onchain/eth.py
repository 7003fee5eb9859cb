import asyncio
import logging

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import TimeExhausted

from pulsebot.errors import ConfigurationError, ConfirmationTimeoutError, SubmissionError

logger = logging.getLogger("pulsebot.eth")


def get_eth_client(rpc_url: str, timeout: float = 20.0) -> AsyncWeb3:
    if not rpc_url:
        raise ConfigurationError("RPC url is not configured")
    return AsyncWeb3(AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))


class WalletLocks:
    """One lock per signing address; trades from the same wallet run one at a time."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, address: str) -> asyncio.Lock:
        key = address.lower()
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]


def is_address(value: str) -> bool:
    return isinstance(value, str) and Web3.is_address(value)


class EvmWallet:
    """Signing account bound to one RPC client and chain."""

    def __init__(self, w3: AsyncWeb3, account: LocalAccount, chain_id: int):
        self.w3 = w3
        self.account = account
        self.chain_id = chain_id

    @classmethod
    def from_key(cls, rpc_url: str, private_key: str, chain_id: int, timeout: float = 20.0):
        if not private_key:
            raise ConfigurationError("ETHEREUM_PRIVATE_KEY is required for DEX trading")
        return cls(get_eth_client(rpc_url, timeout), Account.from_key(private_key), chain_id)

    @property
    def address(self) -> str:
        return self.account.address

    async def get_balance(self) -> int:
        return int(await self.w3.eth.get_balance(self.address))

    async def sign_and_send(self, tx: dict) -> str:
        tx = dict(tx)
        tx.setdefault("from", self.address)
        tx.setdefault("chainId", self.chain_id)
        if "nonce" not in tx:
            tx["nonce"] = await self.w3.eth.get_transaction_count(self.address, "pending")
        try:
            signed = self.account.sign_transaction(tx)
            txh = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as e:
            raise SubmissionError(f"Transaction submission failed: {e}") from e
        return Web3.to_hex(txh)

    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> dict:
        try:
            rcpt = await asyncio.wait_for(
                self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout),
                timeout=timeout + 5,
            )
        except (TimeExhausted, asyncio.TimeoutError) as e:
            raise ConfirmationTimeoutError(tx_hash, timeout) from e
        return dict(rcpt)
