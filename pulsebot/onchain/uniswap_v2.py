import asyncio
import logging
import time
from typing import Optional

from web3 import AsyncWeb3, Web3

from pulsebot.errors import (
    GasEstimationError,
    InvalidAddressError,
    TradeError,
    TradeTooSmallError,
    TransactionRevertedError,
)
from pulsebot.onchain.eth import EvmWallet, is_address
from pulsebot.onchain.gas import GasManager
from pulsebot.onchain.retry import RetryExhausted, Sleep, retry_async
from pulsebot.onchain.uniswap_v3 import (
    CONFIRMATION_TIMEOUT_SEC,
    MAX_ATTEMPTS,
    RETRY_BASE_DELAY_SEC,
    WETH_ADDRESS,
    slippage_min_out,
)
from pulsebot.types import SwapOutcome

logger = logging.getLogger("pulsebot.uniswap_v2")

UNISWAP_V2_ROUTER = "0x7a250d5630B4cF539739dF2C5dAcb4c659F2488D"

# ~$5 at ~$3500/ETH; smaller swaps fail too often on thin V2 pools
MIN_TRADE_WEI = Web3.to_wei("0.0015", "ether")
DEADLINE_SEC = 1200

ROUTER_ABI = [
    {
        "inputs": [
            {"internalType": "uint256", "name": "amountIn", "type": "uint256"},
            {"internalType": "address[]", "name": "path", "type": "address[]"},
        ],
        "name": "getAmountsOut",
        "outputs": [
            {"internalType": "uint256[]", "name": "amounts", "type": "uint256[]"}
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "uint256", "name": "amountOutMin", "type": "uint256"},
            {"internalType": "address[]", "name": "path", "type": "address[]"},
            {"internalType": "address", "name": "to", "type": "address"},
            {"internalType": "uint256", "name": "deadline", "type": "uint256"},
        ],
        "name": "swapExactETHForTokens",
        "outputs": [
            {"internalType": "uint256[]", "name": "amounts", "type": "uint256[]"}
        ],
        "stateMutability": "payable",
        "type": "function",
    },
]


def router_contract(w3: AsyncWeb3, router_address: str = UNISWAP_V2_ROUTER):
    return w3.eth.contract(address=Web3.to_checksum_address(router_address), abi=ROUTER_ABI)


async def get_amounts_out(router, amount_in_wei: int, path: list[str]) -> list[int]:
    return await router.functions.getAmountsOut(
        amount_in_wei, [Web3.to_checksum_address(p) for p in path]
    ).call()


class UniswapV2Swapper:
    """
    Fallback venue: swapExactETHForTokens over the fixed WETH -> token path.

    Only used after the V3 trader gave up. Minimum output is zero unless
    ``slippage_pct`` is set, in which case it comes from getAmountsOut.
    """

    def __init__(
        self,
        wallet: EvmWallet,
        gas: GasManager,
        router_address: str = UNISWAP_V2_ROUTER,
        weth_address: str = WETH_ADDRESS,
        slippage_pct: Optional[float] = None,
        confirmation_timeout: float = CONFIRMATION_TIMEOUT_SEC,
        max_attempts: int = MAX_ATTEMPTS,
        sleep: Optional[Sleep] = None,
    ):
        self.wallet = wallet
        self.gas = gas
        self.weth = Web3.to_checksum_address(weth_address)
        self.slippage_pct = slippage_pct
        self.confirmation_timeout = confirmation_timeout
        self.max_attempts = max_attempts
        self.sleep = sleep or asyncio.sleep
        self.router = router_contract(wallet.w3, router_address)

    async def swap_eth_for_token(self, token_address: str, amount_wei: int) -> SwapOutcome:
        amount_wei = int(amount_wei)
        if amount_wei < MIN_TRADE_WEI:
            err = TradeTooSmallError(
                float(Web3.from_wei(amount_wei, "ether")), float(Web3.from_wei(MIN_TRADE_WEI, "ether"))
            )
            logger.warning("[uniswap-v2] %s", err)
            return SwapOutcome.failed(str(err), attempts=0)
        if not is_address(token_address):
            return SwapOutcome.failed(str(InvalidAddressError(token_address)), attempts=0)

        attempts_made = 0

        async def _attempt(attempt: int) -> SwapOutcome:
            nonlocal attempts_made
            attempts_made = attempt
            logger.info(
                "[uniswap-v2] swap attempt %d/%d: %s ETH -> %s",
                attempt,
                self.max_attempts,
                Web3.from_wei(amount_wei, "ether"),
                token_address,
            )
            return await self._swap_once(Web3.to_checksum_address(token_address), amount_wei)

        try:
            outcome = await retry_async(
                _attempt,
                attempts=self.max_attempts,
                base_delay=RETRY_BASE_DELAY_SEC,
                sleep=self.sleep,
                label="uniswap-v2",
            )
        except RetryExhausted as e:
            logger.error("[uniswap-v2] all %d swap attempts failed", e.attempts)
            return SwapOutcome.failed(str(e), attempts=e.attempts)
        except TradeError as e:
            logger.error("[uniswap-v2] giving up: %s", e)
            return SwapOutcome.failed(str(e), attempts=attempts_made)
        return outcome.model_copy(update={"attempts": attempts_made})

    async def _min_amount_out(self, path: list[str], amount_wei: int) -> int:
        if self.slippage_pct is None:
            return 0
        amounts = await get_amounts_out(self.router, amount_wei, path)
        return slippage_min_out(int(amounts[-1]), self.slippage_pct)

    async def _swap_once(self, token: str, amount_wei: int) -> SwapOutcome:
        recipient = self.wallet.address
        path = [self.weth, token]
        deadline = int(time.time()) + DEADLINE_SEC
        amount_out_min = await self._min_amount_out(path, amount_wei)

        fn = self.router.functions.swapExactETHForTokens(amount_out_min, path, recipient, deadline)
        base_tx = {"from": recipient, "value": amount_wei}
        try:
            estimate = await self.gas.estimate_gas_with_retry(
                fn, base_tx, retries=2, label="swapExactETHForTokens"
            )
        except GasEstimationError as e:
            raise GasEstimationError(
                e.attempts,
                "swap would likely fail (insufficient liquidity, token transfer "
                f"restrictions, or amount too small): {e.last_error}",
            ) from e

        gas_config = await self.gas.get_gas_config(estimate, "standard")
        tx = await fn.build_transaction(
            {**base_tx, **gas_config.to_tx_params(), "chainId": self.wallet.chain_id}
        )
        tx_hash = await self.wallet.sign_and_send(tx)
        logger.info("[uniswap-v2] submitted %s, min_out=%d", tx_hash, amount_out_min)

        receipt = await self.wallet.wait_for_receipt(tx_hash, self.confirmation_timeout)
        if int(receipt.get("status", 0)) == 0:
            raise TransactionRevertedError(tx_hash, receipt)

        logger.info("[uniswap-v2] success %s block=%s", tx_hash, receipt.get("blockNumber"))
        return SwapOutcome.ok(tx_hash)
