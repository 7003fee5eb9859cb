import asyncio
import logging
import time
from fractions import Fraction
from typing import Optional

from web3 import AsyncWeb3, Web3

from pulsebot.errors import (
    InsufficientFundsError,
    InvalidAddressError,
    NoLiquidityError,
    TradeError,
    TransactionRevertedError,
)
from pulsebot.onchain.eth import EvmWallet, is_address
from pulsebot.onchain.gas import GasManager, fmt_gwei
from pulsebot.onchain.retry import RetryExhausted, Sleep, retry_async
from pulsebot.onchain.sizing import calculate_safe_trade_amount
from pulsebot.types import QuoteResult, SwapOutcome

logger = logging.getLogger("pulsebot.uniswap_v3")

UNISWAP_V3_ROUTER = "0xE592427A0AEce92De3Edee1F18E0157C05861564"
UNISWAP_V3_QUOTER = "0xb27308f9F90D607463bb33eA1BeBb41C27CE5AB6"
WETH_ADDRESS = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"

# 0.3%, 0.05%, 1% in priority order; the first tier that quotes wins.
FEE_TIERS = (3000, 500, 10000)
DEFAULT_SLIPPAGE_PCT = 5

# Quote inversion search window and precision.
SEARCH_LOW_WEI = Web3.to_wei("0.001", "ether")
SEARCH_HIGH_WEI = Web3.to_wei("0.1", "ether")
SEARCH_ITERATIONS = 20

MIN_GAS_ALLOWANCE_WEI = Web3.to_wei("0.0008", "ether")
DEADLINE_SEC = 600
CONFIRMATION_TIMEOUT_SEC = 300.0
MAX_ATTEMPTS = 3
RETRY_BASE_DELAY_SEC = 2.0

ROUTER_ABI = [
    {
        "inputs": [
            {
                "components": [
                    {"internalType": "address", "name": "tokenIn", "type": "address"},
                    {"internalType": "address", "name": "tokenOut", "type": "address"},
                    {"internalType": "uint24", "name": "fee", "type": "uint24"},
                    {"internalType": "address", "name": "recipient", "type": "address"},
                    {"internalType": "uint256", "name": "deadline", "type": "uint256"},
                    {"internalType": "uint256", "name": "amountIn", "type": "uint256"},
                    {"internalType": "uint256", "name": "amountOutMinimum", "type": "uint256"},
                    {"internalType": "uint160", "name": "sqrtPriceLimitX96", "type": "uint160"},
                ],
                "internalType": "struct ISwapRouter.ExactInputSingleParams",
                "name": "params",
                "type": "tuple",
            }
        ],
        "name": "exactInputSingle",
        "outputs": [{"internalType": "uint256", "name": "amountOut", "type": "uint256"}],
        "stateMutability": "payable",
        "type": "function",
    }
]

QUOTER_ABI = [
    {
        "inputs": [
            {"internalType": "address", "name": "tokenIn", "type": "address"},
            {"internalType": "address", "name": "tokenOut", "type": "address"},
            {"internalType": "uint24", "name": "fee", "type": "uint24"},
            {"internalType": "uint256", "name": "amountIn", "type": "uint256"},
            {"internalType": "uint160", "name": "sqrtPriceLimitX96", "type": "uint160"},
        ],
        "name": "quoteExactInputSingle",
        "outputs": [{"internalType": "uint256", "name": "amountOut", "type": "uint256"}],
        "stateMutability": "nonpayable",
        "type": "function",
    }
]


def slippage_min_out(quote: int, slippage_pct: float) -> int:
    if not 0 <= slippage_pct < 100:
        raise ValueError(f"slippage must be in [0, 100), got {slippage_pct}")
    return int(int(quote) * (100 - Fraction(str(slippage_pct))) // 100)


class QuoteEngine:
    def __init__(
        self,
        w3: AsyncWeb3,
        quoter_address: str = UNISWAP_V3_QUOTER,
        weth_address: str = WETH_ADDRESS,
        fee_tiers: tuple[int, ...] = FEE_TIERS,
        rpc_timeout: float = 20.0,
    ):
        self.w3 = w3
        self.weth = Web3.to_checksum_address(weth_address)
        self.fee_tiers = fee_tiers
        self.rpc_timeout = rpc_timeout
        self.quoter = w3.eth.contract(
            address=Web3.to_checksum_address(quoter_address), abi=QUOTER_ABI
        )

    async def get_quote(self, token_in: str, token_out: str, fee: int, amount_in: int) -> int:
        """Expected output for ``amount_in`` through one pool; raises when the pool can't quote."""
        call = self.quoter.functions.quoteExactInputSingle(
            Web3.to_checksum_address(token_in),
            Web3.to_checksum_address(token_out),
            fee,
            int(amount_in),
            0,
        ).call()
        return int(await asyncio.wait_for(call, self.rpc_timeout))

    async def find_best_fee_and_quote(
        self, token_address: str, amount_in: int, slippage_pct: float = DEFAULT_SLIPPAGE_PCT
    ) -> QuoteResult:
        for fee in self.fee_tiers:
            try:
                quote = await self.get_quote(self.weth, token_address, fee, amount_in)
            except Exception as e:
                logger.debug("[uniswap-v3] fee tier %.2f%% not available: %s", fee / 10_000, e)
                continue
            result = QuoteResult(
                fee=fee, quote=quote, amount_out_min=slippage_min_out(quote, slippage_pct)
            )
            logger.info(
                "[uniswap-v3] pool %.2f%%: quote=%d min_out=%d (%s%% slippage)",
                fee / 10_000,
                result.quote,
                result.amount_out_min,
                slippage_pct,
            )
            return result
        raise NoLiquidityError(token_address)

    async def calculate_input_for_target_output(
        self, token_address: str, target_output: int
    ) -> tuple[int, int]:
        """
        Smallest native input whose quote reaches ``target_output``.

        The quoter only prices input -> output, so this binary-searches the
        input over [SEARCH_LOW_WEI, SEARCH_HIGH_WEI] for SEARCH_ITERATIONS
        rounds. A tier is accepted when any probe met the target.
        """
        for fee in self.fee_tiers:
            low, high = SEARCH_LOW_WEI, SEARCH_HIGH_WEI
            best: Optional[int] = None
            for _ in range(SEARCH_ITERATIONS):
                if low > high:
                    break
                mid = (low + high) // 2
                try:
                    quote = await self.get_quote(self.weth, token_address, fee, mid)
                except Exception:
                    low = mid + 1
                    continue
                if quote >= target_output:
                    best = mid
                    high = mid - 1
                else:
                    low = mid + 1
            if best is not None:
                logger.info(
                    "[uniswap-v3] need %s ETH for %d tokens (fee %.2f%%)",
                    Web3.from_wei(best, "ether"),
                    target_output,
                    fee / 10_000,
                )
                return best, fee
            logger.debug("[uniswap-v3] fee tier %.2f%% failed reverse quote", fee / 10_000)
        raise NoLiquidityError(token_address, f"for target output {target_output}")


def retry_swap_error(exc: BaseException) -> bool:
    """Only a malformed token address ends the swap early; balance can change between attempts."""
    return not isinstance(exc, InvalidAddressError)


class UniswapV3Trader:
    """Primary venue: single-hop exactInputSingle with quote-based slippage protection."""

    def __init__(
        self,
        wallet: EvmWallet,
        gas: GasManager,
        quotes: Optional[QuoteEngine] = None,
        router_address: str = UNISWAP_V3_ROUTER,
        confirmation_timeout: float = CONFIRMATION_TIMEOUT_SEC,
        max_attempts: int = MAX_ATTEMPTS,
        sleep: Optional[Sleep] = None,
    ):
        self.wallet = wallet
        self.gas = gas
        self.quotes = quotes or QuoteEngine(wallet.w3)
        self.confirmation_timeout = confirmation_timeout
        self.max_attempts = max_attempts
        self.sleep = sleep or asyncio.sleep
        self.router = wallet.w3.eth.contract(
            address=Web3.to_checksum_address(router_address), abi=ROUTER_ABI
        )

    async def get_eth_balance(self) -> int:
        return await self.wallet.get_balance()

    async def swap_eth_for_token(
        self, token_address: str, amount_wei: int, slippage: float = DEFAULT_SLIPPAGE_PCT
    ) -> SwapOutcome:
        return await self._swap(token_address, slippage, requested_wei=int(amount_wei))

    async def swap_eth_for_exact_tokens(
        self, token_address: str, target_output: int, slippage: float = DEFAULT_SLIPPAGE_PCT
    ) -> SwapOutcome:
        return await self._swap(token_address, slippage, target_output=int(target_output))

    async def _swap(
        self,
        token_address: str,
        slippage: float,
        requested_wei: Optional[int] = None,
        target_output: Optional[int] = None,
    ) -> SwapOutcome:
        attempts_made = 0

        async def _attempt(attempt: int) -> SwapOutcome:
            nonlocal attempts_made
            attempts_made = attempt
            logger.info(
                "[uniswap-v3] swap attempt %d/%d -> %s", attempt, self.max_attempts, token_address
            )
            return await self._swap_once(token_address, slippage, requested_wei, target_output)

        try:
            outcome = await retry_async(
                _attempt,
                attempts=self.max_attempts,
                base_delay=RETRY_BASE_DELAY_SEC,
                retryable=retry_swap_error,
                sleep=self.sleep,
                label="uniswap-v3",
            )
        except RetryExhausted as e:
            logger.error("[uniswap-v3] all %d swap attempts failed", e.attempts)
            return SwapOutcome.failed(str(e), attempts=e.attempts)
        except TradeError as e:
            logger.error("[uniswap-v3] giving up: %s", e)
            return SwapOutcome.failed(str(e), attempts=attempts_made)
        return outcome.model_copy(update={"attempts": attempts_made})

    async def _swap_once(
        self,
        token_address: str,
        slippage: float,
        requested_wei: Optional[int],
        target_output: Optional[int],
    ) -> SwapOutcome:
        if not is_address(token_address):
            raise InvalidAddressError(token_address)
        token = Web3.to_checksum_address(token_address)
        recipient = self.wallet.address

        balance = await self.wallet.get_balance()
        if requested_wei is not None and balance <= requested_wei + MIN_GAS_ALLOWANCE_WEI:
            raise InsufficientFundsError(balance, requested_wei + MIN_GAS_ALLOWANCE_WEI)

        safe = await calculate_safe_trade_amount(
            self.quotes,
            self.gas,
            token,
            balance,
            target_output=target_output,
            requested_wei=requested_wei,
            slippage_pct=slippage,
        )
        amount_in = safe.trade_amount
        deadline = int(time.time()) + DEADLINE_SEC

        best = safe.best
        if best is None:
            best = await self.quotes.find_best_fee_and_quote(token, amount_in, slippage)
        if target_output is not None and best.quote < target_output:
            logger.warning(
                "[uniswap-v3] expected %d tokens but target is %d", best.quote, target_output
            )

        params = {
            "tokenIn": self.quotes.weth,
            "tokenOut": token,
            "fee": best.fee,
            "recipient": recipient,
            "deadline": deadline,
            "amountIn": amount_in,
            "amountOutMinimum": best.amount_out_min,
            "sqrtPriceLimitX96": 0,
        }
        fn = self.router.functions.exactInputSingle(params)
        # value is the sized amount, not the requested one
        base_tx = {"from": recipient, "value": amount_in}

        estimate = await self.gas.estimate_gas_with_retry(
            fn, base_tx, retries=2, label="exactInputSingle"
        )
        gas_config = await self.gas.get_gas_config(estimate, "standard")
        logger.info(
            "[uniswap-v3] amount=%s ETH fee=%d gas_limit=%d fee_per_gas=%s",
            Web3.from_wei(amount_in, "ether"),
            best.fee,
            gas_config.gas_limit,
            fmt_gwei(gas_config.fee_per_gas),
        )

        tx = await fn.build_transaction(
            {**base_tx, **gas_config.to_tx_params(), "chainId": self.wallet.chain_id}
        )
        tx_hash = await self.wallet.sign_and_send(tx)
        logger.info("[uniswap-v3] submitted %s, waiting for confirmation", tx_hash)

        receipt = await self.wallet.wait_for_receipt(tx_hash, self.confirmation_timeout)
        if int(receipt.get("status", 0)) == 0:
            raise TransactionRevertedError(tx_hash, receipt)

        logger.info(
            "[uniswap-v3] success %s block=%s gas_used=%s expected_out=%d",
            tx_hash,
            receipt.get("blockNumber"),
            receipt.get("gasUsed"),
            best.quote,
        )
        return SwapOutcome.ok(tx_hash, to_token_amount=str(best.quote))
