import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

from web3 import AsyncWeb3, Web3

from pulsebot.errors import GasEstimationError
from pulsebot.onchain.retry import RetryExhausted, Sleep, retry_async
from pulsebot.types import FeeMarketGas, GasConfig, LegacyGas, Urgency

logger = logging.getLogger("pulsebot.gas")

GAS_BUFFER_PCT = 120
MIN_GAS_LIMIT_MAINNET = 150_000
MIN_GAS_LIMIT_TESTNET = 100_000


def gwei(value: float | str) -> int:
    return int(Web3.to_wei(str(value), "gwei"))


def fmt_gwei(wei: int) -> str:
    return f"{Web3.from_wei(wei, 'gwei')} gwei"


@dataclass(frozen=True)
class NetworkGasSettings:
    is_mainnet: bool
    chain_id: int
    supports_1559: bool
    base_fee_multiplier: float
    priority_fee_gwei: float


GAS_SETTINGS = {
    1: NetworkGasSettings(True, 1, True, 1.2, 2),
    11155111: NetworkGasSettings(False, 11155111, True, 1.2, 0.1),
    8453: NetworkGasSettings(True, 8453, True, 1.2, 0.01),
    84532: NetworkGasSettings(False, 84532, True, 1.1, 0.001),
}


def settings_for_chain(chain_id: int) -> NetworkGasSettings:
    return GAS_SETTINGS.get(chain_id, NetworkGasSettings(False, chain_id, True, 1.2, 1))


def _scale(value: int, multiplier: float) -> int:
    return value * int(multiplier * 100) // 100


class GasManager:
    def __init__(
        self,
        w3: AsyncWeb3,
        network: NetworkGasSettings,
        rpc_timeout: float = 20.0,
        sleep: Optional[Sleep] = None,
    ):
        self.w3 = w3
        self.network = network
        self.rpc_timeout = rpc_timeout
        self.sleep = sleep or asyncio.sleep

    def urgency_multiplier(self, urgency: Urgency) -> float:
        if self.network.is_mainnet:
            return {"standard": 1.2, "fast": 2.0, "rapid": 3.0}.get(urgency, 1.2)
        return {"standard": 1.0, "fast": 1.5, "rapid": 2.0}.get(urgency, 1.0)

    def buffered_gas_limit(self, estimated_gas: int) -> int:
        floor = MIN_GAS_LIMIT_MAINNET if self.network.is_mainnet else MIN_GAS_LIMIT_TESTNET
        return max(int(estimated_gas) * GAS_BUFFER_PCT // 100, floor)

    async def get_gas_config(self, estimated_gas: int, urgency: Urgency = "standard") -> GasConfig:
        gas_limit = self.buffered_gas_limit(estimated_gas)
        logger.debug("[gas] estimate=%d limit=%d urgency=%s", estimated_gas, gas_limit, urgency)

        if not self.network.supports_1559:
            gas_price = await self._legacy_gas_price(urgency)
            logger.info("[gas] legacy gas price %s", fmt_gwei(gas_price))
            return LegacyGas(gas_limit=gas_limit, gas_price=gas_price)

        max_fee, priority = await self._fee_market_fees(urgency)
        logger.info("[gas] max fee %s, priority %s", fmt_gwei(max_fee), fmt_gwei(priority))
        return FeeMarketGas(
            gas_limit=gas_limit,
            max_fee_per_gas=max_fee,
            max_priority_fee_per_gas=priority,
        )

    async def _legacy_gas_price(self, urgency: Urgency) -> int:
        mainnet = self.network.is_mainnet
        try:
            price = await asyncio.wait_for(self.w3.eth.gas_price, self.rpc_timeout)
            base_price = int(price or gwei(20))
        except Exception as e:
            logger.warning("[gas] failed to get gas price, using fallback: %s", e)
            return gwei(10 if mainnet else 2)

        adjusted = _scale(base_price, self.urgency_multiplier(urgency))
        return max(adjusted, gwei(1 if mainnet else "0.1"))

    async def _fee_market_fees(self, urgency: Urgency) -> tuple[int, int]:
        mainnet = self.network.is_mainnet
        try:
            block = await asyncio.wait_for(self.w3.eth.get_block("latest"), self.rpc_timeout)
            base_fee = int(block.get("baseFeePerGas") or gwei(10))
        except Exception as e:
            logger.warning("[gas] failed to get fee-market data, using fallback: %s", e)
            if mainnet:
                return gwei(15), gwei(2)
            return gwei(3), gwei("0.2")

        priority = _scale(gwei(self.network.priority_fee_gwei), self.urgency_multiplier(urgency))
        max_fee = _scale(base_fee, self.network.base_fee_multiplier) + priority

        min_max_fee = gwei(5 if mainnet else "0.1")
        min_priority = gwei(1 if mainnet else "0.01")
        return max(max_fee, min_max_fee), max(priority, min_priority)

    async def estimate_gas_with_retry(
        self, fn: Any, tx_params: dict, retries: int = 3, label: str = "estimate"
    ) -> int:
        """
        Estimate gas for a bound contract function, retrying with 1s, 2s, 4s backoff.

        A failure here usually means the swap itself would revert, so the last
        node error is carried in the raised GasEstimationError.
        """

        async def _estimate(attempt: int) -> int:
            logger.debug("[gas] estimating %s (attempt %d/%d)", label, attempt, retries)
            return int(await asyncio.wait_for(fn.estimate_gas(tx_params), self.rpc_timeout))

        try:
            estimate = await retry_async(
                _estimate,
                attempts=retries,
                base_delay=1.0,
                retryable=lambda e: True,
                sleep=self.sleep,
                label="gas",
            )
        except RetryExhausted as e:
            raise GasEstimationError(e.attempts, str(e.last_error)) from e.last_error
        logger.info("[gas] estimate for %s: %d", label, estimate)
        return estimate


def create_gas_manager(
    w3: AsyncWeb3, chain_id: int, rpc_timeout: float = 20.0, sleep: Optional[Sleep] = None
) -> GasManager:
    return GasManager(w3, settings_for_chain(chain_id), rpc_timeout=rpc_timeout, sleep=sleep)


def max_gas_cost(config: GasConfig) -> int:
    return config.gas_limit * config.fee_per_gas
