import asyncio
import logging
from typing import Optional, Protocol

from pulsebot.errors import CustodialTradeError

logger = logging.getLogger("pulsebot.custodial")

SYMBOL_TO_ASSET_ID = {
    "USDC": "usdc",
    "ETH": "eth",
    "WETH": "weth",
    "DAI": "dai",
    "USDT": "usdt",
    "BTC": "btc",
    "WBTC": "wbtc",
    "UNI": "uni",
    "LINK": "link",
    "MATIC": "matic",
    "AAVE": "aave",
    "SOL": "sol",
    "ADA": "ada",
    "DOT": "dot",
    "AVAX": "avax",
    "EIGEN": "eigen",
}


class CustodialTrade(Protocol):
    async def wait(self) -> None: ...

    def get_transaction(self) -> Optional[dict]: ...


class CustodialWallet(Protocol):
    """Third-party wallet that signs and settles trades itself."""

    async def get_balance(self) -> float: ...

    async def get_address(self) -> str: ...

    async def create_trade(
        self, amount: float, from_asset_id: str, to_asset_id: str
    ) -> CustodialTrade: ...


def asset_id_for_token(symbol: str, address: str) -> str:
    asset_id = SYMBOL_TO_ASSET_ID.get(symbol.upper())
    if asset_id:
        return asset_id
    logger.info("[custodial] no asset id for %s, using address %s", symbol, address)
    return address.lower()


async def execute_custodial_trade(
    wallet: CustodialWallet,
    amount_eth: float,
    symbol: str,
    address: str,
    settle_timeout: float = 300.0,
) -> Optional[str]:
    """Buy ``symbol`` with ETH through the custodial API; returns the tx hash when reported."""
    to_asset = asset_id_for_token(symbol, address)
    logger.info("[custodial] creating trade %s ETH -> %s (%s)", amount_eth, symbol, to_asset)
    try:
        trade = await wallet.create_trade(amount_eth, "eth", to_asset)
        await asyncio.wait_for(trade.wait(), settle_timeout)
    except asyncio.TimeoutError as e:
        raise CustodialTradeError(f"Custodial trade did not settle within {settle_timeout:.0f}s") from e
    except Exception as e:
        raise CustodialTradeError(f"Custodial trade failed: {e}") from e

    tx = trade.get_transaction() or {}
    tx_hash = tx.get("transaction_hash") or tx.get("transactionHash")
    logger.info("[custodial] trade settled tx=%s", tx_hash)
    return tx_hash
