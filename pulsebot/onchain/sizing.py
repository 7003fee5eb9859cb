import logging
from typing import Optional, TYPE_CHECKING

from web3 import Web3

from pulsebot.errors import InsufficientBalanceError
from pulsebot.onchain.gas import GasManager, max_gas_cost
from pulsebot.types import SafeTradeAmount

if TYPE_CHECKING:
    from pulsebot.onchain.uniswap_v3 import QuoteEngine

logger = logging.getLogger("pulsebot.sizing")

# Typical single-hop V3 swap; used before the real call can be estimated.
NOMINAL_SWAP_GAS = 200_000
SAFETY_BUFFER_WEI = Web3.to_wei("0.0002", "ether")


def partition_balance(available_wei: int, gas_reserve_wei: int) -> int:
    """Largest amount that can be traded while leaving the gas reserve untouched."""
    if available_wei <= gas_reserve_wei:
        raise InsufficientBalanceError(available_wei, gas_reserve_wei)
    return available_wei - gas_reserve_wei


async def estimate_gas_reserve(gas: GasManager) -> int:
    config = await gas.get_gas_config(NOMINAL_SWAP_GAS, "standard")
    return max_gas_cost(config) + SAFETY_BUFFER_WEI


async def calculate_safe_trade_amount(
    quotes: "QuoteEngine",
    gas: GasManager,
    token_address: str,
    available_wei: int,
    target_output: Optional[int] = None,
    requested_wei: Optional[int] = None,
    slippage_pct: Optional[float] = None,
) -> SafeTradeAmount:
    """
    Split the balance into a trade amount and a gas reserve.

    With ``target_output`` the exact input for that output is searched for;
    with ``requested_wei`` that amount is used. Either is capped at what the
    balance allows after the reserve, and with neither the full remainder is
    traded. The returned trade amount plus reserve never exceeds the balance.
    On the amount-in paths the winning quote is returned too, priced with
    ``slippage_pct`` when given, so the caller can reuse it.
    """
    gas_reserve = await estimate_gas_reserve(gas)
    max_trade = partition_balance(available_wei, gas_reserve)
    logger.info(
        "[sizing] available=%s reserve=%s max_trade=%s",
        Web3.from_wei(available_wei, "ether"),
        Web3.from_wei(gas_reserve, "ether"),
        Web3.from_wei(max_trade, "ether"),
    )

    if target_output is not None:
        needed, fee = await quotes.calculate_input_for_target_output(token_address, target_output)
        if needed > max_trade:
            logger.warning(
                "[sizing] need %s ETH for target but only %s available, using maximum",
                Web3.from_wei(needed, "ether"),
                Web3.from_wei(max_trade, "ether"),
            )
            return SafeTradeAmount(trade_amount=max_trade, fee=fee, gas_reserve=gas_reserve)
        return SafeTradeAmount(trade_amount=needed, fee=fee, gas_reserve=gas_reserve)

    trade_amount = max_trade
    if requested_wei is not None:
        if requested_wei > max_trade:
            logger.warning(
                "[sizing] requested %s ETH exceeds safe maximum %s, capping",
                Web3.from_wei(requested_wei, "ether"),
                Web3.from_wei(max_trade, "ether"),
            )
        trade_amount = min(requested_wei, max_trade)

    if slippage_pct is None:
        best = await quotes.find_best_fee_and_quote(token_address, trade_amount)
    else:
        best = await quotes.find_best_fee_and_quote(token_address, trade_amount, slippage_pct)
    return SafeTradeAmount(
        trade_amount=trade_amount, fee=best.fee, gas_reserve=gas_reserve, best=best
    )
