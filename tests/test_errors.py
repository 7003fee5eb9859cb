from pulsebot.errors import (
    ConfigurationError,
    ConfirmationTimeoutError,
    GasEstimationError,
    InsufficientBalanceError,
    NoLiquidityError,
    TradeTooSmallError,
    TradingDisabledError,
    TransactionRevertedError,
    VenueExhaustedError,
    classify_error,
)


def test_classify_error():
    assert classify_error(TradingDisabledError("base")) == "trading_disabled"
    assert classify_error(ConfigurationError("x")) == "configuration_error"
    assert classify_error(TradeTooSmallError(0.001, 0.0015)) == "amount_below_minimum"
    assert classify_error(InsufficientBalanceError(1, 2)) == "insufficient_balance"
    assert classify_error(GasEstimationError(3, "reverted")) == "swap_would_revert"
    assert classify_error(NoLiquidityError("0xabc")) == "no_liquidity"
    assert classify_error(TransactionRevertedError("0xabc")) == "transaction_reverted"
    assert classify_error(ConfirmationTimeoutError("0xabc", 300)) == "confirmation_timeout"
    assert classify_error(RuntimeError("raw rpc text")) == "unknown_error"


def test_venue_exhausted_carries_both_errors():
    e = VenueExhaustedError("v3 boom", "v2 boom")
    assert classify_error(e) == "all_venues_failed"
    assert "Uniswap V3: v3 boom" in str(e)
    assert "Uniswap V2: v2 boom" in str(e)
    assert not e.retryable


def test_retryable_flags():
    assert NoLiquidityError("0x").retryable
    assert not TradeTooSmallError(0.1, 0.2).retryable
    assert not InsufficientBalanceError(1, 2).retryable
