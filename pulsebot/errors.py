class TradeError(Exception):
    """Base class for every failure raised by the trade-execution core."""

    retryable = True


# --- configuration ---


class ConfigurationError(TradeError):
    retryable = False


class TradingDisabledError(ConfigurationError):
    def __init__(self, chain_type: str):
        super().__init__(f"Trading disabled for {chain_type} networks")
        self.chain_type = chain_type


# --- validation ---


class InvalidAddressError(TradeError):
    retryable = False

    def __init__(self, address: str):
        super().__init__(f"Invalid token address: {address}")
        self.address = address


class TradeTooSmallError(TradeError):
    retryable = False

    def __init__(self, amount_eth: float, minimum_eth: float):
        super().__init__(
            f"Trade amount too small: {amount_eth} ETH "
            f"(minimum: {minimum_eth} ETH for reliable DEX swaps)"
        )
        self.amount_eth = amount_eth
        self.minimum_eth = minimum_eth


class InsufficientBalanceError(TradeError):
    """Balance does not cover the gas reserve plus safety buffer."""

    retryable = False

    def __init__(self, available_wei: int, required_wei: int):
        super().__init__(
            f"Insufficient ETH. Need at least {required_wei / 10**18:.6f} for gas + buffer, "
            f"have {available_wei / 10**18:.6f}"
        )
        self.available_wei = available_wei
        self.required_wei = required_wei


class InsufficientFundsError(TradeError):
    """Balance does not cover the requested amount plus a gas allowance."""

    retryable = False

    def __init__(self, balance_wei: int, needed_wei: int):
        super().__init__(
            f"Insufficient balance: {balance_wei / 10**18:.6f} ETH available, "
            f"need {needed_wei / 10**18:.6f} ETH including gas"
        )
        self.balance_wei = balance_wei
        self.needed_wei = needed_wei


# --- transient ---


class GasEstimationError(TradeError):
    def __init__(self, attempts: int, last_error: str):
        super().__init__(f"Gas estimation failed after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class NoLiquidityError(TradeError):
    def __init__(self, token: str, detail: str = "on any fee tier"):
        super().__init__(f"No liquidity found for WETH -> {token} {detail}")
        self.token = token


class SubmissionError(TradeError):
    pass


# --- on-chain ---


class TransactionRevertedError(TradeError):
    def __init__(self, tx_hash: str, receipt: dict | None = None):
        super().__init__(f"Transaction failed on-chain. Hash: {tx_hash}")
        self.tx_hash = tx_hash
        self.receipt = receipt or {}


class ConfirmationTimeoutError(TradeError):
    def __init__(self, tx_hash: str, timeout_sec: float):
        super().__init__(f"Transaction confirmation timeout ({timeout_sec:.0f}s): {tx_hash}")
        self.tx_hash = tx_hash
        self.timeout_sec = timeout_sec


# --- venue exhaustion ---


class VenueExhaustedError(TradeError):
    retryable = False

    def __init__(self, primary_error: str, fallback_error: str):
        super().__init__(
            f"DEX swap failed. Uniswap V3: {primary_error} | Uniswap V2: {fallback_error}"
        )
        self.primary_error = primary_error
        self.fallback_error = fallback_error


class CustodialTradeError(TradeError):
    retryable = False


_REASONS = [
    (TradingDisabledError, "trading_disabled"),
    (ConfigurationError, "configuration_error"),
    (InvalidAddressError, "invalid_address"),
    (TradeTooSmallError, "amount_below_minimum"),
    (InsufficientBalanceError, "insufficient_balance"),
    (InsufficientFundsError, "insufficient_balance"),
    (GasEstimationError, "swap_would_revert"),
    (NoLiquidityError, "no_liquidity"),
    (TransactionRevertedError, "transaction_reverted"),
    (ConfirmationTimeoutError, "confirmation_timeout"),
    (VenueExhaustedError, "all_venues_failed"),
    (CustodialTradeError, "custodial_trade_failed"),
    (SubmissionError, "submission_failed"),
]


def classify_error(exc: BaseException) -> str:
    """Short reason string safe to show to an end user."""
    for cls, reason in _REASONS:
        if isinstance(exc, cls):
            return reason
    return "unknown_error"
