from datetime import datetime
from typing import Annotated, Literal, Optional, Protocol, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from pulsebot.chains import NetworkDescriptor

PositionStatus = Literal["holding", "sold", "failed"]
TradeStatus = Literal["executed", "skipped", "failed"]
Urgency = Literal["standard", "fast", "rapid"]


class TradeRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str
    tweet: str
    influencer: str
    tweet_id: str


class ResolvedToken(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    symbol: str
    name: str
    address: str
    decimals: int = 18
    network: NetworkDescriptor
    is_valid: bool = True
    confidence: int = Field(100, ge=0, le=100)


class TokenResolution(BaseModel):
    found: bool
    token: Optional[ResolvedToken] = None
    reason: str = ""


# --- gas ---


class LegacyGas(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal[0] = 0
    gas_limit: int
    gas_price: int

    @property
    def fee_per_gas(self) -> int:
        return self.gas_price

    def to_tx_params(self) -> dict:
        return {"gas": self.gas_limit, "gasPrice": self.gas_price}


class FeeMarketGas(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal[2] = 2
    gas_limit: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int

    @property
    def fee_per_gas(self) -> int:
        return self.max_fee_per_gas

    def to_tx_params(self) -> dict:
        return {
            "gas": self.gas_limit,
            "maxFeePerGas": self.max_fee_per_gas,
            "maxPriorityFeePerGas": self.max_priority_fee_per_gas,
            "type": 2,
        }


GasConfig = Annotated[Union[LegacyGas, FeeMarketGas], Field(discriminator="type")]


# --- quotes / sizing ---


class QuoteResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    fee: int
    quote: int
    amount_out_min: int

    @model_validator(mode="after")
    def _min_out_bounded(self):
        if not 0 <= self.amount_out_min <= self.quote:
            raise ValueError("amount_out_min must be within [0, quote]")
        return self


class SafeTradeAmount(BaseModel):
    model_config = ConfigDict(frozen=True)

    trade_amount: int
    fee: int
    gas_reserve: int
    # quote for trade_amount; unset on the exact-output path
    best: Optional[QuoteResult] = None


class SwapOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    transaction_hash: Optional[str] = None
    error: Optional[str] = None
    to_token_amount: Optional[str] = None
    attempts: int = 1

    @model_validator(mode="after")
    def _hash_iff_success(self):
        if self.success and not self.transaction_hash:
            raise ValueError("successful swap requires a transaction hash")
        if not self.success and not self.error:
            raise ValueError("failed swap requires an error")
        return self

    @classmethod
    def ok(cls, tx_hash: str, to_token_amount: str | None = None, attempts: int = 1):
        return cls(
            success=True,
            transaction_hash=tx_hash,
            to_token_amount=to_token_amount,
            attempts=attempts,
        )

    @classmethod
    def failed(cls, error: str, attempts: int):
        return cls(success=False, error=error, attempts=attempts)


# --- positions ---


class TradingPosition(BaseModel):
    id: str
    token: str
    amount: float
    purchase_price: float
    purchase_time: datetime
    sell_time: Optional[datetime] = None
    sell_price: Optional[float] = None
    profit: Optional[float] = None
    tweet: str
    influencer: str
    status: PositionStatus = "holding"


class TradeResult(BaseModel):
    status: TradeStatus
    reason: str
    position: Optional[TradingPosition] = None
    transaction_hash: Optional[str] = None
    explorer_url: Optional[str] = None


# --- collaborators ---


class TokenResolver(Protocol):
    async def resolve_token_address(self, symbol: str) -> TokenResolution: ...
