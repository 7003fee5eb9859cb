import random
import uuid
from datetime import datetime, timezone

from pulsebot.types import TradeRequest, TradingPosition

# Placeholder USD prices until a real feed is wired in; unknown symbols price at 1.
MOCK_PRICES = {
    "ETH": 2500,
    "SOL": 100,
    "ADA": 0.45,
    "DOT": 7.2,
    "LINK": 15,
    "UNI": 6.5,
    "AAVE": 95,
    "MATIC": 0.85,
    "AVAX": 37,
    "EIGEN": 3.85,
}

TEST_TRADE_USD = 1.0


def mock_token_price(symbol: str) -> float:
    return float(MOCK_PRICES.get(symbol.upper(), 1))


def mock_tx_hash() -> str:
    return "0x" + "".join(random.choice("0123456789abcdef") for _ in range(64))


def simulate_trade(request: TradeRequest) -> tuple[TradingPosition, str]:
    """Pretend to buy TEST_TRADE_USD worth of the token; returns the position and a fake hash."""
    price = mock_token_price(request.token)
    position = TradingPosition(
        id=uuid.uuid4().hex,
        token=request.token,
        amount=TEST_TRADE_USD / price,
        purchase_price=price,
        purchase_time=datetime.now(timezone.utc),
        tweet=request.tweet,
        influencer=request.influencer,
        status="holding",
    )
    return position, mock_tx_hash()
