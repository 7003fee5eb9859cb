import logging
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Literal, Optional

logger = logging.getLogger("pulsebot.notify")

ToastType = Literal["success", "error", "info", "trade-buy", "trade-sell"]

MAX_TOASTS = 50
DEFAULT_WINDOW_SEC = 30.0


@dataclass
class Toast:
    type: ToastType
    title: str
    message: str
    duration_ms: int = 6000
    data: dict = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: float = field(default_factory=time.time)


class ToastService:
    """In-memory, fire-and-forget notification sink; keeps the last 50 events."""

    def __init__(self, maxlen: int = MAX_TOASTS):
        self._toasts: deque[Toast] = deque(maxlen=maxlen)

    def add(self, toast: Toast) -> Toast:
        self._toasts.append(toast)
        logger.info("[toast] %s - %s", toast.type, toast.title)
        return toast

    def get_recent(self, since: Optional[float] = None) -> list[Toast]:
        cutoff = since if since is not None else time.time() - DEFAULT_WINDOW_SEC
        return [t for t in self._toasts if t.timestamp > cutoff]

    def all(self) -> list[Toast]:
        return list(self._toasts)

    def clear(self) -> None:
        self._toasts.clear()

    def add_info(self, title: str, message: str, **data) -> Toast:
        return self.add(Toast("info", title, message, data=data))

    def add_success(self, title: str, message: str, **data) -> Toast:
        return self.add(Toast("success", title, message, data=data))

    def add_error(self, title: str, message: str, **data) -> Toast:
        return self.add(Toast("error", title, message, duration_ms=10_000, data=data))

    def add_trade_buy(
        self,
        token: str,
        amount: str,
        influencer: str,
        price: Optional[str] = None,
        tx_hash: Optional[str] = None,
        explorer_url: Optional[str] = None,
    ) -> Toast:
        return self.add(
            Toast(
                "trade-buy",
                f"Bought {token}",
                f"Purchased {amount} ETH worth of {token}",
                duration_ms=8000,
                data={
                    "token": token,
                    "amount": amount,
                    "influencer": influencer,
                    "price": price,
                    "tx_hash": tx_hash,
                    "explorer_url": explorer_url,
                },
            )
        )

    def add_trade_sell(
        self,
        token: str,
        amount: str,
        profit: Optional[str] = None,
        price: Optional[str] = None,
        tx_hash: Optional[str] = None,
        explorer_url: Optional[str] = None,
    ) -> Toast:
        return self.add(
            Toast(
                "trade-sell",
                f"Sold {token}",
                f"Liquidated {token} position",
                duration_ms=8000,
                data={
                    "token": token,
                    "amount": amount,
                    "profit": profit,
                    "price": price,
                    "tx_hash": tx_hash,
                    "explorer_url": explorer_url,
                },
            )
        )
