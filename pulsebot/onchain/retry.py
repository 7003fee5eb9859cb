import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from pulsebot.errors import TradeError

logger = logging.getLogger("pulsebot.retry")

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


class RetryExhausted(Exception):
    """Raised by retry_async once every attempt has failed."""

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"After {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, TradeError):
        return exc.retryable
    return True


def backoff_delays(attempts: int, base_delay: float, factor: float = 2.0) -> list[float]:
    """Delays slept between attempts: base, base*factor, ... (attempts - 1 entries)."""
    return [base_delay * factor**i for i in range(max(0, attempts - 1))]


async def retry_async(
    op: Callable[[int], Awaitable[T]],
    *,
    attempts: int,
    base_delay: float,
    factor: float = 2.0,
    retryable: Callable[[BaseException], bool] = is_retryable,
    sleep: Optional[Sleep] = None,
    label: str = "op",
) -> T:
    """
    Run ``op(attempt)`` until it succeeds, with exponential backoff between tries.

    Non-retryable errors propagate immediately. When every attempt fails a
    RetryExhausted carrying the attempt count and the last error is raised.
    """
    sleep = sleep or asyncio.sleep
    delays = backoff_delays(attempts, base_delay, factor)
    last_error: BaseException | None = None

    for attempt in range(1, attempts + 1):
        try:
            return await op(attempt)
        except Exception as e:
            last_error = e
            if not retryable(e):
                raise
            logger.warning("[%s] attempt %d/%d failed: %s", label, attempt, attempts, e)
            if attempt < attempts:
                delay = delays[attempt - 1]
                logger.info("[%s] waiting %.1fs before retry", label, delay)
                await sleep(delay)

    assert last_error is not None
    raise RetryExhausted(attempts, last_error)
