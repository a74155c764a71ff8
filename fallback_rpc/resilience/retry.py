"""Local retry with exponential backoff against a single endpoint."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from fallback_rpc.core.errors import FallbackRPCError
from fallback_rpc.resilience.classifier import is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(base_delay: float, attempt: int) -> float:
    """Delay before the retry following 0-based *attempt*: ``base * 2**attempt``."""
    return base_delay * (2**attempt)


class RetryExecutor:
    """Runs one request up to ``retries`` times against the same endpoint.

    A failure is retried only if it is classified retryable and attempts
    remain; otherwise the error propagates immediately.  Exhausting every
    attempt re-raises the last error.  Holds no per-call state, so one
    executor may serve concurrent requests.

    Args:
        retries:    Total local attempts (at least 1).
        base_delay: Seconds before the first retry; doubles each time.
        sleep:      Awaitable sleep, injectable for tests.
    """

    def __init__(
        self,
        retries: int,
        base_delay: float,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        if retries < 1:
            raise ValueError("retries must be at least 1")
        self.retries = retries
        self.base_delay = base_delay
        self._sleep = sleep

    async def execute(self, send: Callable[[], Awaitable[T]], label: str) -> T:
        """Await ``send()`` with retries; *label* names the endpoint in logs."""
        for attempt in range(self.retries):
            try:
                return await send()
            except Exception as exc:
                if attempt < self.retries - 1 and is_retryable(exc):
                    delay = backoff_delay(self.base_delay, attempt)
                    logger.warning(
                        "%s failed (attempt %d/%d), retrying in %.3fs: %s",
                        label,
                        attempt + 1,
                        self.retries,
                        delay,
                        exc,
                    )
                    await self._sleep(delay)
                    continue
                logger.info("%s gave up after %d attempt(s): %s", label, attempt + 1, exc)
                raise

        raise FallbackRPCError(f"{label}: no attempt made (retries={self.retries})")
