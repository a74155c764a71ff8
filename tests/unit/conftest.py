"""Shared fixtures for unit tests.

Time is fully simulated: ``clock`` is a manually advanced monotonic
source and ``sleep`` records backoff delays (advancing the clock) instead
of actually sleeping.
"""

from collections.abc import Callable

import pytest

from fallback_rpc.core.config import Settings


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep stand-in that records delays and advances the clock."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        self.clock.advance(delay)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep(clock: FakeClock) -> RecordingSleep:
    return RecordingSleep(clock)


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Build Settings with fast, test-friendly defaults plus overrides."""

    def _make(**overrides) -> Settings:
        values = {
            "RPC_URLS": ["https://rpc-a.example", "https://rpc-b.example"],
            "RETRIES": 1,
            "RETRY_DELAY_SECONDS": 0.1,
            "CIRCUIT_BREAKER_THRESHOLD": 5,
            "CIRCUIT_BREAKER_TIMEOUT_SECONDS": 60.0,
        }
        values.update(overrides)
        return Settings(**values)

    return _make
