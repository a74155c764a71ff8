"""Endpoint registry — sole owner of endpoint health and metrics.

Holds one ``EndpointRecord`` per configured address plus the round-robin
cursor.  Every read and update goes through a single ``asyncio.Lock`` so
concurrent requests on one client cannot race on counters, breaker
state, or cursor advancement.

Usage::

    registry = EndpointRegistry(["https://a", "https://b"], failure_threshold=3)
    endpoint = await registry.select_next()
    await registry.begin_attempt(endpoint)
    # ... request ...
    await registry.record_success(endpoint, duration_ms=12.5)
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Sequence

from fallback_rpc.models.endpoint import EndpointRecord
from fallback_rpc.models.schemas import EndpointHealth
from fallback_rpc.resilience.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)


class EndpointRegistry:
    """Ordered endpoint records with lazy circuit-breaker recovery.

    Args:
        urls:               Endpoint addresses; the first is the primary.
        failure_threshold:  Consecutive failures before an endpoint's circuit opens.
        recovery_timeout:   Seconds after the last failure before an open
                            circuit may be closed again.
        clock:              Monotonic time source in seconds.
    """

    def __init__(
        self,
        urls: Sequence[str],
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not urls:
            raise ValueError("At least one endpoint URL is required")
        self._clock = clock
        self._endpoints: tuple[EndpointRecord, ...] = tuple(
            EndpointRecord(
                url=url,
                index=index,
                breaker=CircuitBreaker(
                    name=url,
                    failure_threshold=failure_threshold,
                    recovery_timeout=recovery_timeout,
                    clock=clock,
                ),
            )
            for index, url in enumerate(urls)
        )
        self._cursor = 0
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._endpoints)

    @property
    def endpoints(self) -> tuple[EndpointRecord, ...]:
        return self._endpoints

    @property
    def cursor(self) -> int:
        """Index where the next selection scan starts."""
        return self._cursor

    # ── Selection ────────────────────────────────────────────────────

    async def select_next(self) -> EndpointRecord | None:
        """Return the next endpoint whose circuit is closed, or ``None``.

        Open circuits whose cool-down has elapsed are closed first.  The
        scan starts at the cursor and wraps; the cursor then moves one
        past the selected endpoint.
        """
        async with self._lock:
            now = self._clock()
            for endpoint in self._endpoints:
                if endpoint.breaker.try_reset(now):
                    logger.info("Circuit breaker reset for: %s", endpoint.url)

            count = len(self._endpoints)
            for offset in range(count):
                index = (self._cursor + offset) % count
                endpoint = self._endpoints[index]
                if not endpoint.circuit_open:
                    self._cursor = (index + 1) % count
                    return endpoint
            return None

    async def reset_cursor(self) -> None:
        """Pin the next selection back to the primary endpoint."""
        async with self._lock:
            self._cursor = 0

    # ── Outcome bookkeeping ──────────────────────────────────────────

    async def begin_attempt(self, endpoint: EndpointRecord) -> None:
        """Count one attempt against *endpoint* before its outcome is known."""
        async with self._lock:
            endpoint.metrics.total_requests += 1

    async def record_success(self, endpoint: EndpointRecord, duration_ms: float | None = None) -> None:
        """Mark *endpoint* healthy and close its circuit.

        When *duration_ms* is given the outcome is also counted in the
        endpoint's metrics.
        """
        async with self._lock:
            if duration_ms is not None:
                endpoint.metrics.record(duration_ms, success=True)
            endpoint.healthy = True
            endpoint.breaker.on_success()

    async def record_failure(self, endpoint: EndpointRecord, duration_ms: float | None = None) -> None:
        """Mark *endpoint* failed, opening its circuit at the threshold."""
        async with self._lock:
            if duration_ms is not None:
                endpoint.metrics.record(duration_ms, success=False)
            endpoint.healthy = False
            if endpoint.breaker.on_failure():
                logger.warning(
                    "Circuit breaker opened for: %s (%d consecutive failures)",
                    endpoint.url,
                    endpoint.failure_count,
                )

    # ── Reporting ────────────────────────────────────────────────────

    def snapshots(self) -> list[EndpointHealth]:
        """Return a health snapshot for every endpoint, in configured order."""
        return [EndpointHealth.from_record(endpoint) for endpoint in self._endpoints]
