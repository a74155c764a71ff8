"""FallbackRPCClient — failover dispatch across ranked RPC endpoints.

Each request goes to the first eligible endpoint (round-robin from the
cursor, skipping open circuits).  Against that endpoint it gets up to
``RETRIES`` local attempts with exponential backoff.  If the endpoint
still fails with a transient error, the next endpoint is tried; a
terminal error (e.g. a 4xx) aborts the whole request immediately since
every endpoint would reject it the same way.  Any success pins the
cursor back to the primary endpoint.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from fallback_rpc.core.config import Settings
from fallback_rpc.core.errors import (
    AllEndpointsFailedError,
    AllEndpointsUnavailableError,
    RPCTransportError,
    encode_payload,
)
from fallback_rpc.models.endpoint import EndpointRecord
from fallback_rpc.models.schemas import EndpointHealth
from fallback_rpc.registry import EndpointRegistry
from fallback_rpc.resilience.classifier import is_retryable
from fallback_rpc.resilience.retry import RetryExecutor

logger = logging.getLogger(__name__)


class FallbackRPCClient:
    """JSON-over-HTTP client with failover, retry, and circuit breakers.

    Uses one ``httpx.AsyncClient`` per configured endpoint for connection
    pooling.  Not tied to any RPC dialect: payloads and response bodies
    are passed through untouched.

    Args:
        settings:  Configuration snapshot (endpoints, timeouts, breaker).
        transport: Optional httpx transport shared by every endpoint client
                   (e.g. ``httpx.MockTransport`` in tests).
        sleep:     Awaitable sleep used between local retries.
        clock:     Monotonic time source in seconds, used for circuit
                   cool-downs and request durations.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings
        self._clock = clock
        self._registry = EndpointRegistry(
            settings.RPC_URLS,
            failure_threshold=settings.CIRCUIT_BREAKER_THRESHOLD,
            recovery_timeout=settings.CIRCUIT_BREAKER_TIMEOUT_SECONDS,
            clock=clock,
        )
        self._retry = RetryExecutor(
            retries=settings.RETRIES,
            base_delay=settings.RETRY_DELAY_SECONDS,
            sleep=sleep,
        )

        headers = {"Content-Type": "application/json", **settings.HEADERS}
        # Indexed like the registry's records
        self._clients: list[httpx.AsyncClient] = [
            httpx.AsyncClient(
                base_url=endpoint.url,
                timeout=settings.TIMEOUT_SECONDS,
                headers=headers,
                transport=transport,
            )
            for endpoint in self._registry.endpoints
        ]

        logger.info("RPC client initialized with %d endpoint(s)", len(self._registry))
        for endpoint in self._registry.endpoints:
            logger.info("   [%d] %s", endpoint.index + 1, endpoint.url)

    @property
    def registry(self) -> EndpointRegistry:
        """Expose the endpoint registry for health/metrics reporting."""
        return self._registry

    def _elapsed_ms(self, start: float) -> float:
        return (self._clock() - start) * 1000

    # ── Request path ─────────────────────────────────────────────────

    async def request(self, path: str, payload: Any = None) -> Any:
        """POST *payload* as JSON to *path* on the best available endpoint.

        Args:
            path:    Path appended to the selected endpoint's base address.
            payload: JSON-serializable request body (``None`` sends no body).

        Returns:
            The decoded response body: JSON value, text for non-JSON
            bodies, or ``None`` for an empty body.

        Raises:
            AllEndpointsUnavailableError: Every endpoint's circuit is open.
            AllEndpointsFailedError: Every endpoint failed transiently.
            PayloadEncodingError: *payload* cannot be encoded as JSON.
            RPCTransportError: A terminal failure on the endpoint tried.
        """
        body = encode_payload(payload)
        start = self._clock()
        last_exc: Exception | None = None

        for _ in range(len(self._registry)):
            endpoint = await self._registry.select_next()
            if endpoint is None:
                raise AllEndpointsUnavailableError()

            await self._registry.begin_attempt(endpoint)
            logger.info("Attempting RPC request to: %s", endpoint.url)
            attempt_start = self._clock()

            try:
                response = await self._retry.execute(
                    lambda: self._post(endpoint, path, body),
                    endpoint.url,
                )
            except Exception as exc:
                last_exc = exc
                await self._registry.record_failure(endpoint, self._elapsed_ms(attempt_start))

                if is_retryable(exc):
                    logger.warning("RPC request failed: %s (%s)", endpoint.url, exc)
                    continue
                # Terminal failure: no failover
                logger.warning("RPC request rejected by %s, not failing over: %s", endpoint.url, exc)
                raise

            duration_ms = self._elapsed_ms(attempt_start)
            await self._registry.record_success(endpoint, duration_ms)
            await self._registry.reset_cursor()
            logger.info("RPC request successful (%.0fms)", duration_ms)
            return self._parse_body(response)

        logger.error("All RPC endpoints failed after %.0fms", self._elapsed_ms(start))
        raise AllEndpointsFailedError(last_exc)

    async def _post(self, endpoint: EndpointRecord, path: str, body: bytes | None) -> httpx.Response:
        """Send one POST; HTTP errors and transport faults become ``RPCTransportError``."""
        client = self._clients[endpoint.index]
        try:
            response = await client.post(path, content=body)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise RPCTransportError.from_httpx(exc) from exc
        return response

    def _parse_body(self, response: httpx.Response) -> Any:
        """Decode a response body without imposing a schema."""
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    # ── Health ───────────────────────────────────────────────────────

    def get_health_status(self) -> list[EndpointHealth]:
        """Return the current per-endpoint health snapshot (no side effects)."""
        return self._registry.snapshots()

    async def perform_health_checks(self) -> None:
        """Health-check every endpoint concurrently and record each outcome.

        Completes once every check has finished.  Check failures only
        update the endpoint's recorded health; they never raise.
        """
        logger.info("Performing health checks on %d RPC endpoint(s)", len(self._registry))
        await asyncio.gather(
            *(self._check_endpoint(endpoint) for endpoint in self._registry.endpoints),
            return_exceptions=True,
        )

    async def _check_endpoint(self, endpoint: EndpointRecord) -> None:
        counts_as_traffic = self.settings.HEALTH_CHECK_COUNTS_AS_TRAFFIC
        client = self._clients[endpoint.index]

        if counts_as_traffic:
            await self._registry.begin_attempt(endpoint)
        start = self._clock()
        try:
            response = await client.get(
                self.settings.HEALTH_CHECK_PATH,
                timeout=self.settings.HEALTH_CHECK_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
        except Exception as exc:
            if isinstance(exc, httpx.HTTPError):
                exc = RPCTransportError.from_httpx(exc)
            duration_ms = self._elapsed_ms(start) if counts_as_traffic else None
            await self._registry.record_failure(endpoint, duration_ms)
            logger.info("Health check failed: %s (%s)", endpoint.url, exc)
            return

        duration_ms = self._elapsed_ms(start) if counts_as_traffic else None
        await self._registry.record_success(endpoint, duration_ms)
        logger.info("Health check passed: %s", endpoint.url)

    # ── Lifecycle ────────────────────────────────────────────────────

    async def close(self) -> None:
        """Close all pooled httpx clients."""
        for client in self._clients:
            await client.aclose()

    async def __aenter__(self) -> FallbackRPCClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
