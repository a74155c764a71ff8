"""Endpoint records, one per configured RPC address.

Records are created once at client construction, in configured order,
and live for the lifetime of the client.  They are mutated only through
``EndpointRegistry``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from fallback_rpc.resilience.circuit_breaker import CircuitBreaker


@dataclass
class EndpointMetrics:
    """Cumulative traffic counters for one endpoint.

    ``total_requests`` counts attempts as they start; ``total_success`` and
    ``total_failure`` count terminal outcomes.  ``average_duration_ms`` is
    the running mean over every completed outcome, failures included.
    """

    total_requests: int = 0
    total_success: int = 0
    total_failure: int = 0
    average_duration_ms: float = 0.0

    @property
    def completed(self) -> int:
        return self.total_success + self.total_failure

    def record(self, duration_ms: float, *, success: bool) -> None:
        """Count one outcome and fold *duration_ms* into the running mean."""
        if success:
            self.total_success += 1
        else:
            self.total_failure += 1

        count = self.completed
        self.average_duration_ms = (self.average_duration_ms * (count - 1) + duration_ms) / count


@dataclass
class EndpointRecord:
    """Live state for one configured endpoint.

    Attributes:
        url:      Base address of the endpoint.
        index:    Position in the configured list (0 is the primary).
        breaker:  The endpoint's circuit breaker.
        healthy:  Last-known-good flag.
        metrics:  Cumulative counters.
    """

    url: str
    index: int
    breaker: CircuitBreaker
    healthy: bool = True
    metrics: EndpointMetrics = field(default_factory=EndpointMetrics)

    @property
    def failure_count(self) -> int:
        return self.breaker.failure_count

    @property
    def last_failure_time(self) -> float | None:
        return self.breaker.last_failure_time

    @property
    def circuit_open(self) -> bool:
        return self.breaker.is_open
