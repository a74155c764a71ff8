"""Per-endpoint circuit breaker.

Two-state breaker with lazy recovery:

    CLOSED  →  (failure_count reaches threshold)         →  OPEN
    OPEN    →  (try_reset() after recovery_timeout)      →  CLOSED
    any     →  (on_success)                              →  CLOSED

There is no half-open trial state and no background timer.  An open
breaker stays open until ``try_reset()`` observes that the cool-down has
elapsed; the endpoint registry calls it on every selection pass.  A
failure after such a reset reopens the breaker once the threshold is hit
again.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from enum import Enum


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"


class CircuitBreaker:
    """Consecutive-failure circuit breaker for a single endpoint.

    Not synchronized on its own: the owning ``EndpointRegistry`` serializes
    every call.

    Args:
        name:               Endpoint address (for logging/snapshots).
        failure_threshold:  Consecutive failures before opening the circuit.
        recovery_timeout:   Seconds after the last failure before the circuit
                            may close again.
        clock:              Monotonic time source in seconds.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: float | None = None

    # ── Public properties ────────────────────────────────────────────

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == CircuitState.OPEN

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def last_failure_time(self) -> float | None:
        return self._last_failure_time

    # ── Transitions ──────────────────────────────────────────────────

    def on_success(self) -> None:
        """Record a success: always back to CLOSED with a clean count."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0

    def on_failure(self) -> bool:
        """Record a failure.

        Returns ``True`` only when this failure moved the circuit from
        CLOSED to OPEN.
        """
        self._failure_count += 1
        self._last_failure_time = self._clock()

        if self._state == CircuitState.CLOSED and self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            return True
        return False

    def try_reset(self, now: float | None = None) -> bool:
        """Close an OPEN circuit whose cool-down has elapsed.

        Returns ``True`` if the circuit was closed by this call.
        """
        if self._state != CircuitState.OPEN or self._last_failure_time is None:
            return False
        if now is None:
            now = self._clock()
        if now - self._last_failure_time > self.recovery_timeout:
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            return True
        return False

    def reset(self) -> None:
        """Force-reset the circuit breaker to CLOSED state."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0

    def snapshot(self) -> dict:
        """Return a JSON-serializable snapshot."""
        return {
            "name": self.name,
            "state": self._state.value,
            "failure_count": self._failure_count,
            "last_failure_time": self._last_failure_time,
        }
