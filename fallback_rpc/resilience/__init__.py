"""Resilience patterns: circuit breaker, retry, and error classification.

Provides the per-endpoint circuit breaker, the local exponential-backoff
retry loop, and the retryability classifier shared by both the retry
loop and endpoint failover.
"""

from fallback_rpc.resilience.circuit_breaker import CircuitBreaker, CircuitState
from fallback_rpc.resilience.classifier import TransportFailure, is_retryable
from fallback_rpc.resilience.retry import RetryExecutor, backoff_delay

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "RetryExecutor",
    "TransportFailure",
    "backoff_delay",
    "is_retryable",
]
