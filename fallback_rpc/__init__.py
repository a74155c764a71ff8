"""Fallback-aware RPC client: failover, retry with backoff, circuit breakers."""

from fallback_rpc.client import FallbackRPCClient
from fallback_rpc.core.config import Settings
from fallback_rpc.core.errors import (
    AllEndpointsFailedError,
    AllEndpointsUnavailableError,
    FallbackRPCError,
    PayloadEncodingError,
    RPCTransportError,
    StructuredErrorResponse,
    TransportFault,
)
from fallback_rpc.models.schemas import EndpointHealth, EndpointMetricsSnapshot

__all__ = [
    "AllEndpointsFailedError",
    "AllEndpointsUnavailableError",
    "EndpointHealth",
    "EndpointMetricsSnapshot",
    "FallbackRPCClient",
    "FallbackRPCError",
    "PayloadEncodingError",
    "RPCTransportError",
    "Settings",
    "StructuredErrorResponse",
    "TransportFault",
]
