"""Health snapshot models returned by ``FallbackRPCClient.get_health_status``."""

from __future__ import annotations

from pydantic import BaseModel, Field

from fallback_rpc.models.endpoint import EndpointRecord


class EndpointMetricsSnapshot(BaseModel):
    """Traffic counters for one endpoint."""

    total_requests: int = Field(..., ge=0)
    total_success: int = Field(..., ge=0)
    total_failure: int = Field(..., ge=0)
    average_duration_ms: int = Field(..., ge=0)  # Rounded running mean


class EndpointHealth(BaseModel):
    """Point-in-time health of one endpoint, ready for rendering."""

    url: str
    healthy: bool
    failure_count: int
    circuit_open: bool
    metrics: EndpointMetricsSnapshot

    @classmethod
    def from_record(cls, record: EndpointRecord) -> EndpointHealth:
        metrics = record.metrics
        return cls(
            url=record.url,
            healthy=record.healthy,
            failure_count=record.failure_count,
            circuit_open=record.circuit_open,
            metrics=EndpointMetricsSnapshot(
                total_requests=metrics.total_requests,
                total_success=metrics.total_success,
                total_failure=metrics.total_failure,
                average_duration_ms=round(metrics.average_duration_ms),
            ),
        )
