"""Settings for the fallback RPC client.

Immutable configuration snapshot handed to ``FallbackRPCClient``.
Fields can be supplied directly (e.g. from parsed command-line flags) or
loaded from environment variables with the ``FALLBACK_RPC_`` prefix.
"""

from __future__ import annotations

from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode


class Settings(BaseSettings):
    """Fallback RPC client configuration.

    All fields can be overridden by environment variables prefixed with
    ``FALLBACK_RPC_``.  For example,
    ``FALLBACK_RPC_RPC_URLS=https://rpc1.example,https://rpc2.example``
    configures two endpoints, the first one being the primary.
    """

    # ── Endpoints ───────────────────────────────────────────────────
    # Ordered: index 0 is the primary endpoint
    RPC_URLS: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["http://localhost:8000"],
        min_length=1,
    )
    HEADERS: dict[str, str] = Field(default_factory=dict)

    # ── Requests ────────────────────────────────────────────────────
    TIMEOUT_SECONDS: float = Field(default=30.0, gt=0)  # Applied per attempt
    RETRIES: int = Field(default=3, ge=1)  # Local attempts per endpoint
    RETRY_DELAY_SECONDS: float = Field(default=1.0, gt=0)  # Base delay (exponential backoff)

    # ── Circuit breaker ─────────────────────────────────────────────
    CIRCUIT_BREAKER_THRESHOLD: int = Field(default=5, ge=1)  # Consecutive failures before OPEN
    CIRCUIT_BREAKER_TIMEOUT_SECONDS: float = Field(default=60.0, gt=0)  # Cool-down before reselection

    # ── Health checks ───────────────────────────────────────────────
    HEALTH_CHECK_PATH: str = "/health"
    HEALTH_CHECK_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0)
    # Health-check outcomes also feed the request counters used for success rates
    HEALTH_CHECK_COUNTS_AS_TRAFFIC: bool = True

    model_config = {
        "env_prefix": "FALLBACK_RPC_",
        "frozen": True,
    }

    @field_validator("RPC_URLS", mode="before")
    @classmethod
    def split_urls(cls, v: object) -> object:
        """Accept a comma-separated string as well as a list of URLs."""
        if isinstance(v, str):
            v = v.split(",")
        if isinstance(v, (list, tuple)):
            stripped = [url.strip() if isinstance(url, str) else url for url in v]
            return [url for url in stripped if url != ""]
        return v
