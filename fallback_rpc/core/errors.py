"""Error hierarchy for the fallback RPC client.

``RPCTransportError`` is the normalized shape every transport failure is
converted into before classification: optional HTTP status, optional
transport fault code, and the message text.  The two exhaustion errors
are synthesized by the dispatcher when no endpoint can serve a request.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

import httpx
from pydantic import BaseModel


class TransportFault(str, Enum):
    """Connection-level fault codes considered transient."""

    CONNECTION_REFUSED = "ECONNREFUSED"
    NAME_NOT_FOUND = "ENOTFOUND"
    TIMED_OUT = "ETIMEDOUT"
    CONNECTION_RESET = "ECONNRESET"
    CONNECTION_ABORTED = "ECONNABORTED"
    NETWORK = "ERR_NETWORK"


# Substrings of resolver errors raised through httpx.ConnectError
_NAME_RESOLUTION_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "name resolution",
    "no address associated",
)


class FallbackRPCError(Exception):
    """Base exception for all fallback RPC client errors."""


class RPCTransportError(FallbackRPCError):
    """A single request against one endpoint failed.

    Attributes:
        url:               Full URL of the failed request.
        status_code:       HTTP status, when a response was received.
        fault_code:        Transport fault, when the connection itself failed.
        response_received: Whether the endpoint answered at all.
        body:              Decoded response body for HTTP errors (opaque).
    """

    def __init__(
        self,
        message: str,
        *,
        url: str = "",
        status_code: int | None = None,
        fault_code: TransportFault | None = None,
        response_received: bool = False,
        body: Any = None,
    ) -> None:
        self.message = message
        self.url = url
        self.status_code = status_code
        self.fault_code = fault_code
        self.response_received = response_received
        self.body = body
        super().__init__(message)

    @classmethod
    def from_httpx(cls, exc: httpx.HTTPError) -> RPCTransportError:
        """Normalize an httpx exception into an ``RPCTransportError``."""
        url = _request_url(exc)

        if isinstance(exc, httpx.HTTPStatusError):
            response = exc.response
            return cls(
                f"Request failed with status code {response.status_code}",
                url=url,
                status_code=response.status_code,
                response_received=True,
                body=_safe_body(response),
            )

        fault = _fault_for(exc)
        detail = str(exc) or type(exc).__name__
        if fault is TransportFault.TIMED_OUT:
            message = f"timeout of request to {url or 'endpoint'}: {detail}"
        else:
            message = f"Network Error: {detail}"
        return cls(message, url=url, fault_code=fault)


class PayloadEncodingError(FallbackRPCError):
    """Raised when a request payload cannot be encoded as JSON.

    Detected before any endpoint is selected, so no endpoint state changes.
    """

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Request payload is not JSON-serializable: {detail}")


class AllEndpointsUnavailableError(FallbackRPCError):
    """Raised when every endpoint's circuit is open at selection time."""

    def __init__(self) -> None:
        super().__init__("All RPC endpoints are unavailable")


class AllEndpointsFailedError(FallbackRPCError):
    """Raised when failover ran through every endpoint without success.

    Attributes:
        last_error: The last underlying failure observed.
    """

    def __init__(self, last_error: BaseException | None) -> None:
        self.last_error = last_error
        detail = str(last_error) if last_error is not None else "unknown error"
        super().__init__(f"All RPC endpoints failed: {detail}")


class StructuredErrorResponse(BaseModel):
    """Renderable ``{"error": str, "code": str}`` view of a failure."""

    error: str
    code: str

    @classmethod
    def from_exception(cls, exc: BaseException) -> StructuredErrorResponse:
        """Map an exception to a machine-readable code.

        Never leaks internal details for unhandled exceptions.
        """
        if isinstance(exc, AllEndpointsUnavailableError):
            return cls(error=str(exc), code="ALL_ENDPOINTS_UNAVAILABLE")
        if isinstance(exc, AllEndpointsFailedError):
            return cls(error=str(exc), code="ALL_ENDPOINTS_FAILED")
        if isinstance(exc, PayloadEncodingError):
            return cls(error=str(exc), code="INVALID_PAYLOAD")
        if isinstance(exc, RPCTransportError):
            code = "UPSTREAM_HTTP_ERROR" if exc.response_received else "TRANSPORT_ERROR"
            return cls(error=str(exc), code=code)
        if isinstance(exc, FallbackRPCError):
            return cls(error=str(exc), code="RPC_CLIENT_ERROR")
        return cls(error="An internal error occurred", code="INTERNAL_ERROR")


# ── httpx helpers ───────────────────────────────────────────────────────


def _request_url(exc: httpx.HTTPError) -> str:
    # ``.request`` raises RuntimeError when the exception was built without one
    try:
        return str(exc.request.url)
    except RuntimeError:
        return ""


def _fault_for(exc: httpx.HTTPError) -> TransportFault:
    if isinstance(exc, httpx.TimeoutException):
        return TransportFault.TIMED_OUT
    if isinstance(exc, httpx.ConnectError):
        text = str(exc).lower()
        if any(marker in text for marker in _NAME_RESOLUTION_MARKERS):
            return TransportFault.NAME_NOT_FOUND
        return TransportFault.CONNECTION_REFUSED
    if isinstance(exc, httpx.RemoteProtocolError):
        return TransportFault.CONNECTION_ABORTED
    if isinstance(exc, (httpx.ReadError, httpx.WriteError)):
        return TransportFault.CONNECTION_RESET
    return TransportFault.NETWORK


def _safe_body(response: httpx.Response) -> Any:
    """Decode an error body as JSON, falling back to text."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def encode_payload(payload: Any) -> bytes | None:
    """Encode a request payload as compact JSON (``None`` means no body)."""
    if payload is None:
        return None
    try:
        return json.dumps(payload, separators=(",", ":"), allow_nan=False).encode()
    except (TypeError, ValueError) as exc:
        raise PayloadEncodingError(str(exc)) from exc
