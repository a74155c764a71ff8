"""Retryability classifier for endpoint failures.

Works on the normalized failure shape (``response_received``,
``status_code``, ``fault_code``) instead of a particular HTTP library's
exception types.  Raw ``httpx`` errors are normalized first.

The same verdict drives both local retries against one endpoint and
failover to the next endpoint.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import httpx

from fallback_rpc.core.errors import RPCTransportError, TransportFault

# Message fragments that mark an error as transient when nothing else matches
_TRANSIENT_MESSAGE_MARKERS = ("network error", "timeout")

_RETRYABLE_FAULTS = frozenset(TransportFault)


@runtime_checkable
class TransportFailure(Protocol):
    """Anything exposing the normalized failure attributes."""

    response_received: bool
    status_code: int | None
    fault_code: str | None


def is_retryable(error: BaseException) -> bool:
    """Return ``True`` if *error* is transient and worth retrying elsewhere.

    Rules, first match wins:

    1. no response received (connection-level failure)
    2. a known transient transport fault code
    3. HTTP status >= 500
    4. HTTP status 429
    5. message mentions "network error" or "timeout"
    6. anything else (e.g. other 4xx) is terminal
    """
    if isinstance(error, httpx.HTTPError):
        error = RPCTransportError.from_httpx(error)

    if isinstance(error, TransportFailure):
        if not error.response_received:
            return True
        if error.fault_code is not None and _is_known_fault(error.fault_code):
            return True
        status = error.status_code
        if status is not None and (status >= 500 or status == 429):
            return True

    message = str(error).lower()
    return any(marker in message for marker in _TRANSIENT_MESSAGE_MARKERS)


def _is_known_fault(code: str) -> bool:
    try:
        return TransportFault(code) in _RETRYABLE_FAULTS
    except ValueError:
        return False
