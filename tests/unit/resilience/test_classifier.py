"""Tests for the retryability classifier."""

import httpx
import pytest

from fallback_rpc.core.errors import RPCTransportError, TransportFault
from fallback_rpc.resilience.classifier import TransportFailure, is_retryable


def _http_error(status: int) -> RPCTransportError:
    return RPCTransportError(
        f"Request failed with status code {status}",
        status_code=status,
        response_received=True,
    )


class DuckTypedError(Exception):
    """An error from some other transport exposing the normalized shape."""

    def __init__(self, message, *, response_received, status_code=None, fault_code=None):
        super().__init__(message)
        self.response_received = response_received
        self.status_code = status_code
        self.fault_code = fault_code


class TestNoResponse:
    def test_no_response_is_retryable(self):
        assert is_retryable(RPCTransportError("socket closed")) is True

    @pytest.mark.parametrize("fault", list(TransportFault))
    def test_every_transport_fault_is_retryable(self, fault):
        assert is_retryable(RPCTransportError("x", fault_code=fault)) is True


class TestStatusCodes:
    @pytest.mark.parametrize("status", [500, 502, 503, 504, 599])
    def test_server_errors_retryable(self, status):
        assert is_retryable(_http_error(status)) is True

    def test_rate_limit_retryable(self):
        assert is_retryable(_http_error(429)) is True

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 409, 422])
    def test_client_errors_terminal(self, status):
        assert is_retryable(_http_error(status)) is False


class TestFaultCodeWithResponse:
    def test_known_fault_code_retryable_even_with_client_status(self):
        err = DuckTypedError("x", response_received=True, status_code=400, fault_code="ECONNRESET")
        assert is_retryable(err) is True

    def test_unknown_fault_code_ignored(self):
        err = DuckTypedError("x", response_received=True, status_code=400, fault_code="EWEIRD")
        assert is_retryable(err) is False


class TestMessageFallback:
    @pytest.mark.parametrize(
        "message",
        ["Network Error", "NETWORK ERROR while reading", "timeout of 30000ms exceeded", "Socket Timeout"],
    )
    def test_transient_messages_retryable(self, message):
        assert is_retryable(RuntimeError(message)) is True

    def test_message_applies_to_http_errors_too(self):
        err = RPCTransportError("upstream timeout", status_code=400, response_received=True)
        assert is_retryable(err) is True

    def test_plain_exception_terminal(self):
        assert is_retryable(ValueError("invalid payload")) is False


class TestCapabilityShape:
    def test_duck_typed_error_matches_protocol(self):
        err = DuckTypedError("x", response_received=True, status_code=503)
        assert isinstance(err, TransportFailure)
        assert is_retryable(err) is True

    def test_plain_exception_does_not_match_protocol(self):
        assert not isinstance(ValueError("x"), TransportFailure)


class TestRawHttpxErrors:
    def test_connect_error_retryable(self):
        assert is_retryable(httpx.ConnectError("refused")) is True

    def test_raw_status_error(self):
        request = httpx.Request("POST", "https://rpc.example/")
        not_found = httpx.HTTPStatusError(
            "404", request=request, response=httpx.Response(404, request=request)
        )
        unavailable = httpx.HTTPStatusError(
            "503", request=request, response=httpx.Response(503, request=request)
        )
        assert is_retryable(not_found) is False
        assert is_retryable(unavailable) is True
