"""Tests for the local exponential-backoff retry loop."""

import asyncio
import logging

import pytest

from fallback_rpc.core.errors import FallbackRPCError, RPCTransportError, TransportFault
from fallback_rpc.resilience.retry import RetryExecutor, backoff_delay


def _transient() -> RPCTransportError:
    return RPCTransportError("Network Error: refused", fault_code=TransportFault.CONNECTION_REFUSED)


def _terminal() -> RPCTransportError:
    return RPCTransportError("Request failed with status code 400", status_code=400, response_received=True)


class FlakySend:
    """Raises the queued errors in order, then returns ``result``."""

    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class TestBackoffDelay:
    @pytest.mark.parametrize("attempt,expected", [(0, 0.1), (1, 0.2), (2, 0.4), (3, 0.8)])
    def test_doubles_each_attempt(self, attempt, expected):
        assert backoff_delay(0.1, attempt) == pytest.approx(expected)


class TestRetryExecutor:
    async def test_first_attempt_success_no_sleep(self, sleep):
        executor = RetryExecutor(retries=3, base_delay=0.1, sleep=sleep)
        send = FlakySend([])
        assert await executor.execute(send, "rpc-a") == "ok"
        assert send.calls == 1
        assert sleep.delays == []

    async def test_retries_transient_then_succeeds(self, sleep):
        executor = RetryExecutor(retries=3, base_delay=0.1, sleep=sleep)
        send = FlakySend([_transient(), _transient()])
        assert await executor.execute(send, "rpc-a") == "ok"
        assert send.calls == 3
        assert sleep.delays == pytest.approx([0.1, 0.2])

    async def test_exhaustion_reraises_last_error(self, sleep):
        executor = RetryExecutor(retries=3, base_delay=0.1, sleep=sleep)
        errors = [_transient(), _transient(), _transient()]
        last = errors[-1]
        send = FlakySend(errors)

        with pytest.raises(RPCTransportError) as exc_info:
            await executor.execute(send, "rpc-a")

        assert exc_info.value is last
        assert send.calls == 3
        # No sleep after the final attempt
        assert sleep.delays == pytest.approx([0.1, 0.2])

    async def test_terminal_error_not_retried(self, sleep):
        executor = RetryExecutor(retries=5, base_delay=0.1, sleep=sleep)
        send = FlakySend([_terminal()])

        with pytest.raises(RPCTransportError, match="400"):
            await executor.execute(send, "rpc-a")

        assert send.calls == 1
        assert sleep.delays == []

    async def test_terminal_after_transient_stops(self, sleep):
        executor = RetryExecutor(retries=5, base_delay=0.1, sleep=sleep)
        send = FlakySend([_transient(), _terminal()])

        with pytest.raises(RPCTransportError, match="400"):
            await executor.execute(send, "rpc-a")

        assert send.calls == 2
        assert sleep.delays == pytest.approx([0.1])

    async def test_delay_sequence_for_longer_budget(self, sleep):
        executor = RetryExecutor(retries=5, base_delay=0.25, sleep=sleep)
        send = FlakySend([_transient()] * 5)

        with pytest.raises(RPCTransportError):
            await executor.execute(send, "rpc-a")

        assert sleep.delays == pytest.approx([0.25, 0.5, 1.0, 2.0])

    async def test_single_attempt_budget(self, sleep):
        executor = RetryExecutor(retries=1, base_delay=0.1, sleep=sleep)
        send = FlakySend([_transient()])

        with pytest.raises(RPCTransportError):
            await executor.execute(send, "rpc-a")

        assert send.calls == 1
        assert sleep.delays == []

    def test_zero_retries_rejected(self):
        with pytest.raises(ValueError, match="at least 1"):
            RetryExecutor(retries=0, base_delay=0.1)

    async def test_concurrent_executions_are_independent(self, sleep):
        executor = RetryExecutor(retries=3, base_delay=0.1, sleep=sleep)
        flaky = FlakySend([_transient(), _transient()], result="flaky")
        steady = FlakySend([], result="steady")

        results = await asyncio.gather(
            executor.execute(flaky, "rpc-a"),
            executor.execute(steady, "rpc-b"),
        )

        assert results == ["flaky", "steady"]
        assert flaky.calls == 3
        assert steady.calls == 1

    async def test_logs_attempt_count_on_give_up(self, sleep, caplog):
        executor = RetryExecutor(retries=2, base_delay=0.1, sleep=sleep)
        send = FlakySend([_transient(), _transient()])

        with caplog.at_level(logging.INFO, logger="fallback_rpc.resilience.retry"):
            with pytest.raises(RPCTransportError):
                await executor.execute(send, "rpc-a")

        assert "rpc-a gave up after 2 attempt(s)" in caplog.text

    async def test_empty_budget_raises_typed_error(self, sleep):
        executor = RetryExecutor(retries=1, base_delay=0.1, sleep=sleep)
        executor.retries = 0
        send = FlakySend([])

        with pytest.raises(FallbackRPCError, match="no attempt made"):
            await executor.execute(send, "rpc-a")

        assert send.calls == 0
