"""Tests for the exponential-backoff retry policy."""

from __future__ import annotations

import httpx
import pytest

from tron_gateway.chain.retry import RetryPolicy
from tron_gateway.config.settings import RetryConfig
from tron_gateway.errors import NetworkError, NetworkErrorKind, ValidationError

FAST = RetryConfig(max_attempts=3, initial_delay=0, max_delay=0, rate_limit_delay=0)


class _Flaky:
    def __init__(self, errors: list[Exception], result: str = "ok") -> None:
        self.errors = errors
        self.result = result
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class TestDelays:
    def test_backoff_is_exponential_and_capped(self) -> None:
        policy = RetryPolicy(RetryConfig(initial_delay=0.5, backoff_multiplier=2, max_delay=3))
        assert policy.delay_for(1) == 0.5
        assert policy.delay_for(2) == 1.0
        assert policy.delay_for(3) == 2.0
        assert policy.delay_for(4) == 3.0


class TestCall:
    async def test_success_first_try(self) -> None:
        fn = _Flaky([])
        assert await RetryPolicy(FAST).call("op", fn) == "ok"
        assert fn.calls == 1

    async def test_retries_temporary_errors(self) -> None:
        fn = _Flaky(
            [
                NetworkError("503", kind=NetworkErrorKind.TEMPORARY),
                NetworkError("429", kind=NetworkErrorKind.RATE_LIMIT),
            ]
        )
        assert await RetryPolicy(FAST).call("op", fn) == "ok"
        assert fn.calls == 3

    async def test_httpx_errors_are_classified_and_retried(self) -> None:
        fn = _Flaky([httpx.ConnectError("refused")])
        assert await RetryPolicy(FAST).call("op", fn) == "ok"
        assert fn.calls == 2

    async def test_permanent_error_not_retried(self) -> None:
        fn = _Flaky([NetworkError("400", kind=NetworkErrorKind.PERMANENT)])
        with pytest.raises(NetworkError, match="400"):
            await RetryPolicy(FAST).call("op", fn)
        assert fn.calls == 1

    async def test_gives_up_after_max_attempts(self) -> None:
        fn = _Flaky([NetworkError(f"fail {i}", kind=NetworkErrorKind.TEMPORARY) for i in range(5)])
        with pytest.raises(NetworkError, match="fail 2"):
            await RetryPolicy(FAST).call("op", fn)
        assert fn.calls == 3

    async def test_non_network_errors_propagate_immediately(self) -> None:
        fn = _Flaky([ValidationError("amount", "bad")])
        with pytest.raises(ValidationError):
            await RetryPolicy(FAST).call("op", fn)
        assert fn.calls == 1
