"""
tests/test_utils/test_retry.py — Unit tests for RetryPolicy.

The policy is exercised without HTTP: a coroutine raises FetchError variants
and a recording sleep replaces asyncio.sleep.
"""

from __future__ import annotations

import pytest

from mgnrega_pipeline.errors import FetchError, TransportError, UpstreamError, is_retryable_status
from mgnrega_pipeline.utils.retry import RetryConfig, RetryPolicy


async def run_with_policy(policy: RetryPolicy, sleep, fn):
    async for attempt in policy.retrying(sleep=sleep):
        with attempt:
            return await fn()


class TestComputeDelay:
    def test_exponential_schedule_without_jitter(self):
        policy = RetryPolicy(RetryConfig(base_delay=1.0, max_delay=10.0, jitter=1.0), rng=lambda: 0.0)
        assert [policy.compute_delay(i) for i in range(5)] == [1.0, 2.0, 4.0, 8.0, 10.0]

    def test_jitter_is_added_after_cap(self):
        policy = RetryPolicy(RetryConfig(base_delay=1.0, max_delay=10.0, jitter=1.0), rng=lambda: 0.5)
        assert policy.compute_delay(0) == 1.5
        assert policy.compute_delay(10) == 10.5

    def test_max_attempts_includes_first_try(self):
        assert RetryPolicy(RetryConfig(max_retries=3)).max_attempts == 4
        assert RetryPolicy(RetryConfig(max_retries=0)).max_attempts == 1


class TestRetryable:
    @pytest.mark.parametrize(
        "status, expected",
        [(429, True), (500, True), (503, True), (400, False), (401, False), (404, False)],
    )
    def test_status_classification(self, status, expected):
        assert is_retryable_status(status) is expected
        assert UpstreamError(status).retryable is expected

    def test_transport_errors_are_retryable(self):
        assert RetryPolicy.is_retryable(TransportError("reset"))

    def test_other_exceptions_are_not(self):
        assert not RetryPolicy.is_retryable(ValueError("bad"))
        assert not RetryPolicy.is_retryable(FetchError("bad json"))


class TestRetryLoop:
    @pytest.mark.asyncio
    async def test_succeeds_after_transient_failures(self, sleep_recorder):
        calls = 0

        async def flaky():
            nonlocal calls
            calls += 1
            if calls < 3:
                raise TransportError("reset")
            return "ok"

        policy = RetryPolicy(RetryConfig(max_retries=3), rng=lambda: 0.0)
        assert await run_with_policy(policy, sleep_recorder, flaky) == "ok"
        assert calls == 3
        assert sleep_recorder.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_reraises_last_error_when_exhausted(self, sleep_recorder):
        calls = 0

        async def always_down():
            nonlocal calls
            calls += 1
            raise UpstreamError(502)

        policy = RetryPolicy(RetryConfig(max_retries=2), rng=lambda: 0.0)
        with pytest.raises(UpstreamError):
            await run_with_policy(policy, sleep_recorder, always_down)
        assert calls == 3
        assert len(sleep_recorder.delays) == 2

    @pytest.mark.asyncio
    async def test_fatal_error_stops_immediately(self, sleep_recorder):
        calls = 0

        async def forbidden():
            nonlocal calls
            calls += 1
            raise UpstreamError(403)

        policy = RetryPolicy(RetryConfig(max_retries=5))
        with pytest.raises(UpstreamError):
            await run_with_policy(policy, sleep_recorder, forbidden)
        assert calls == 1
        assert sleep_recorder.delays == []
