"""
utils/retry.py — Exponential-backoff retry policy for upstream HTTP calls.

The policy (attempt bound, delay schedule, retryable predicate) is kept apart
from the transport so it can be tested without a network or real timers.
tenacity drives the loop; structlog records every scheduled retry.

Delay before the retry that follows attempt i (0-based):
    min(base_delay * 2**i, max_delay) + uniform(0, jitter)

Usage:
    from mgnrega_pipeline.utils.retry import RetryConfig, RetryPolicy

    policy = RetryPolicy(RetryConfig(max_retries=3))
    async for attempt in policy.retrying(sleep=asyncio.sleep):
        with attempt:
            return await do_request()

    policy.compute_delay(0)   # 1.0 + jitter
    policy.compute_delay(5)   # 10.0 + jitter (capped)
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
)

from mgnrega_pipeline.errors import FetchError

log = structlog.get_logger(__name__)

SleepFn = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryConfig:
    """Retry limits, in seconds. `max_retries` excludes the first attempt."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    jitter: float = 1.0

    @classmethod
    def from_settings(cls, settings: Any | None = None) -> "RetryConfig":
        if settings is None:
            from mgnrega_shared.config import settings
        return cls(
            max_retries=settings.api_max_retries,
            base_delay=settings.api_base_delay_seconds,
            max_delay=settings.api_max_delay_seconds,
            jitter=settings.api_jitter_seconds,
        )


class RetryPolicy:
    """Bounded exponential backoff with additive jitter."""

    def __init__(
        self,
        config: RetryConfig | None = None,
        *,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self.config = config or RetryConfig()
        self._rng = rng

    @property
    def max_attempts(self) -> int:
        return self.config.max_retries + 1

    def compute_delay(self, attempt: int) -> float:
        """Seconds to wait after the 0-based `attempt` failed."""
        backoff = min(self.config.base_delay * (2 ** attempt), self.config.max_delay)
        return backoff + self._rng() * self.config.jitter

    @staticmethod
    def is_retryable(exc: BaseException) -> bool:
        return isinstance(exc, FetchError) and exc.retryable

    # ------------------------------------------------------------------
    # tenacity hooks
    # ------------------------------------------------------------------

    def _wait(self, retry_state: RetryCallState) -> float:
        return self.compute_delay(retry_state.attempt_number - 1)

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        log.warning(
            "retry_scheduled",
            attempt=retry_state.attempt_number,
            max_attempts=self.max_attempts,
            delay_s=round(retry_state.next_action.sleep, 3) if retry_state.next_action else None,
            error=str(exc) if exc else None,
        )

    def retrying(self, *, sleep: SleepFn = asyncio.sleep) -> AsyncRetrying:
        """
        Build the tenacity loop for one logical call.

        Non-retryable errors and the final retryable error are re-raised
        unchanged (reraise=True), so callers see FetchError, never RetryError.
        """
        return AsyncRetrying(
            sleep=sleep,
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            retry=retry_if_exception(self.is_retryable),
            before_sleep=self._before_sleep,
            reraise=True,
        )
