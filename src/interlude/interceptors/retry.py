"""
Retry interceptor.

Recovers retryable errors with exponential backoff and jitter. Retry state
(attempt counter, current delay) lives in ``ctx.metadata`` so it carries
across attempts of the same call.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass

from interlude.errors import ProviderError, is_retryable
from interlude.interceptors.base import Context, Interceptor

logger = logging.getLogger(__name__)

RETRY_COUNT = "retry_count"
RETRY_DELAY_MS = "retry_delay_ms"
RETRY_REQUESTED = "retry_requested"


@dataclass
class RetryInterceptor(Interceptor):
    """Retry failed requests with exponential backoff.

    On a retryable error with attempts remaining, sleeps for
    ``max(retry_after, current delay)`` plus jitter, grows the delay by
    ``multiplier`` (capped at ``max_delay_ms``), increments
    ``metadata["retry_count"]``, flags ``metadata["retry_requested"]`` and
    clears the error. Otherwise the error is left untouched.

    Only a failed unit of work is re-run. If the error came from an enter
    callback further down the chain, the sleep still happens and the error is
    cleared, but the call proceeds once with the remaining chain unentered
    and the request flag is dropped before the unit of work runs.

    Attributes:
        max_attempts: Maximum retry attempts.
        initial_delay_ms: Delay before the first retry.
        max_delay_ms: Cap on the delay between retries.
        multiplier: Delay growth factor per attempt.
        jitter_fraction: Random jitter as a fraction of the delay (0-1).
        is_retryable: Predicate deciding whether an error is worth retrying.
        sleep: Blocking sleep function taking seconds.

    Example:
        ```python
        from interlude import chat_with_interceptors
        from interlude.interceptors import RetryInterceptor

        response = chat_with_interceptors(
            model,
            messages,
            [RetryInterceptor(max_attempts=5, initial_delay_ms=500)],
        )
        ```
    """

    name: str = "retry"
    max_attempts: int = 3
    initial_delay_ms: float = 1000
    max_delay_ms: float = 30000
    multiplier: float = 2.0
    jitter_fraction: float = 0.1
    is_retryable: Callable[[BaseException], bool] = is_retryable
    sleep: Callable[[float], None] = time.sleep

    def __post_init__(self) -> None:
        if self.max_attempts < 0:
            raise ValueError("max_attempts must be non-negative")
        if self.initial_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("delays must be non-negative")
        if self.multiplier < 1:
            raise ValueError("multiplier must be at least 1")
        if not 0 <= self.jitter_fraction <= 1:
            raise ValueError("jitter_fraction must be between 0 and 1")

    def _retry_after_ms(self, error: BaseException) -> float:
        """Server-suggested wait, converted from seconds."""
        if isinstance(error, ProviderError) and error.retry_after is not None:
            return error.retry_after * 1000
        return 0.0

    def error(self, ctx: Context, error: BaseException) -> Context:
        """Clear retryable errors while attempts remain."""
        retry_count = ctx.metadata.get(RETRY_COUNT, 0)
        current_delay = ctx.metadata.get(RETRY_DELAY_MS, self.initial_delay_ms)

        if retry_count >= self.max_attempts or not self.is_retryable(error):
            logger.debug(
                "Not retrying %r (attempt %d/%d)", error, retry_count, self.max_attempts
            )
            return ctx

        delay = max(self._retry_after_ms(error), current_delay)
        delay += delay * self.jitter_fraction * random.random()
        next_delay = min(current_delay * self.multiplier, self.max_delay_ms)

        logger.debug(
            "Retrying after %r in %.0fms (attempt %d/%d)",
            error,
            delay,
            retry_count + 1,
            self.max_attempts,
        )
        self.sleep(delay / 1000)

        return ctx.with_metadata(
            **{
                RETRY_COUNT: retry_count + 1,
                RETRY_DELAY_MS: next_delay,
                RETRY_REQUESTED: True,
            }
        ).clear_error()


__all__ = [
    "RetryInterceptor",
    "RETRY_COUNT",
    "RETRY_DELAY_MS",
    "RETRY_REQUESTED",
]
