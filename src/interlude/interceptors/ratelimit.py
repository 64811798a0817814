"""
Rate limiting interceptors.

A token bucket with continuous fractional refill throttles calls before they
reach the unit of work. The bucket belongs to the interceptor instance, so
every call routed through the same instance shares it.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from interlude.interceptors.base import Context, Interceptor

logger = logging.getLogger(__name__)

RATE_LIMIT_WAIT_MS = "rate_limit_wait_ms"


@dataclass(frozen=True)
class BucketState:
    """Snapshot of a token bucket."""

    tokens: float
    last_update: float  # milliseconds on the bucket's clock


def refill(state: BucketState, now: float, rate_per_ms: float, capacity: float) -> BucketState:
    """Return the state after refilling up to ``now``, capped at capacity."""
    elapsed = max(0.0, now - state.last_update)
    tokens = min(capacity, state.tokens + elapsed * rate_per_ms)
    return BucketState(tokens=tokens, last_update=now)


class TokenBucket:
    """Thread-safe token bucket.

    Starts full. Refills continuously at ``permits_per_minute / 60000`` tokens
    per millisecond up to ``capacity``.

    Args:
        permits_per_minute: Sustained refill rate.
        capacity: Maximum tokens held (burst size). At least 1.
        clock: Monotonic clock in milliseconds.
    """

    def __init__(
        self,
        permits_per_minute: float,
        capacity: float,
        clock: Callable[[], float] | None = None,
    ) -> None:
        if permits_per_minute <= 0:
            raise ValueError("permits_per_minute must be positive")
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.rate_per_ms = permits_per_minute / 60000.0
        self.capacity = capacity
        self._clock = clock or (lambda: time.monotonic() * 1000)
        self._state = BucketState(tokens=capacity, last_update=self._clock())
        self._lock = threading.Lock()

    @property
    def state(self) -> BucketState:
        """Current snapshot (refilled to now)."""
        with self._lock:
            self._state = refill(self._state, self._clock(), self.rate_per_ms, self.capacity)
            return self._state

    def try_acquire(self) -> bool:
        """Debit one token if available. Returns True on success."""
        with self._lock:
            current = refill(self._state, self._clock(), self.rate_per_ms, self.capacity)
            if current.tokens >= 1:
                self._state = BucketState(tokens=current.tokens - 1, last_update=current.last_update)
                return True
            self._state = current
            return False


@dataclass
class RateLimiter(Interceptor):
    """Blocking token-bucket throttle.

    ``enter`` waits in ``poll_interval`` steps until a token is available and
    then debits it. There is no queue and no fairness between concurrent
    callers beyond whoever observes a free token first.

    Attributes:
        requests_per_minute: Sustained request rate.
        burst_size: Bucket capacity, at least 1 (default:
            requests_per_minute / 6, never below 1).
        poll_interval: Seconds to sleep between availability checks.

    Example:
        ```python
        limiter = RateLimiter(requests_per_minute=60, burst_size=1)

        # Share one limiter across calls (and threads) to throttle them together
        for prompt in prompts:
            chat_with_interceptors(model, [user_message(prompt)], [limiter])
        ```
    """

    name: str = "rate_limit"
    requests_per_minute: float = 60
    burst_size: float | None = None
    poll_interval: float = 0.1
    sleep: Callable[[float], None] = time.sleep
    clock: Callable[[], float] | None = None
    _bucket: TokenBucket = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.requests_per_minute <= 0:
            raise ValueError("requests_per_minute must be positive")
        if self.burst_size is not None and self.burst_size < 1:
            raise ValueError("burst_size must be at least 1")
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        capacity = self.burst_size or max(1.0, self.requests_per_minute / 6)
        self._bucket = TokenBucket(self.requests_per_minute, capacity, clock=self.clock)

    @property
    def bucket(self) -> TokenBucket:
        return self._bucket

    def enter(self, ctx: Context) -> Context:
        """Block until a token is available, then take it."""
        started = time.monotonic()
        while not self._bucket.try_acquire():
            self.sleep(self.poll_interval)
        waited_ms = (time.monotonic() - started) * 1000
        if waited_ms >= 1:
            logger.debug("Rate limiter waited %.0fms", waited_ms)
        return ctx.with_metadata(**{RATE_LIMIT_WAIT_MS: waited_ms})

    @property
    def current_usage(self) -> dict[str, Any]:
        """Current bucket stats."""
        state = self._bucket.state
        return {
            "tokens": state.tokens,
            "capacity": self._bucket.capacity,
            "requests_per_minute": self.requests_per_minute,
        }


__all__ = [
    "RateLimiter",
    "TokenBucket",
    "BucketState",
    "refill",
    "RATE_LIMIT_WAIT_MS",
]
