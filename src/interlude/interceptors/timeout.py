"""
Deadline stamping interceptor.

Records when a call should be considered overdue. Nothing here enforces the
deadline; a unit of work or a later interceptor may read
``metadata["timeout_at"]`` and act on it.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from interlude.core.utils import now_ms
from interlude.interceptors.base import Context, Interceptor

TIMEOUT_AT = "timeout_at"


@dataclass
class TimeoutInterceptor(Interceptor):
    """Stamp ``metadata["timeout_at"]`` (epoch ms) on enter.

    Attributes:
        timeout_ms: Milliseconds from enter until the deadline.
        clock: Current time in epoch milliseconds.
    """

    timeout_ms: int = 60000
    clock: Callable[[], float] = now_ms
    name: str = "timeout"

    def __post_init__(self) -> None:
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")

    def enter(self, ctx: Context) -> Context:
        return ctx.with_metadata(**{TIMEOUT_AT: self.clock() + self.timeout_ms})


def deadline_passed(ctx: Context, clock: Callable[[], float] = now_ms) -> bool:
    """True when the context carries a deadline that has already passed."""
    deadline = ctx.metadata.get(TIMEOUT_AT)
    return deadline is not None and clock() >= deadline


__all__ = ["TimeoutInterceptor", "deadline_passed", "TIMEOUT_AT"]
