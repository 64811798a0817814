"""
Context management interceptors.

Interceptors for keeping the message history inside a budget before it
reaches the model. Each one reads ``ctx.effective_request`` (so they compose)
and writes the trimmed list to ``transformed_request``; the original
request is never modified.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from interlude.core.messages import Message, estimate_tokens, split_system
from interlude.interceptors.base import Context, ContractViolation, Interceptor

TokenCountFn = Callable[[Sequence[Message]], int]


def tiktoken_counter(model_name: str = "gpt-4o") -> TokenCountFn:
    """Build a token counter backed by tiktoken.

    Falls back to the ``cl100k_base`` encoding when the model is unknown.
    """
    try:
        import tiktoken
    except ImportError:
        raise ImportError(
            "Token counting requires 'tiktoken'. "
            "Install with: pip install 'interlude[tokens]'"
        ) from None

    try:
        encoding = tiktoken.encoding_for_model(model_name)
    except KeyError:
        encoding = tiktoken.get_encoding("cl100k_base")

    def count(messages: Sequence[Message]) -> int:
        total = 0
        for msg in messages:
            content = msg.get("content", "")
            total += len(encoding.encode(content if isinstance(content, str) else str(content)))
        return total

    return count


def trim_to_budget(
    messages: Sequence[Message],
    limit: int,
    token_count_fn: TokenCountFn,
) -> list[Message]:
    """Keep the most recent messages whose combined count fits ``limit``.

    The oldest messages are dropped first; order is preserved.
    """
    kept: list[Message] = []
    for msg in reversed(messages):
        candidate = [msg, *kept]
        if token_count_fn(candidate) > limit:
            break
        kept = candidate
    return kept


@dataclass
class TokenLimiter(Interceptor):
    """Trim messages to fit within a token budget.

    System messages are set aside (when ``preserve_system``) and do not count
    against the budget. If the rest exceeds ``limit``, the oldest messages
    are dropped until the most recent ones fit, then the system messages are
    put back in front.

    Attributes:
        limit: Maximum tokens for non-system messages.
        token_count_fn: Counts tokens in a message list (default: ~4 chars
            per token). Pass ``len`` to budget by message count.
        preserve_system: Keep system messages outside the budget.

    Example:
        ```python
        chat_with_interceptors(
            model,
            messages,
            [TokenLimiter(limit=8000, token_count_fn=tiktoken_counter("gpt-4o"))],
        )
        ```
    """

    limit: int = 8000
    token_count_fn: TokenCountFn = estimate_tokens
    preserve_system: bool = True
    name: str = "token_limit"

    def __post_init__(self) -> None:
        if self.limit < 0:
            raise ValueError("limit must be non-negative")

    def enter(self, ctx: Context) -> Context:
        """Write the trimmed message list to transformed_request."""
        messages = list(ctx.effective_request)
        if self.preserve_system:
            system, other = split_system(messages)
        else:
            system, other = [], messages

        if self.token_count_fn(other) <= self.limit:
            return ctx

        trimmed = trim_to_budget(other, self.limit, self.token_count_fn)
        return ctx.evolve(transformed_request=[*system, *trimmed])


@dataclass
class SlidingWindow(Interceptor):
    """Keep only the last ``limit`` messages.

    Attributes:
        limit: Number of messages to keep.
        preserve_system: Keep all system messages in addition to the window.
    """

    limit: int = 20
    preserve_system: bool = True
    name: str = "sliding_window"

    def __post_init__(self) -> None:
        if self.limit < 0:
            raise ValueError("limit must be non-negative")

    def enter(self, ctx: Context) -> Context:
        messages = list(ctx.effective_request)
        if self.preserve_system:
            system, other = split_system(messages)
        else:
            system, other = [], messages
        windowed = other[-self.limit:] if self.limit else []
        return ctx.evolve(transformed_request=[*system, *windowed])


@dataclass
class PreserveSystem(Interceptor):
    """Apply another interceptor's enter to non-system messages only.

    The inner interceptor sees a request without system messages; its result
    gets the system messages re-prepended.

    Example:
        ```python
        PreserveSystem(SlidingWindow(limit=4, preserve_system=False))
        ```
    """

    inner: Interceptor | None = None
    name: str = "preserve_system"

    def __post_init__(self) -> None:
        if self.inner is None:
            raise ValueError("inner interceptor is required")

    def enter(self, ctx: Context) -> Context:
        system, other = split_system(list(ctx.effective_request))
        inner_ctx = ctx.evolve(request=other, transformed_request=None)

        enter = self.inner.enter
        result = enter(inner_ctx) if enter is not None else inner_ctx
        if not isinstance(result, Context):
            raise ContractViolation(self.inner, "enter", result)

        return ctx.evolve(transformed_request=[*system, *result.effective_request])


__all__ = [
    "TokenLimiter",
    "SlidingWindow",
    "PreserveSystem",
    "trim_to_budget",
    "tiktoken_counter",
]
