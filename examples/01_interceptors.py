"""
Example 01: Interceptors

Demonstrates wrapping chat model calls with interlude interceptors for
cross-cutting concerns like retries, caching, cost control and logging.

Key features:
- Built-in interceptors composed into a chain
- Retries re-run the call after a recovered failure
- Cache hits skip the model entirely
- Custom interceptors from plain functions

Run: python examples/01_interceptors.py
"""

import logging

from interlude import chat_with_interceptors, chat_with_interceptors_context, interceptor
from interlude.core import extract_content, system_message, user_message
from interlude.errors import rate_limit_error
from interlude.interceptors import (
    CacheInterceptor,
    CostTracker,
    LoggingInterceptor,
    RetryInterceptor,
    SlidingWindow,
)
from interlude.models import MockChatModel

logging.basicConfig(level=logging.INFO, format="%(name)s %(message)s")


# =============================================================================
# Example 1: Retry - recover from a rate limit
# =============================================================================

def example_retry():
    """The first call is rate limited; the retry interceptor runs it again."""
    print("=" * 60)
    print("Example 1: RetryInterceptor")
    print("=" * 60)

    model = MockChatModel(
        responses=["Recovered after one retry."],
        errors=[rate_limit_error("Too many requests", retry_after=0.2)],
    )

    ctx = chat_with_interceptors_context(
        model,
        [user_message("Hello!")],
        [LoggingInterceptor(), RetryInterceptor(max_attempts=3, initial_delay_ms=100)],
    )

    print(f"Response: {extract_content(ctx.response)}")
    print(f"Retries: {ctx.metadata['retry_count']}, model calls: {model.call_count}")
    print()


# =============================================================================
# Example 2: Cache + CostTracker
# =============================================================================

def example_cache_and_cost():
    """Identical requests hit the cache; only real calls are billed."""
    print("=" * 60)
    print("Example 2: CacheInterceptor + CostTracker")
    print("=" * 60)

    model = MockChatModel(responses=["Paris."], model_name="gpt-4o-mini")
    tracker = CostTracker(on_usage=lambda record: print(f"  billed: {record['cost']['total_cost']:.6f} USD"))
    chain = [tracker, CacheInterceptor(ttl_ms=60_000)]
    messages = [user_message("What is the capital of France?")]

    for attempt in range(3):
        response = chat_with_interceptors(model, messages, chain)
        print(f"Call {attempt + 1}: {extract_content(response)}")

    print(f"Model calls: {model.call_count}, total cost: ${tracker.total_cost:.6f}")
    print()


# =============================================================================
# Example 3: Custom interceptor + context trimming
# =============================================================================

def example_custom():
    """A function interceptor sets options; a window trims history."""
    print("=" * 60)
    print("Example 3: Custom interceptors")
    print("=" * 60)

    deterministic = interceptor(
        name="deterministic",
        enter=lambda ctx: ctx.evolve(
            transformed_options={**ctx.effective_options, "temperature": 0}
        ),
    )

    model = MockChatModel()
    history = [system_message("Be brief.")] + [
        user_message(f"Message {i}") for i in range(10)
    ]

    chat_with_interceptors(model, history, [deterministic, SlidingWindow(limit=3)])

    sent_messages, sent_options = model.calls[-1]
    print(f"Sent {len(sent_messages)} of {len(history)} messages with options {sent_options}")
    print()


if __name__ == "__main__":
    example_retry()
    example_cache_and_cost()
    example_custom()
