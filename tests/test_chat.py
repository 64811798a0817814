"""
Tests for running a unit of work through an interceptor chain.
"""

import threading
import time

import pytest

from interlude import (
    ChatModel,
    ContractViolation,
    call_with_interceptors,
    call_with_interceptors_context,
    chat_with_interceptors,
    chat_with_interceptors_context,
    interceptor,
)
from interlude import errors
from interlude.core.messages import extract_content, system_message, user_message
from interlude.interceptors import (
    CacheInterceptor,
    CostTracker,
    LoggingInterceptor,
    RateLimiter,
    RetryInterceptor,
    TokenLimiter,
)
from interlude.models.mock import MockChatModel, text_response


MESSAGES = [user_message("Hello")]


def no_sleep(seconds):
    return None


# =============================================================================
# Composition helper
# =============================================================================

class TestCallWithInterceptors:
    """Test the generic helper."""

    def test_no_interceptors(self):
        result = call_with_interceptors("target", "req", [], lambda t, r, o: (t, r, dict(o)))
        assert result == ("target", "req", {})

    def test_unit_of_work_gets_effective_request_and_options(self):
        seen = []
        rewrite = interceptor(
            enter=lambda ctx: ctx.evolve(
                transformed_request="rewritten",
                transformed_options={**ctx.effective_options, "temperature": 0},
            )
        )
        call_with_interceptors(
            "t", "orig", [rewrite], lambda t, r, o: seen.append((r, dict(o))) or "ok", {"max_tokens": 5}
        )
        assert seen == [("rewritten", {"max_tokens": 5, "temperature": 0})]

    def test_response_on_context(self):
        ctx = call_with_interceptors_context("t", "req", [], lambda t, r, o: 42)
        assert ctx.response == 42
        assert ctx.error is None
        assert ctx.stack == ()

    def test_leave_sees_response(self):
        seen = []
        watch = interceptor(leave=lambda ctx: (seen.append(ctx.response), ctx)[1])
        call_with_interceptors("t", "req", [watch], lambda t, r, o: "resp")
        assert seen == ["resp"]

    def test_enter_error_raised_and_unit_skipped(self):
        calls = []
        err = RuntimeError("enter failed")

        def fail(ctx):
            raise err

        with pytest.raises(RuntimeError) as exc_info:
            call_with_interceptors("t", "req", [fail], lambda t, r, o: calls.append(1))
        assert exc_info.value is err
        assert calls == []

    def test_unit_error_raised_verbatim(self):
        err = ValueError("backend down")

        def unit(t, r, o):
            raise err

        with pytest.raises(ValueError) as exc_info:
            call_with_interceptors("t", "req", [interceptor(leave=lambda ctx: ctx)], unit)
        assert exc_info.value is err

    def test_unit_error_recovered_by_handler(self):
        fallback = interceptor(error=lambda ctx, e: ctx.clear_error().with_response("fallback"))

        def unit(t, r, o):
            raise RuntimeError("boom")

        assert call_with_interceptors("t", "req", [fallback], unit) == "fallback"

    def test_leave_error_not_handled(self):
        handled = []
        handler = interceptor(error=lambda ctx, e: (handled.append(e), ctx.clear_error())[1])
        err = RuntimeError("leave failed")

        def leave(ctx):
            raise err

        with pytest.raises(RuntimeError) as exc_info:
            call_with_interceptors("t", "req", [handler, interceptor(leave=leave)], lambda t, r, o: "ok")
        assert exc_info.value is err
        assert handled == []

    def test_terminated_skips_unit(self):
        calls = []
        short = interceptor(enter=lambda ctx: ctx.with_response("early").terminate())
        ctx = call_with_interceptors_context("t", "req", [short], lambda t, r, o: calls.append(1))
        assert ctx.response == "early"
        assert ctx.terminated
        assert calls == []

    def test_contract_violation_propagates(self):
        with pytest.raises(ContractViolation):
            call_with_interceptors("t", "req", [lambda ctx: "not a context"], lambda t, r, o: "ok")

    def test_nested_chain_definitions(self):
        log = []
        a = interceptor(name="a", enter=lambda ctx: (log.append("a"), ctx)[1])
        b = interceptor(name="b", enter=lambda ctx: (log.append("b"), ctx)[1])
        call_with_interceptors("t", "req", [a, None, [b]], lambda t, r, o: "ok")
        assert log == ["a", "b"]


# =============================================================================
# Chat convenience
# =============================================================================

class TestChatWithInterceptors:
    """Test the chat model wrappers."""

    def test_mock_is_chat_model(self):
        assert isinstance(MockChatModel(), ChatModel)

    def test_returns_model_response(self):
        model = MockChatModel(responses=["Hi there"])
        response = chat_with_interceptors(model, MESSAGES, [], {"temperature": 0.5})
        assert extract_content(response) == "Hi there"
        assert model.calls == [(MESSAGES, {"temperature": 0.5})]

    def test_trimmed_messages_reach_model(self):
        model = MockChatModel(responses=["ok"])
        messages = [system_message("sys"), user_message("1"), user_message("2"), user_message("3")]
        chat_with_interceptors(model, messages, [TokenLimiter(limit=1, token_count_fn=len)])
        assert model.calls[0][0] == [messages[0], messages[3]]

    def test_context_variant(self):
        model = MockChatModel(responses=["ok"], model_name="gpt-4o")
        tracker = CostTracker()
        ctx = chat_with_interceptors_context(model, MESSAGES, [tracker])
        assert ctx.target is model
        assert ctx.metadata["cost"]["total_cost"] > 0


# =============================================================================
# Retry through the helper
# =============================================================================

class TestRetryScenarios:
    """Unit-of-work failures recovered by RetryInterceptor are re-attempted."""

    def test_fails_once_then_succeeds(self):
        events = []
        model = MockChatModel(
            responses=["eventually"],
            errors=[errors.server_error(503, "unavailable", "mock")],
        )
        chain = [
            LoggingInterceptor(sink=events.append),
            RetryInterceptor(max_attempts=3, sleep=no_sleep),
        ]

        ctx = chat_with_interceptors_context(model, MESSAGES, chain)

        assert extract_content(ctx.response) == "eventually"
        assert ctx.metadata["retry_count"] == 1
        assert "retry_requested" not in ctx.metadata
        assert model.call_count == 2
        # Retry sits above logging on the stack and recovers before logging sees the error
        assert [e["event"] for e in events] == ["request", "response", "request", "response"]

    def test_gives_up_after_max_attempts(self):
        err = errors.rate_limit_error("slow down")
        model = MockChatModel(errors=[err] * 10)

        with pytest.raises(errors.ProviderError) as exc_info:
            chat_with_interceptors(model, MESSAGES, [RetryInterceptor(max_attempts=3, sleep=no_sleep)])

        assert exc_info.value is err
        assert model.call_count == 4

    def test_non_retryable_not_reattempted(self):
        model = MockChatModel(errors=[errors.authentication_error("mock")])
        with pytest.raises(errors.ProviderError) as exc_info:
            chat_with_interceptors(model, MESSAGES, [RetryInterceptor(sleep=no_sleep)])
        assert errors.is_authentication_error(exc_info.value)
        assert model.call_count == 1

    def test_backoff_delays_grow(self):
        sleeps = []
        model = MockChatModel(
            responses=["ok"],
            errors=[errors.timeout_error("slow", "mock")] * 3,
        )
        retry = RetryInterceptor(
            max_attempts=3, initial_delay_ms=100, jitter_fraction=0, sleep=sleeps.append
        )
        chat_with_interceptors(model, MESSAGES, [retry])
        assert sleeps == [0.1, 0.2, 0.4]

    def test_recovered_enter_error_runs_once_without_flag(self):
        def flaky_enter(ctx):
            raise errors.server_error(503, "unavailable", "mock")

        model = MockChatModel(responses=["ok"])
        ctx = chat_with_interceptors_context(
            model, MESSAGES, [RetryInterceptor(sleep=no_sleep), flaky_enter]
        )

        assert extract_content(ctx.response) == "ok"
        assert ctx.metadata["retry_count"] == 1
        assert "retry_requested" not in ctx.metadata
        assert model.call_count == 1

    def test_enter_recovery_does_not_reattempt_later_failure(self):
        """A retry granted in the enter phase does not re-run a unit failure
        that another handler recovered."""

        def flaky_enter(ctx):
            raise errors.server_error(503, "unavailable", "mock")

        fallback = interceptor(error=lambda ctx, e: ctx.clear_error().with_response("fallback"))
        model = MockChatModel(errors=[errors.authentication_error("mock")])

        ctx = chat_with_interceptors_context(
            model, MESSAGES, [fallback, RetryInterceptor(sleep=no_sleep), flaky_enter]
        )

        assert ctx.response == "fallback"
        assert "retry_requested" not in ctx.metadata
        assert model.call_count == 1


# =============================================================================
# Caching through the helper
# =============================================================================

class TestCacheScenarios:
    """Identical calls through one CacheInterceptor run the unit once."""

    def test_second_call_served_from_cache(self):
        counter = {"calls": 0}

        def unit(target, request, options):
            counter["calls"] += 1
            return text_response(f"call {counter['calls']}")

        cache = CacheInterceptor()
        first = call_with_interceptors_context("m", MESSAGES, [cache], unit, {"temperature": 0})
        second = call_with_interceptors_context("m", MESSAGES, [cache], unit, {"temperature": 0})

        assert counter["calls"] == 1
        assert not first.terminated
        assert second.terminated
        assert second.response == first.response

    def test_different_options_miss(self):
        model = MockChatModel(responses=["a", "b"])
        cache = CacheInterceptor()
        chat_with_interceptors(model, MESSAGES, [cache], {"temperature": 0})
        chat_with_interceptors(model, MESSAGES, [cache], {"temperature": 1})
        assert model.call_count == 2

    def test_cache_hit_still_logged(self):
        events = []
        model = MockChatModel(responses=["a"])
        chain = [LoggingInterceptor(sink=events.append), CacheInterceptor()]
        chat_with_interceptors(model, MESSAGES, chain)
        chat_with_interceptors(model, MESSAGES, chain)
        assert [e["event"] for e in events] == ["request", "response", "request", "response"]
        assert model.call_count == 1

    def test_shared_cache_across_threads(self):
        """Each thread misses at most once; every call sees the same answer."""
        model = MockChatModel(responses=["cached"], delay_ms=5)
        cache = CacheInterceptor()
        results = []

        def worker():
            for _ in range(20):
                results.append(extract_content(chat_with_interceptors(model, MESSAGES, [cache])))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results == ["cached"] * 160
        assert 1 <= model.call_count <= 8


# =============================================================================
# Rate limiting through the helper
# =============================================================================

class TestRateLimitScenarios:
    """Back-to-back calls through a one-token bucket are spaced out."""

    def test_burst_of_one_spaces_calls(self):
        model = MockChatModel(responses=["ok"])
        limiter = RateLimiter(requests_per_minute=60, burst_size=1, poll_interval=0.01)

        completed = []
        for _ in range(2):
            chat_with_interceptors(model, MESSAGES, [limiter])
            completed.append(time.monotonic())

        assert completed[1] - completed[0] >= 0.95
