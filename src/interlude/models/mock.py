"""Mock chat model for testing.

Provides a deterministic stand-in for provider clients that doesn't make
API calls. Responses use the normalized response dict shape (see
``interlude.core.messages``).

Usage:
    from interlude.models.mock import MockChatModel, text_response
    from interlude.errors import rate_limit_error

    # Fail once with a rate limit, then answer
    model = MockChatModel(
        responses=[text_response("Hello!")],
        errors=[rate_limit_error("slow down")],
    )
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from interlude import errors
from interlude.core.messages import Message

DEFAULT_MODEL = "mock-model"


def _usage(input_tokens: int = 10, output_tokens: int = 20) -> dict[str, int]:
    return {
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "total_tokens": input_tokens + output_tokens,
    }


def text_response(text: str, **opts: Any) -> dict[str, Any]:
    """Build a text response.

    Args:
        text: Response content.
        **opts: ``model``, ``usage`` and ``stop_reason`` override the
            defaults; any other key is added to the response as-is.

    Example:
        >>> text_response("Hi", usage={"input_tokens": 3, "output_tokens": 1})["content"]
        'Hi'
    """
    return {
        "id": "mock-response-id",
        "role": "assistant",
        "content": text,
        "model": opts.pop("model", DEFAULT_MODEL),
        "stop_reason": opts.pop("stop_reason", "end_turn"),
        "usage": opts.pop("usage", None) or _usage(),
        **opts,
    }


def tool_response(tool_calls: Sequence[dict[str, Any]], **opts: Any) -> dict[str, Any]:
    """Build a response requesting tool calls.

    Each tool call needs ``name`` and ``arguments``; ``id`` defaults to
    ``mock-call-<index>``.
    """
    calls = [
        {
            "id": tc.get("id") or f"mock-call-{idx}",
            "type": "function",
            "function": {"name": tc["name"], "arguments": tc.get("arguments", {})},
        }
        for idx, tc in enumerate(tool_calls)
    ]
    return {
        "id": "mock-response-id",
        "role": "assistant",
        "content": "",
        "model": opts.pop("model", DEFAULT_MODEL),
        "stop_reason": opts.pop("stop_reason", "tool_use"),
        "tool_calls": calls,
        "usage": opts.pop("usage", None) or _usage(),
        **opts,
    }


def error_response(kind: str, message: str, **opts: Any) -> errors.ProviderError:
    """Build the ProviderError a provider would raise for ``kind``."""
    provider = opts.pop("provider", "mock")
    if kind == "rate_limit":
        return errors.rate_limit_error(message, retry_after=opts.get("retry_after"), provider=provider)
    if kind == "authentication":
        return errors.authentication_error(provider)
    if kind == "authorization":
        return errors.authorization_error(provider, message)
    if kind == "invalid_request":
        return errors.invalid_request_error(message, opts.get("details"), provider=provider)
    if kind == "validation":
        return errors.validation_error(message, opts.get("errors", []))
    return errors.ProviderError(kind, message, provider=provider, data=opts or None)


ResponseSpec = str | dict[str, Any] | Callable[[list[Message], dict[str, Any]], Any]


@dataclass
class MockChatModel:
    """Mock chat model for testing without API calls.

    Each call first consults ``errors``: the entry for this call index, if
    present and not None, is raised. Otherwise the next entry of
    ``responses`` is returned, cycling back to the start when exhausted.
    Strings become text responses; callables are called with
    ``(messages, options)``. With no responses the model echoes the last
    user message.

    Attributes:
        responses: Responses to return in sequence.
        errors: Exceptions to raise per call index (None = succeed).
        model_name: Model name reported to interceptors.
        delay_ms: Simulated latency per call.

    Example:
        >>> model = MockChatModel(responses=["Hello!", "Goodbye!"])
        >>> model.chat([{"role": "user", "content": "Hi"}])["content"]
        'Hello!'
        >>> model.call_count
        1
    """

    responses: list[ResponseSpec] = field(default_factory=list)
    errors: list[BaseException | None] = field(default_factory=list)
    model_name: str = DEFAULT_MODEL
    delay_ms: int = 0

    calls: list[tuple[list[Message], dict[str, Any]]] = field(default_factory=list, init=False, repr=False)
    _response_index: int = field(default=0, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def _next_response(self, messages: list[Message], options: dict[str, Any]) -> Any:
        if not self.responses:
            users = [m for m in messages if m.get("role") == "user"]
            last = users[-1].get("content", "") if users else ""
            return text_response(f"Echo: {last}", model=self.model_name)

        with self._lock:
            spec = self.responses[self._response_index % len(self.responses)]
            self._response_index += 1

        if callable(spec):
            return spec(messages, options)
        if isinstance(spec, str):
            return text_response(spec, model=self.model_name)
        return spec

    def chat(self, messages: list[Message], options: dict[str, Any] | None = None) -> Any:
        """Return the next mock response (or raise the scheduled error)."""
        options = dict(options or {})
        with self._lock:
            index = len(self.calls)
            self.calls.append((list(messages), options))

        if self.delay_ms:
            time.sleep(self.delay_ms / 1000)

        if index < len(self.errors) and self.errors[index] is not None:
            raise self.errors[index]

        return self._next_response(list(messages), options)

    def reset(self) -> None:
        """Forget recorded calls and start responses from the beginning."""
        with self._lock:
            self.calls.clear()
            self._response_index = 0


__all__ = [
    "MockChatModel",
    "text_response",
    "tool_response",
    "error_response",
]
