"""
Run a unit of work inside an interceptor chain.

``call_with_interceptors`` is the generic entry point: it builds a Context,
runs the enter phase, calls the unit of work with the effective request and
options, runs the leave phase, and raises any error nobody recovered.
``chat_with_interceptors`` specializes it for chat models.

Example:
    from interlude import chat_with_interceptors
    from interlude.core import user_message
    from interlude.interceptors import RetryInterceptor, LoggingInterceptor

    response = chat_with_interceptors(
        model,
        [user_message("Hello")],
        [LoggingInterceptor(), RetryInterceptor(max_attempts=3)],
        options={"temperature": 0.2},
    )
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, Protocol, runtime_checkable

from interlude.core.messages import Message
from interlude.interceptors.base import Context, chain
from interlude.interceptors.engine import execute, execute_leave
from interlude.interceptors.retry import RETRY_REQUESTED

logger = logging.getLogger(__name__)

UnitOfWork = Callable[[Any, Any, Mapping[str, Any]], Any]


@runtime_checkable
class ChatModel(Protocol):
    """Anything that can answer a list of messages.

    Implementations may also expose ``model_name``; interceptors use it to
    identify the model (see ``interlude.core.utils.model_identifier``).
    """

    def chat(self, messages: list[Message], options: Mapping[str, Any] | None = None) -> Any: ...


def _attempt(
    target: Any,
    request: Any,
    interceptors: list[Any],
    unit_of_work: UnitOfWork,
    options: Mapping[str, Any] | None,
    metadata: Mapping[str, Any],
) -> tuple[Context, bool]:
    """One pass through the chain. Returns the final context and whether
    the unit of work raised."""
    ctx = execute(Context.create(target, request, options, queue=interceptors, metadata=metadata))
    if ctx.error is not None:
        raise ctx.error
    # A retry requested while recovering an enter error has nothing to re-run
    if RETRY_REQUESTED in ctx.metadata:
        ctx = ctx.without_metadata(RETRY_REQUESTED)

    failed = False
    if not ctx.terminated:
        try:
            response = unit_of_work(ctx.target, ctx.effective_request, ctx.effective_options)
            ctx = ctx.with_response(response)
        except Exception as e:
            failed = True
            ctx = ctx.with_error(e)

    ctx = execute_leave(ctx)
    if ctx.error is not None:
        raise ctx.error
    return ctx, failed


def call_with_interceptors_context(
    target: Any,
    request: Any,
    interceptors: Any,
    unit_of_work: UnitOfWork,
    options: Mapping[str, Any] | None = None,
) -> Context:
    """Run ``unit_of_work`` wrapped by ``interceptors`` and return the final Context.

    The unit of work is called as ``unit_of_work(target, request, options)``
    with the effective (possibly transformed) request and options. It is
    skipped when an enter callback terminated the chain, in which case the
    response is whatever that interceptor set.

    If the unit of work fails and an error handler recovers by requesting a
    retry (``metadata["retry_requested"]``, see ``RetryInterceptor``), the
    whole chain runs again with a fresh Context that keeps the previous
    metadata. Otherwise a recovered failure returns the recovering
    interceptor's context as-is. The retry flag never appears on the
    returned context, including when it was set while recovering an
    enter-phase error (nothing is re-attempted then).

    Raises:
        The error left on the context after the enter phase or the leave
        phase, unchanged.
        ContractViolation: If a callback returned something other than a
            Context.
    """
    interceptors = chain(interceptors)
    metadata: Mapping[str, Any] = {}
    attempt = 1

    while True:
        ctx, failed = _attempt(target, request, interceptors, unit_of_work, options, metadata)
        retry_requested = ctx.metadata.get(RETRY_REQUESTED)
        if retry_requested:
            ctx = ctx.without_metadata(RETRY_REQUESTED)
        if not (failed and retry_requested):
            return ctx

        attempt += 1
        logger.debug("Unit of work failed and was recovered; starting attempt %d", attempt)
        metadata = ctx.metadata


def call_with_interceptors(
    target: Any,
    request: Any,
    interceptors: Any,
    unit_of_work: UnitOfWork,
    options: Mapping[str, Any] | None = None,
) -> Any:
    """Like ``call_with_interceptors_context`` but returns only the response."""
    return call_with_interceptors_context(target, request, interceptors, unit_of_work, options).response


def _chat(model: ChatModel, messages: Any, options: Mapping[str, Any]) -> Any:
    return model.chat(messages, options)


def chat_with_interceptors_context(
    model: ChatModel,
    messages: list[Message],
    interceptors: Any,
    options: Mapping[str, Any] | None = None,
) -> Context:
    """Call ``model.chat`` through the interceptor chain; return the Context."""
    return call_with_interceptors_context(model, messages, interceptors, _chat, options)


def chat_with_interceptors(
    model: ChatModel,
    messages: list[Message],
    interceptors: Any,
    options: Mapping[str, Any] | None = None,
) -> Any:
    """Call ``model.chat`` through the interceptor chain; return the response.

    Args:
        model: Chat model (anything with ``chat(messages, options)``).
        messages: Conversation messages.
        interceptors: Interceptors in chain order. Nested lists are
            flattened and None entries dropped.
        options: Provider options (temperature, max_tokens, tools, ...).
    """
    return chat_with_interceptors_context(model, messages, interceptors, options).response


__all__ = [
    "ChatModel",
    "UnitOfWork",
    "call_with_interceptors",
    "call_with_interceptors_context",
    "chat_with_interceptors",
    "chat_with_interceptors_context",
]
