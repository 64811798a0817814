"""
Logging interceptor.

Observes requests, responses and errors without changing them. Events are
plain dicts handed to a sink; the default sink writes them to the
``interlude.interceptors`` logger.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from interlude.core.utils import generate_id, model_identifier, monotonic_ms
from interlude.errors import ProviderError
from interlude.interceptors.base import Context, Interceptor

logger = logging.getLogger("interlude.interceptors")

REQUEST_ID = "request_id"
REDACTED = "[REDACTED]"

LogSink = Callable[[dict[str, Any]], None]


def redact(value: Any, fields: frozenset[str] | set[str]) -> Any:
    """Replace values of sensitive keys, recursing into mappings and lists."""
    if isinstance(value, Mapping):
        return {
            k: REDACTED if k in fields else redact(v, fields)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(v, fields) for v in value]
    return value


@dataclass
class LoggingInterceptor(Interceptor):
    """Log requests, responses and errors.

    ``enter`` tags the call with ``metadata["request_id"]`` and records the
    start time on the interceptor (keyed by request id, so concurrent calls
    do not collide). ``leave`` reports elapsed time and usage. ``error``
    reports the classified error and passes the context through.

    Attributes:
        sink: Receives each event dict (default: standard logging).
        level: Log level name for request/response events.
        log_request: Emit request events.
        log_response: Emit response events.
        redact_fields: Option keys whose values are masked.
        custom_logger: Logger used by the default sink.

    Example:
        ```python
        events = []
        chat_with_interceptors(model, messages, [LoggingInterceptor(sink=events.append)])
        ```
    """

    sink: LogSink | None = None
    level: str = "INFO"
    log_request: bool = True
    log_response: bool = True
    redact_fields: frozenset[str] | set[str] = frozenset({"api_key"})
    custom_logger: logging.Logger | None = None
    name: str = "logging"
    _start_times: dict[str, float] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        self._log = self.custom_logger or logger
        self._level = getattr(logging, self.level.upper(), logging.INFO)

    def _emit(self, event: dict[str, Any]) -> None:
        if self.sink is not None:
            self.sink(event)
            return
        level = logging.ERROR if event["event"] == "error" else self._level
        details = " ".join(f"{k}={v}" for k, v in event.items() if k not in ("event", "level"))
        self._log.log(level, "[%s] %s", event["event"], details)

    def enter(self, ctx: Context) -> Context:
        request_id = generate_id("req", length=12)
        with self._lock:
            self._start_times[request_id] = monotonic_ms()

        if self.log_request:
            request = ctx.effective_request
            options = ctx.effective_options
            self._emit({
                "level": self.level.lower(),
                "event": "request",
                "request_id": request_id,
                "target": model_identifier(ctx.target),
                "message_count": len(request) if hasattr(request, "__len__") else None,
                "has_tools": bool(options.get("tools")),
                "options": redact(
                    {k: v for k, v in options.items() if k != "tools"},
                    self.redact_fields,
                ),
            })
        return ctx.with_metadata(**{REQUEST_ID: request_id})

    def _elapsed_ms(self, request_id: str | None) -> float | None:
        with self._lock:
            start = self._start_times.pop(request_id, None)
        if start is None:
            return None
        return monotonic_ms() - start

    def leave(self, ctx: Context) -> Context:
        request_id = ctx.metadata.get(REQUEST_ID)
        elapsed = self._elapsed_ms(request_id)

        if self.log_response:
            response = ctx.response if isinstance(ctx.response, Mapping) else {}
            self._emit({
                "level": self.level.lower(),
                "event": "response",
                "request_id": request_id,
                "elapsed_ms": elapsed,
                "stop_reason": response.get("stop_reason"),
                "usage": response.get("usage"),
            })
        return ctx

    def error(self, ctx: Context, error: BaseException) -> Context:
        request_id = ctx.metadata.get(REQUEST_ID)
        event: dict[str, Any] = {
            "level": "error",
            "event": "error",
            "request_id": request_id,
            "elapsed_ms": self._elapsed_ms(request_id),
            "error_type": error.kind.value if isinstance(error, ProviderError) else type(error).__name__,
            "message": str(error),
        }
        if isinstance(error, ProviderError):
            event["provider"] = error.provider
        self._emit(event)
        return ctx


__all__ = [
    "LoggingInterceptor",
    "LogSink",
    "redact",
    "REQUEST_ID",
]
