"""
Classified errors raised by chat backends.

Provider clients translate transport and HTTP failures into ProviderError
instances carrying an ErrorKind. Interceptors (retry, logging) classify
errors through the predicates in this module; anything that is not a
ProviderError is treated as unclassified.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from interlude.core.utils import now_ms


class ErrorKind(str, Enum):
    """Classification of provider errors."""

    RATE_LIMIT = "rate_limit"            # 429 - Too many requests
    AUTHENTICATION = "authentication"    # 401 - Invalid API key
    AUTHORIZATION = "authorization"      # 403 - Not allowed
    INVALID_REQUEST = "invalid_request"  # 400 - Bad request format
    NOT_FOUND = "not_found"              # 404 - Model/resource not found
    SERVER_ERROR = "server_error"        # 5xx - Provider server error
    TIMEOUT = "timeout"
    NETWORK = "network"
    VALIDATION = "validation"            # Response validation failed
    TOOL_ERROR = "tool_error"
    MAX_ITERATIONS = "max_iterations"
    MAX_TOKENS = "max_tokens"
    CONTENT_FILTER = "content_filter"


RETRYABLE_KINDS = frozenset({
    ErrorKind.RATE_LIMIT,
    ErrorKind.SERVER_ERROR,
    ErrorKind.TIMEOUT,
    ErrorKind.NETWORK,
})

CLIENT_KINDS = frozenset({
    ErrorKind.AUTHENTICATION,
    ErrorKind.AUTHORIZATION,
    ErrorKind.INVALID_REQUEST,
    ErrorKind.VALIDATION,
})


class ProviderError(Exception):
    """A classified error from a chat backend.

    Attributes:
        kind: Error classification.
        message: Human-readable message.
        provider: Provider tag (e.g. "openai", "mock").
        retry_after: Server-suggested wait before retrying, in seconds.
        status: HTTP status code, when the error came from a response.
        data: Additional error details.
        timestamp: Creation time in epoch milliseconds.
    """

    def __init__(
        self,
        kind: ErrorKind | str,
        message: str,
        *,
        provider: str | None = None,
        retry_after: float | None = None,
        status: int | None = None,
        data: Mapping[str, Any] | None = None,
    ) -> None:
        try:
            self.kind = ErrorKind(kind)
        except ValueError:
            raise ValueError(f"Invalid error kind: {kind!r}") from None
        self.message = message
        self.provider = provider
        self.retry_after = retry_after
        self.status = status
        self.data = dict(data or {})
        self.timestamp = now_ms()
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """True if the kind is worth retrying."""
        return self.kind in RETRYABLE_KINDS

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging and serialization."""
        result: dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
            "provider": self.provider,
            "timestamp": self.timestamp,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        if self.status is not None:
            result["status"] = self.status
        if self.data:
            result["data"] = self.data
        return result

    def __repr__(self) -> str:
        return f"ProviderError(kind={self.kind.value!r}, message={self.message!r}, provider={self.provider!r})"


# =============================================================================
# Constructors
# =============================================================================

def rate_limit_error(
    message: str,
    *,
    retry_after: float | None = None,
    provider: str | None = None,
) -> ProviderError:
    """Create a rate limit error with optional retry-after seconds."""
    return ProviderError(
        ErrorKind.RATE_LIMIT, message, provider=provider, retry_after=retry_after, status=429
    )


def authentication_error(provider: str) -> ProviderError:
    """Create an authentication error for a provider."""
    return ProviderError(
        ErrorKind.AUTHENTICATION, f"Invalid API key for {provider}", provider=provider, status=401
    )


def authorization_error(provider: str, message: str = "Access denied") -> ProviderError:
    """Create an authorization error for a provider."""
    return ProviderError(ErrorKind.AUTHORIZATION, message, provider=provider, status=403)


def invalid_request_error(
    message: str,
    details: Mapping[str, Any] | None = None,
    *,
    provider: str | None = None,
) -> ProviderError:
    """Create an invalid request error."""
    return ProviderError(
        ErrorKind.INVALID_REQUEST, message, provider=provider, status=400, data=details
    )


def server_error(status: int, body: Any, provider: str) -> ProviderError:
    """Create a server error from an HTTP status and body."""
    return ProviderError(
        ErrorKind.SERVER_ERROR,
        f"Server error from {provider}",
        provider=provider,
        status=status,
        data={"body": body},
    )


def timeout_error(message: str, provider: str | None, timeout_ms: int | None = None) -> ProviderError:
    """Create a timeout error."""
    return ProviderError(
        ErrorKind.TIMEOUT, message, provider=provider, data={"timeout_ms": timeout_ms}
    )


def network_error(message: str, cause: BaseException, *, provider: str | None = None) -> ProviderError:
    """Create a network error chained to its cause."""
    err = ProviderError(
        ErrorKind.NETWORK, message, provider=provider, data={"cause_message": str(cause)}
    )
    err.__cause__ = cause
    return err


def validation_error(message: str, errors: list[Any]) -> ProviderError:
    """Create a response validation error."""
    return ProviderError(ErrorKind.VALIDATION, message, data={"errors": list(errors)})


def tool_error(tool_name: str, message: str, cause: BaseException | None = None) -> ProviderError:
    """Create a tool execution error."""
    data: dict[str, Any] = {"tool_name": tool_name}
    if cause is not None:
        data["cause_message"] = str(cause)
    err = ProviderError(ErrorKind.TOOL_ERROR, message, data=data)
    if cause is not None:
        err.__cause__ = cause
    return err


# =============================================================================
# HTTP status mapping
# =============================================================================

def kind_for_status(status: int) -> ErrorKind:
    """Map an HTTP status code to an error kind."""
    if status == 400:
        return ErrorKind.INVALID_REQUEST
    if status == 401:
        return ErrorKind.AUTHENTICATION
    if status == 403:
        return ErrorKind.AUTHORIZATION
    if status == 404:
        return ErrorKind.NOT_FOUND
    if status == 429:
        return ErrorKind.RATE_LIMIT
    if 500 <= status <= 599:
        return ErrorKind.SERVER_ERROR
    return ErrorKind.INVALID_REQUEST


def _parse_retry_after(headers: Mapping[str, Any] | None) -> float | None:
    if not headers:
        return None
    for key, value in headers.items():
        if key.lower() == "retry-after":
            try:
                return float(value)
            except (TypeError, ValueError):
                return None
    return None


def http_error(
    status: int,
    body: Any,
    provider: str,
    headers: Mapping[str, Any] | None = None,
) -> ProviderError:
    """Create an error from an HTTP response.

    The kind comes from the status code; a ``Retry-After`` header (seconds)
    becomes ``retry_after``.
    """
    return ProviderError(
        kind_for_status(status),
        f"HTTP {status} from {provider}",
        provider=provider,
        status=status,
        retry_after=_parse_retry_after(headers),
        data={
            "body": body if isinstance(body, str) else str(body),
            "headers": dict(headers or {}),
        },
    )


# =============================================================================
# Predicates
# =============================================================================

def error_kind(error: BaseException | None) -> ErrorKind | None:
    """Get the kind of a classified error, or None."""
    if isinstance(error, ProviderError):
        return error.kind
    return None


def is_provider_error(error: BaseException | None) -> bool:
    """True if error is a classified ProviderError."""
    return isinstance(error, ProviderError)


def is_rate_limited(error: BaseException | None) -> bool:
    """True if error is a rate limit."""
    return error_kind(error) == ErrorKind.RATE_LIMIT


def is_authentication_error(error: BaseException | None) -> bool:
    """True if error is an authentication failure."""
    return error_kind(error) == ErrorKind.AUTHENTICATION


def is_authorization_error(error: BaseException | None) -> bool:
    """True if error is an authorization failure."""
    return error_kind(error) == ErrorKind.AUTHORIZATION


def is_retryable(error: BaseException | None) -> bool:
    """True if error should be retried (rate limit, server, timeout, network)."""
    return error_kind(error) in RETRYABLE_KINDS


def is_client_error(error: BaseException | None) -> bool:
    """True if error is the caller's fault and must not be retried."""
    return error_kind(error) in CLIENT_KINDS


# =============================================================================
# Handling utilities
# =============================================================================

def with_error_handler(
    fn: Callable[..., Any],
    handlers: Mapping[ErrorKind | str, Callable[[ProviderError, tuple[Any, ...]], Any]],
) -> Callable[..., Any]:
    """Wrap fn so classified errors are routed to a handler by kind.

    Errors without a matching handler are re-raised unchanged.

    Example:
        ```python
        safe_chat = with_error_handler(
            model.chat,
            {
                ErrorKind.RATE_LIMIT: lambda e, args: {"error": "Rate limited"},
                "authentication": lambda e, args: {"error": "Invalid API key"},
            },
        )
        ```
    """
    by_kind = {ErrorKind(kind): handler for kind, handler in handlers.items()}

    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except ProviderError as e:
            handler = by_kind.get(e.kind)
            if handler is None:
                raise
            return handler(e, args)

    return wrapper


def try_call(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> dict[str, Any]:
    """Call fn, returning ``{"ok": result}`` or ``{"error": details}``."""
    try:
        return {"ok": fn(*args, **kwargs)}
    except ProviderError as e:
        return {"error": e.to_dict()}
    except Exception as e:
        return {"error": {"kind": "unknown", "message": str(e), "cause": e}}


__all__ = [
    "ErrorKind",
    "ProviderError",
    "RETRYABLE_KINDS",
    "CLIENT_KINDS",
    "rate_limit_error",
    "authentication_error",
    "authorization_error",
    "invalid_request_error",
    "server_error",
    "timeout_error",
    "network_error",
    "validation_error",
    "tool_error",
    "kind_for_status",
    "http_error",
    "error_kind",
    "is_provider_error",
    "is_rate_limited",
    "is_authentication_error",
    "is_authorization_error",
    "is_retryable",
    "is_client_error",
    "with_error_handler",
    "try_call",
]
