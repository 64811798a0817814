"""
interlude - Interceptor Chains for Chat Backends
================================================

A small, provider-agnostic execution engine that wraps a unit of work (a
call to a chat/completion backend) in composable enter/leave/error phases:
- Retries with exponential backoff and server-suggested waits
- Response caching with TTL
- Token-bucket rate limiting
- Context trimming (token budgets, sliding windows)
- Structured logging and cost accounting

Quick Start:
    ```python
    from interlude import chat_with_interceptors
    from interlude.core import system_message, user_message
    from interlude.interceptors import (
        CacheInterceptor,
        LoggingInterceptor,
        RetryInterceptor,
        TokenLimiter,
    )

    response = chat_with_interceptors(
        model,
        [system_message("Be brief."), user_message("Hello!")],
        [
            LoggingInterceptor(),
            RetryInterceptor(max_attempts=3),
            CacheInterceptor(ttl_ms=60_000),
            TokenLimiter(limit=4000),
        ],
    )
    ```

Custom Interceptors:
    ```python
    from interlude import interceptor

    add_temperature = interceptor(
        name="temperature",
        enter=lambda ctx: ctx.evolve(
            transformed_options={**ctx.effective_options, "temperature": 0.2}
        ),
    )
    ```

From Configuration:
    ```python
    from interlude import interceptors_from_config

    # Reads ./interlude.toml ([interceptors] chain = [...])
    chain = interceptors_from_config()
    ```
"""

__version__ = "0.1.0"

from interlude.chat import (
    ChatModel,
    call_with_interceptors,
    call_with_interceptors_context,
    chat_with_interceptors,
    chat_with_interceptors_context,
)
from interlude.config import interceptors_from_config, load_config
from interlude.errors import ErrorKind, ProviderError, is_retryable
from interlude.interceptors.base import (
    Context,
    ContractViolation,
    FunctionInterceptor,
    Interceptor,
    InterceptorDefinitionError,
    chain,
    interceptor,
    is_interceptor,
)
from interlude.interceptors.engine import execute, execute_all, execute_leave

__all__ = [
    "__version__",
    # Composition
    "ChatModel",
    "call_with_interceptors",
    "call_with_interceptors_context",
    "chat_with_interceptors",
    "chat_with_interceptors_context",
    # Interceptors
    "Interceptor",
    "FunctionInterceptor",
    "Context",
    "ContractViolation",
    "InterceptorDefinitionError",
    "interceptor",
    "is_interceptor",
    "chain",
    # Engine
    "execute",
    "execute_leave",
    "execute_all",
    # Errors
    "ErrorKind",
    "ProviderError",
    "is_retryable",
    # Config
    "interceptors_from_config",
    "load_config",
]
