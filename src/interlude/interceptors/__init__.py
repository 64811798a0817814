"""
Interceptors - composable units wrapping a unit of work.

Each interceptor may define ``enter``, ``leave`` and ``error`` callbacks.
The engine runs enter callbacks in chain order, the unit of work, then leave
callbacks in reverse order; errors unwind the entered interceptors through
their ``error`` callbacks until one recovers.

Example:
    from interlude import chat_with_interceptors
    from interlude.interceptors import CacheInterceptor, RetryInterceptor, TokenLimiter

    response = chat_with_interceptors(
        model,
        messages,
        [
            RetryInterceptor(max_attempts=3),
            CacheInterceptor(ttl_ms=60_000),
            TokenLimiter(limit=4000),
        ],
    )
"""

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
from interlude.interceptors.engine import (
    execute,
    execute_all,
    execute_leave,
    run_enter_phase,
    run_error_phase,
    run_leave_phase,
)
from interlude.interceptors.budget import PRICING, CostTracker, calculate_cost
from interlude.interceptors.cache import (
    CacheEntry,
    CacheInterceptor,
    CacheStore,
    InMemoryCacheStore,
    default_cache_key,
)
from interlude.interceptors.context import (
    PreserveSystem,
    SlidingWindow,
    TokenLimiter,
    tiktoken_counter,
    trim_to_budget,
)
from interlude.interceptors.logging import LoggingInterceptor
from interlude.interceptors.ratelimit import RateLimiter, TokenBucket
from interlude.interceptors.retry import RetryInterceptor
from interlude.interceptors.timeout import TimeoutInterceptor, deadline_passed

__all__ = [
    # Core
    "Interceptor",
    "FunctionInterceptor",
    "Context",
    "ContractViolation",
    "InterceptorDefinitionError",
    "interceptor",
    "is_interceptor",
    "chain",
    # Engine
    "run_enter_phase",
    "run_leave_phase",
    "run_error_phase",
    "execute",
    "execute_leave",
    "execute_all",
    # Retry
    "RetryInterceptor",
    # Cache
    "CacheInterceptor",
    "CacheStore",
    "CacheEntry",
    "InMemoryCacheStore",
    "default_cache_key",
    # Rate limiting
    "RateLimiter",
    "TokenBucket",
    # Context
    "TokenLimiter",
    "SlidingWindow",
    "PreserveSystem",
    "trim_to_budget",
    "tiktoken_counter",
    # Observability
    "LoggingInterceptor",
    # Cost
    "CostTracker",
    "PRICING",
    "calculate_cost",
    # Timeout
    "TimeoutInterceptor",
    "deadline_passed",
]
