"""
Response caching interceptor.

Caches unit-of-work responses keyed on the effective request and options.
A live hit short-circuits the chain: the cached response is placed on the
context and the chain is terminated, so the unit of work never runs.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from collections import OrderedDict
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from interlude.core.utils import now_ms
from interlude.interceptors.base import Context, Interceptor

logger = logging.getLogger(__name__)

CACHE_HIT = "cache_hit"
CACHE_KEY = "cache_key"


@dataclass(frozen=True)
class CacheEntry:
    """A cached response and when it was stored (epoch ms)."""

    response: Any
    timestamp: float

    def is_expired(self, now: float, ttl_ms: float) -> bool:
        """Check if the entry is older than ttl_ms."""
        return now - self.timestamp >= ttl_ms


@runtime_checkable
class CacheStore(Protocol):
    """Storage backend for CacheInterceptor.

    Implementations must be safe to call from multiple threads.
    """

    def get(self, key: str) -> CacheEntry | None: ...

    def set(self, key: str, entry: CacheEntry) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryCacheStore:
    """Thread-safe in-process cache store with optional LRU eviction.

    Args:
        max_entries: Maximum entries kept (None = unbounded). The least
            recently used entry is evicted first.
    """

    def __init__(self, max_entries: int | None = None) -> None:
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._max_entries = max_entries
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> CacheEntry | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self._entries.move_to_end(key)
            return entry

    def set(self, key: str, entry: CacheEntry) -> None:
        with self._lock:
            self._entries[key] = entry
            self._entries.move_to_end(key)
            if self._max_entries is not None:
                while len(self._entries) > self._max_entries:
                    self._entries.popitem(last=False)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries


def default_cache_key(request: Any, options: Mapping[str, Any]) -> str:
    """Deterministic key over the request and options, ignoring tools."""
    payload = {
        "request": request,
        "options": {k: v for k, v in (options or {}).items() if k != "tools"},
    }
    canonical = json.dumps(payload, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _never_skip(request: Any, options: Mapping[str, Any]) -> bool:
    return False


@dataclass
class CacheInterceptor(Interceptor):
    """Cache responses based on request and options.

    Attributes:
        store: Cache store shared by every call through this interceptor.
        ttl_ms: Time to live in milliseconds (default: 1 hour).
        key_fn: Builds the cache key from (request, options).
        skip_fn: Predicate on (request, options); True bypasses the cache.
        clock: Current time in epoch milliseconds.

    Example:
        ```python
        cache = CacheInterceptor(ttl_ms=60_000)

        chat_with_interceptors(model, messages, [cache])  # calls model
        chat_with_interceptors(model, messages, [cache])  # served from cache
        ```
    """

    name: str = "cache"
    store: CacheStore = field(default_factory=InMemoryCacheStore)
    ttl_ms: float = 3_600_000
    key_fn: Callable[[Any, Mapping[str, Any]], str] = default_cache_key
    skip_fn: Callable[[Any, Mapping[str, Any]], bool] = _never_skip
    clock: Callable[[], float] = now_ms

    def __post_init__(self) -> None:
        if self.ttl_ms <= 0:
            raise ValueError("ttl_ms must be positive")

    def enter(self, ctx: Context) -> Context:
        """Serve a live cached response and terminate the chain."""
        request, options = ctx.effective_request, ctx.effective_options
        if self.skip_fn(request, options):
            return ctx

        key = self.key_fn(request, options)
        entry = self.store.get(key)
        if entry is not None and entry.is_expired(self.clock(), self.ttl_ms):
            self.store.delete(key)
            entry = None

        if entry is None:
            return ctx.with_metadata(**{CACHE_KEY: key})

        logger.debug("Cache hit for key %s", key[:12])
        return (
            ctx.with_response(entry.response)
            .with_metadata(**{CACHE_HIT: True, CACHE_KEY: key})
            .terminate()
        )

    def leave(self, ctx: Context) -> Context:
        """Store a fresh response unless it was served from the cache."""
        key = ctx.metadata.get(CACHE_KEY)
        if (
            ctx.metadata.get(CACHE_HIT)
            or key is None
            or ctx.error is not None
            or ctx.response is None
        ):
            return ctx

        self.store.set(key, CacheEntry(response=ctx.response, timestamp=self.clock()))
        return ctx


__all__ = [
    "CacheInterceptor",
    "CacheStore",
    "CacheEntry",
    "InMemoryCacheStore",
    "default_cache_key",
    "CACHE_HIT",
    "CACHE_KEY",
]
