"""
Cost accounting interceptor.

Prices token usage reported by the unit of work against a per-model table.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from interlude.core.messages import input_tokens, output_tokens
from interlude.core.utils import model_identifier
from interlude.interceptors.base import Context, Interceptor

logger = logging.getLogger(__name__)

COST = "cost"

# USD per 1M tokens
PRICING: dict[str, dict[str, float]] = {
    "grok-3": {"input": 3.00, "output": 15.00},
    "grok-3-fast": {"input": 5.00, "output": 25.00},
    "grok-3-mini": {"input": 0.30, "output": 0.50},
    "grok-3-mini-fast": {"input": 0.60, "output": 4.00},
    "claude-sonnet-4-20250514": {"input": 3.00, "output": 15.00},
    "claude-3-5-haiku-20241022": {"input": 0.80, "output": 4.00},
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
}


def calculate_cost(
    model_name: str | None,
    usage: Mapping[str, Any],
    pricing: Mapping[str, Mapping[str, float]] = PRICING,
) -> dict[str, float]:
    """Price a usage record. Unknown models cost nothing."""
    prices = pricing.get(model_name or "", {})
    input_cost = usage.get("input_tokens", 0) * prices.get("input", 0) / 1_000_000
    output_cost = usage.get("output_tokens", 0) * prices.get("output", 0) / 1_000_000
    return {
        "input_cost": input_cost,
        "output_cost": output_cost,
        "total_cost": input_cost + output_cost,
    }


def _ignore_usage(record: dict[str, Any]) -> None:
    return None


@dataclass
class CostTracker(Interceptor):
    """Track token usage and cost per call.

    On ``leave``, if the response carries usage, prices it for the target's
    model (or ``response["model"]`` when the target's name is not priced),
    hands ``{"model", "usage", "cost"}`` to ``on_usage``, and stores the cost
    in ``metadata["cost"]``. Totals accumulate across every call through the
    same instance.

    Attributes:
        on_usage: Callback receiving each usage record.
        pricing: Per-1M-token input/output prices keyed by model name.

    Example:
        ```python
        tracker = CostTracker(on_usage=print)
        chat_with_interceptors(model, messages, [tracker])
        print(f"${tracker.total_cost:.4f} over {tracker.calls} calls")
        ```
    """

    on_usage: Callable[[dict[str, Any]], None] = _ignore_usage
    pricing: Mapping[str, Mapping[str, float]] = field(default_factory=lambda: dict(PRICING))
    name: str = "cost_tracking"
    _total_cost: float = field(default=0.0, init=False, repr=False)
    _calls: int = field(default=0, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @property
    def total_cost(self) -> float:
        with self._lock:
            return self._total_cost

    @property
    def calls(self) -> int:
        with self._lock:
            return self._calls

    def _model_name(self, ctx: Context) -> str:
        name = model_identifier(ctx.target)
        if name not in self.pricing and isinstance(ctx.response, Mapping):
            return ctx.response.get("model") or name
        return name

    def leave(self, ctx: Context) -> Context:
        response = ctx.response
        usage = response.get("usage") if isinstance(response, Mapping) else None
        if not usage:
            return ctx

        model_name = self._model_name(ctx)
        cost = calculate_cost(model_name, usage, self.pricing)
        with self._lock:
            self._total_cost += cost["total_cost"]
            self._calls += 1

        logger.debug(
            "%s used %d in / %d out tokens ($%.6f)",
            model_name,
            input_tokens(response),
            output_tokens(response),
            cost["total_cost"],
        )
        self.on_usage({"model": model_name, "usage": dict(usage), "cost": cost})
        return ctx.with_metadata(**{COST: cost})

    def reset(self) -> None:
        """Zero the accumulated totals."""
        with self._lock:
            self._total_cost = 0.0
            self._calls = 0


__all__ = [
    "CostTracker",
    "PRICING",
    "calculate_cost",
    "COST",
]
