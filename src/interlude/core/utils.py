"""
Utility functions for interlude.
"""

import time
import uuid


def generate_id(prefix: str = "", length: int = 8) -> str:
    """
    Generate a short unique identifier.

    Args:
        prefix: Optional prefix string
        length: Number of characters (default 8)

    Returns:
        A unique ID string, optionally with prefix
    """
    uid = str(uuid.uuid4()).replace("-", "")[:length]
    if prefix:
        return f"{prefix}_{uid}"
    return uid


def now_ms() -> int:
    """Wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def monotonic_ms() -> float:
    """Monotonic clock in milliseconds, for measuring elapsed time."""
    return time.monotonic() * 1000


def model_identifier(model: object) -> str:
    """Return a safe, human-friendly identifier for a model.

    Logs should never carry full model reprs because they may contain
    secrets (e.g., API keys). This helper prefers common name fields and
    falls back to the class name.
    """
    if model is None:
        return "unknown"

    if isinstance(model, str):
        return model

    for attr in ("model_name", "model", "name", "deployment_name"):
        value = getattr(model, attr, None)
        if isinstance(value, str) and value:
            return value

    return type(model).__name__
