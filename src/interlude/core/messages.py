"""
Message and response helpers.

Messages are plain dicts in the OpenAI chat format
(``{"role": ..., "content": ...}``). Responses are the normalized dicts
produced by provider clients::

    {
        "id": "...",
        "role": "assistant",
        "content": "...",
        "model": "...",
        "stop_reason": "end_turn",
        "tool_calls": [...],
        "usage": {"input_tokens": 10, "output_tokens": 20, "total_tokens": 30},
    }
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

Message = dict[str, Any]


# =============================================================================
# Message builders
# =============================================================================

def system_message(content: str) -> Message:
    """Create a system message."""
    return {"role": "system", "content": content}


def user_message(content: str | list[dict[str, Any]]) -> Message:
    """Create a user message. Content may be a string or content blocks."""
    return {"role": "user", "content": content}


def assistant_message(
    content: str = "",
    tool_calls: list[dict[str, Any]] | None = None,
) -> Message:
    """Create an assistant message, optionally carrying tool calls."""
    msg: Message = {"role": "assistant", "content": content}
    if tool_calls:
        msg["tool_calls"] = tool_calls
    return msg


def tool_message(tool_call_id: str, content: str) -> Message:
    """Create a tool result message."""
    return {"role": "tool", "tool_call_id": tool_call_id, "content": content}


def text_block(text: str) -> dict[str, Any]:
    """Create a text content block."""
    return {"type": "text", "text": text}


def image_url(url: str) -> dict[str, Any]:
    """Create an image content block referencing a URL."""
    return {"type": "image_url", "image_url": {"url": url}}


# =============================================================================
# Message inspection
# =============================================================================

def is_system(message: Any) -> bool:
    """True if message is a system message."""
    return isinstance(message, dict) and message.get("role") == "system"


def split_system(messages: Sequence[Message]) -> tuple[list[Message], list[Message]]:
    """Split messages into (system messages, everything else), keeping order."""
    system = [m for m in messages if is_system(m)]
    other = [m for m in messages if not is_system(m)]
    return system, other


def messages_to_text(messages: Sequence[Message]) -> str:
    """Flatten messages to text for token counting."""
    parts = []
    for msg in messages:
        content = msg.get("content", "")
        if isinstance(content, str):
            parts.append(content)
        elif isinstance(content, list):
            # Content arrays (e.g., with images)
            for item in content:
                if isinstance(item, dict) and item.get("type") == "text":
                    parts.append(item.get("text", ""))
                elif isinstance(item, str):
                    parts.append(item)
        if "tool_calls" in msg:
            parts.append(json.dumps(msg["tool_calls"], default=str))
    return " ".join(parts)


def estimate_tokens(messages: Sequence[Message]) -> int:
    """Rough token estimate (4 chars ≈ 1 token)."""
    return len(messages_to_text(messages)) // 4


# =============================================================================
# Response accessors
# =============================================================================

def extract_content(response: dict[str, Any] | None) -> str:
    """Get the text content of a response."""
    if not response:
        return ""
    content = response.get("content", "")
    if isinstance(content, list):
        return "".join(
            block.get("text", "")
            for block in content
            if isinstance(block, dict) and block.get("type") == "text"
        )
    return content or ""


def extract_tool_calls(response: dict[str, Any] | None) -> list[dict[str, Any]]:
    """Get tool calls from a response (empty list when none)."""
    if not response:
        return []
    return list(response.get("tool_calls") or [])


def has_tool_calls(response: dict[str, Any] | None) -> bool:
    """True if the response requests tool calls."""
    return bool(extract_tool_calls(response))


def input_tokens(response: dict[str, Any] | None) -> int:
    """Input tokens reported in the response usage."""
    return ((response or {}).get("usage") or {}).get("input_tokens", 0)


def output_tokens(response: dict[str, Any] | None) -> int:
    """Output tokens reported in the response usage."""
    return ((response or {}).get("usage") or {}).get("output_tokens", 0)


def total_tokens(response: dict[str, Any] | None) -> int:
    """Total tokens, falling back to input + output."""
    usage = (response or {}).get("usage") or {}
    if "total_tokens" in usage:
        return usage["total_tokens"]
    return usage.get("input_tokens", 0) + usage.get("output_tokens", 0)


__all__ = [
    "Message",
    "system_message",
    "user_message",
    "assistant_message",
    "tool_message",
    "text_block",
    "image_url",
    "is_system",
    "split_system",
    "messages_to_text",
    "estimate_tokens",
    "extract_content",
    "extract_tool_calls",
    "has_tool_calls",
    "input_tokens",
    "output_tokens",
    "total_tokens",
]
