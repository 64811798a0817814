"""
Core module - foundational helpers for interlude.
"""

from interlude.core.messages import (
    assistant_message,
    estimate_tokens,
    extract_content,
    extract_tool_calls,
    has_tool_calls,
    image_url,
    input_tokens,
    is_system,
    messages_to_text,
    output_tokens,
    split_system,
    system_message,
    text_block,
    tool_message,
    total_tokens,
    user_message,
)
from interlude.core.utils import (
    generate_id,
    model_identifier,
    monotonic_ms,
    now_ms,
)

__all__ = [
    # Messages
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
    # Responses
    "extract_content",
    "extract_tool_calls",
    "has_tool_calls",
    "input_tokens",
    "output_tokens",
    "total_tokens",
    # Utilities
    "generate_id",
    "model_identifier",
    "monotonic_ms",
    "now_ms",
]
