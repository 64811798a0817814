"""
Models - chat model test doubles.

Real provider clients live outside this package; anything with a
``chat(messages, options)`` method can be wrapped with interceptors.
"""

from interlude.models.mock import MockChatModel, error_response, text_response, tool_response

__all__ = [
    "MockChatModel",
    "text_response",
    "tool_response",
    "error_response",
]
