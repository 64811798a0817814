"""
Tests for core helpers: message builders, response accessors, utilities.
"""

from interlude.core import (
    assistant_message,
    estimate_tokens,
    extract_content,
    extract_tool_calls,
    generate_id,
    has_tool_calls,
    image_url,
    input_tokens,
    is_system,
    messages_to_text,
    model_identifier,
    now_ms,
    output_tokens,
    split_system,
    system_message,
    text_block,
    tool_message,
    total_tokens,
    user_message,
)


class TestMessageBuilders:
    """Test message constructors."""

    def test_roles(self):
        assert system_message("s") == {"role": "system", "content": "s"}
        assert user_message("u") == {"role": "user", "content": "u"}
        assert assistant_message("a") == {"role": "assistant", "content": "a"}
        assert tool_message("call_1", "42") == {
            "role": "tool",
            "tool_call_id": "call_1",
            "content": "42",
        }

    def test_assistant_with_tool_calls(self):
        calls = [{"id": "c1", "function": {"name": "f"}}]
        assert assistant_message(tool_calls=calls)["tool_calls"] == calls

    def test_content_blocks(self):
        msg = user_message([text_block("look"), image_url("https://example.com/cat.png")])
        assert msg["content"][1]["image_url"]["url"] == "https://example.com/cat.png"


class TestMessageInspection:
    """Test system splitting and token estimates."""

    def test_split_system_keeps_order(self):
        messages = [user_message("1"), system_message("s"), user_message("2")]
        system, other = split_system(messages)
        assert system == [messages[1]]
        assert other == [messages[0], messages[2]]
        assert is_system(messages[1]) and not is_system(messages[0])

    def test_messages_to_text(self):
        messages = [
            user_message("hello"),
            user_message([text_block("world"), image_url("u")]),
        ]
        assert messages_to_text(messages) == "hello world"

    def test_estimate_tokens(self):
        assert estimate_tokens([user_message("x" * 40)]) == 10
        assert estimate_tokens([]) == 0


class TestResponseAccessors:
    """Test response dict accessors."""

    RESPONSE = {
        "content": "hi",
        "tool_calls": [{"id": "c1"}],
        "usage": {"input_tokens": 3, "output_tokens": 4},
    }

    def test_content_and_tools(self):
        assert extract_content(self.RESPONSE) == "hi"
        assert extract_tool_calls(self.RESPONSE) == [{"id": "c1"}]
        assert has_tool_calls(self.RESPONSE)

    def test_block_content(self):
        response = {"content": [text_block("a"), {"type": "image"}, text_block("b")]}
        assert extract_content(response) == "ab"

    def test_usage(self):
        assert input_tokens(self.RESPONSE) == 3
        assert output_tokens(self.RESPONSE) == 4
        assert total_tokens(self.RESPONSE) == 7
        assert total_tokens({"usage": {"total_tokens": 9}}) == 9

    def test_missing_response(self):
        assert extract_content(None) == ""
        assert extract_tool_calls(None) == []
        assert input_tokens(None) == 0


class TestUtils:
    """Test ids, clocks and model naming."""

    def test_generate_id(self):
        assert len(generate_id()) == 8
        assert generate_id("req", length=4).startswith("req_")
        assert generate_id() != generate_id()

    def test_clocks(self):
        assert now_ms() > 1_600_000_000_000

    def test_model_identifier(self):
        class Named:
            model_name = "gpt-4o"

        class Deployment:
            deployment_name = "prod-gpt"

        assert model_identifier("grok-3") == "grok-3"
        assert model_identifier(Named()) == "gpt-4o"
        assert model_identifier(Deployment()) == "prod-gpt"
        assert model_identifier(object()) == "object"
        assert model_identifier(None) == "unknown"
