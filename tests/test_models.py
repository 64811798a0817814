"""
Tests for the mock chat model and response builders.
"""

import pytest

from interlude.errors import ErrorKind, ProviderError
from interlude.models import MockChatModel, error_response, text_response, tool_response


class TestResponseBuilders:
    """Test response builders."""

    def test_text_response_defaults(self):
        response = text_response("Hello!")
        assert response["content"] == "Hello!"
        assert response["model"] == "mock-model"
        assert response["stop_reason"] == "end_turn"
        assert response["usage"] == {"input_tokens": 10, "output_tokens": 20, "total_tokens": 30}

    def test_text_response_overrides(self):
        response = text_response("x", model="gpt-4o", stop_reason="max_tokens", extra=1)
        assert response["model"] == "gpt-4o"
        assert response["stop_reason"] == "max_tokens"
        assert response["extra"] == 1

    def test_tool_response(self):
        response = tool_response([
            {"name": "get_weather", "arguments": {"location": "NYC"}},
            {"id": "given", "name": "search"},
        ])
        first, second = response["tool_calls"]
        assert first["id"] == "mock-call-0"
        assert first["function"] == {"name": "get_weather", "arguments": {"location": "NYC"}}
        assert second["id"] == "given"
        assert response["stop_reason"] == "tool_use"

    @pytest.mark.parametrize(
        "kind",
        ["rate_limit", "authentication", "authorization", "invalid_request", "validation", "server_error"],
    )
    def test_error_response_kinds(self, kind):
        err = error_response(kind, "failed")
        assert isinstance(err, ProviderError)
        assert err.kind is ErrorKind(kind)


class TestMockChatModel:
    """Test MockChatModel."""

    def test_cycles_responses(self):
        model = MockChatModel(responses=["a", "b"])
        contents = [model.chat([])["content"] for _ in range(3)]
        assert contents == ["a", "b", "a"]
        assert model.call_count == 3

    def test_echo_default(self):
        model = MockChatModel()
        response = model.chat([{"role": "user", "content": "ping"}])
        assert response["content"] == "Echo: ping"

    def test_dict_and_callable_responses(self):
        fixed = text_response("fixed")
        model = MockChatModel(responses=[fixed, lambda msgs, opts: opts["value"]])
        assert model.chat([]) is fixed
        assert model.chat([], {"value": 7}) == 7

    def test_scheduled_errors(self):
        err = error_response("server_error", "down")
        model = MockChatModel(responses=["ok"], errors=[None, err])
        assert model.chat([])["content"] == "ok"
        with pytest.raises(ProviderError):
            model.chat([])
        assert model.chat([])["content"] == "ok"

    def test_records_calls_and_reset(self):
        model = MockChatModel(responses=["a", "b"])
        model.chat([{"role": "user", "content": "x"}], {"temperature": 0})
        assert model.calls == [([{"role": "user", "content": "x"}], {"temperature": 0})]
        model.reset()
        assert model.call_count == 0
        assert model.chat([])["content"] == "a"

    def test_model_name_in_responses(self):
        model = MockChatModel(responses=["a"], model_name="grok-3")
        assert model.chat([])["model"] == "grok-3"
