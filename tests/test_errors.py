"""
Tests for classified provider errors.
"""

import pytest

from interlude.errors import (
    CLIENT_KINDS,
    RETRYABLE_KINDS,
    ErrorKind,
    ProviderError,
    authentication_error,
    authorization_error,
    error_kind,
    http_error,
    invalid_request_error,
    is_authentication_error,
    is_authorization_error,
    is_client_error,
    is_provider_error,
    is_rate_limited,
    is_retryable,
    kind_for_status,
    network_error,
    rate_limit_error,
    server_error,
    timeout_error,
    tool_error,
    try_call,
    validation_error,
    with_error_handler,
)


class TestProviderError:
    """Test ProviderError itself."""

    def test_kind_from_string(self):
        err = ProviderError("rate_limit", "slow down", provider="openai")
        assert err.kind is ErrorKind.RATE_LIMIT
        assert str(err) == "slow down"
        assert err.retryable

    def test_invalid_kind(self):
        with pytest.raises(ValueError, match="Invalid error kind"):
            ProviderError("meltdown", "?")

    def test_to_dict(self):
        err = rate_limit_error("slow down", retry_after=3, provider="openai")
        data = err.to_dict()
        assert data["kind"] == "rate_limit"
        assert data["retry_after"] == 3
        assert data["status"] == 429
        assert data["provider"] == "openai"
        assert isinstance(data["timestamp"], int)

    def test_kind_sets_disjoint(self):
        assert not RETRYABLE_KINDS & CLIENT_KINDS


class TestConstructors:
    """Test error constructors."""

    def test_authentication(self):
        err = authentication_error("anthropic")
        assert err.kind is ErrorKind.AUTHENTICATION
        assert err.status == 401
        assert "anthropic" in err.message

    def test_authorization_default_message(self):
        assert authorization_error("openai").message == "Access denied"

    def test_invalid_request_details(self):
        err = invalid_request_error("bad", {"field": "messages"}, provider="mock")
        assert err.data == {"field": "messages"}
        assert err.status == 400

    def test_server_error(self):
        err = server_error(502, "bad gateway", "groq")
        assert err.kind is ErrorKind.SERVER_ERROR
        assert err.data["body"] == "bad gateway"

    def test_timeout(self):
        err = timeout_error("took too long", "mock", timeout_ms=500)
        assert err.data["timeout_ms"] == 500
        assert is_retryable(err)

    def test_network_chains_cause(self):
        cause = ConnectionResetError("reset")
        err = network_error("connection lost", cause)
        assert err.__cause__ is cause
        assert err.data["cause_message"] == "reset"

    def test_validation(self):
        err = validation_error("schema mismatch", ["missing name"])
        assert err.data["errors"] == ["missing name"]
        assert is_client_error(err)

    def test_tool_error(self):
        cause = KeyError("x")
        err = tool_error("search", "failed", cause)
        assert err.data["tool_name"] == "search"
        assert err.__cause__ is cause
        assert not is_retryable(err)


class TestHttpMapping:
    """Test status code classification."""

    @pytest.mark.parametrize(
        "status,kind",
        [
            (400, ErrorKind.INVALID_REQUEST),
            (401, ErrorKind.AUTHENTICATION),
            (403, ErrorKind.AUTHORIZATION),
            (404, ErrorKind.NOT_FOUND),
            (429, ErrorKind.RATE_LIMIT),
            (500, ErrorKind.SERVER_ERROR),
            (503, ErrorKind.SERVER_ERROR),
            (418, ErrorKind.INVALID_REQUEST),
        ],
    )
    def test_kind_for_status(self, status, kind):
        assert kind_for_status(status) is kind

    def test_http_error_retry_after(self):
        err = http_error(429, {"error": "slow"}, "openai", {"Retry-After": "7"})
        assert err.kind is ErrorKind.RATE_LIMIT
        assert err.retry_after == 7.0
        assert err.status == 429

    def test_http_error_unparseable_retry_after(self):
        err = http_error(429, "", "openai", {"retry-after": "Wed, 21 Oct 2015 07:28:00 GMT"})
        assert err.retry_after is None


class TestPredicates:
    """Test classification predicates."""

    def test_plain_exceptions_unclassified(self):
        err = RuntimeError("x")
        assert error_kind(err) is None
        assert not is_provider_error(err)
        assert not is_retryable(err)
        assert not is_client_error(err)
        assert not is_retryable(None)

    def test_specific_predicates(self):
        assert is_rate_limited(rate_limit_error("x"))
        assert is_authentication_error(authentication_error("p"))
        assert is_authorization_error(authorization_error("p"))
        assert not is_rate_limited(authentication_error("p"))


class TestHandlingUtilities:
    """Test with_error_handler and try_call."""

    def test_with_error_handler_dispatches(self):
        def call(x):
            raise rate_limit_error("slow")

        safe = with_error_handler(call, {"rate_limit": lambda e, args: ("handled", args)})
        assert safe(1) == ("handled", (1,))

    def test_with_error_handler_reraises_unhandled(self):
        def call():
            raise authentication_error("p")

        safe = with_error_handler(call, {ErrorKind.RATE_LIMIT: lambda e, args: None})
        with pytest.raises(ProviderError):
            safe()

    def test_with_error_handler_passes_through_success(self):
        assert with_error_handler(lambda: 5, {})() == 5

    def test_try_call(self):
        assert try_call(lambda a, b: a + b, 1, b=2) == {"ok": 3}

        def classified():
            raise server_error(500, "", "mock")

        assert try_call(classified)["error"]["kind"] == "server_error"

        def unclassified():
            raise ValueError("bad")

        result = try_call(unclassified)
        assert result["error"]["kind"] == "unknown"
        assert result["error"]["message"] == "bad"
