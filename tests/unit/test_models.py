"""Unit tests for routing models, normalization and the error taxonomy."""

import pytest

from jarvisrouter.config.exceptions import ValidationError
from jarvisrouter.llm.exceptions import (
    AllProvidersExhaustedError,
    ErrorKind,
    NoProviderAvailableError,
    ProviderError,
    RequestCancelledError,
    http_status_hint,
)
from jarvisrouter.llm.models import (
    MAX_MESSAGE_LENGTH,
    ChatRequest,
    ProviderReply,
    TokenUsage,
    validate_chat_request,
)
from jarvisrouter.llm.normalization import normalize_response, normalize_usage

from tests.conftest import make_descriptor


class TestProviderDescriptor:
    """Tests for generation limit clamping."""

    @pytest.mark.parametrize("requested,expected", [
        (None, 0.7),
        (-1.0, 0.0),
        (0.3, 0.3),
        (2.5, 2.0),
    ])
    def test_clamp_temperature(self, requested, expected):
        assert make_descriptor("alpha").clamp_temperature(requested) == expected

    def test_clamp_nan_temperature_uses_default(self):
        assert make_descriptor("alpha").clamp_temperature(float("nan")) == 0.7

    @pytest.mark.parametrize("requested,expected", [
        (None, 1000),
        (0, 1),
        (500, 500),
        (10000, 4000),
    ])
    def test_clamp_max_tokens(self, requested, expected):
        assert make_descriptor("alpha").clamp_max_tokens(requested) == expected

    def test_timeout_in_seconds(self):
        assert make_descriptor("alpha", request_timeout_ms=25000).request_timeout_seconds == 25.0

    def test_descriptor_is_immutable(self):
        descriptor = make_descriptor("alpha")

        with pytest.raises(Exception):
            descriptor.model = "other"


class TestChatRequestValidation:
    """Tests for inbound request validation."""

    def test_valid_request_is_stripped(self):
        request = validate_chat_request("  Hello  ", temperature=0.2, max_tokens=10)

        assert request.message == "Hello"
        assert request.options.temperature == 0.2
        assert request.options.max_tokens == 10

    @pytest.mark.parametrize("message", [None, 42, ["Hello"]])
    def test_non_string_message(self, message):
        with pytest.raises(ValidationError) as exc_info:
            validate_chat_request(message)

        assert exc_info.value.field == "message"

    def test_empty_message(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_chat_request("   ")

        assert exc_info.value.message == "Message cannot be empty"

    def test_too_long_message(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_chat_request("x" * (MAX_MESSAGE_LENGTH + 1))

        assert exc_info.value.message == "Message is too long (max 50000 characters)"

    def test_maximum_length_accepted(self):
        assert len(validate_chat_request("x" * MAX_MESSAGE_LENGTH).message) == MAX_MESSAGE_LENGTH

    @pytest.mark.parametrize("temperature", [float("nan"), float("inf")])
    def test_non_finite_temperature_rejected(self, temperature):
        with pytest.raises(ValidationError) as exc_info:
            validate_chat_request("Hello", temperature=temperature)

        assert exc_info.value.field == "temperature"

    def test_chat_request_model(self):
        assert ChatRequest(message="Hi").options.temperature is None


class TestNormalization:
    """Tests for usage and response normalization."""

    @pytest.mark.parametrize("raw,expected", [
        (None, (0, 0, 0)),
        ({}, (0, 0, 0)),
        ({"prompt_tokens": 3, "completion_tokens": 4, "total_tokens": 7}, (3, 4, 7)),
        ({"promptTokens": 3, "completionTokens": 4}, (3, 4, 7)),
        ({"input_tokens": 5, "output_tokens": 1}, (5, 1, 6)),
        ({"prompt_tokens": "3", "completion_tokens": None}, (0, 0, 0)),
    ])
    def test_normalize_usage(self, raw, expected):
        usage = normalize_usage(raw)

        assert (usage.prompt_tokens, usage.completion_tokens, usage.total_tokens) == expected

    def test_normalize_response(self):
        reply = ProviderReply(content="Hi!", usage=TokenUsage(prompt_tokens=1, completion_tokens=2, total_tokens=3))

        result = normalize_response(
            reply,
            make_descriptor("alpha", display_name="Alpha AI"),
            model="alpha-large",
            fallback_used=True,
            total_attempts=4,
            response_time_ms=12.5,
        )

        assert result.response == "Hi!"
        assert result.provider == "Alpha AI"
        assert result.provider_id == "alpha"
        assert result.model == "alpha-large"
        assert result.fallback_used is True
        assert result.total_attempts == 4
        assert result.model_dump(by_alias=True)["responseTimeMs"] == 12.5


class TestErrorTaxonomy:
    """Tests for error kinds and their boundary representation."""

    @pytest.mark.parametrize("kind,status", [
        (ErrorKind.AUTH, 401),
        (ErrorKind.RATE_LIMIT, 429),
        (ErrorKind.UNAVAILABLE, 503),
        (ErrorKind.TIMEOUT, 408),
        (ErrorKind.UNKNOWN, 500),
        (None, 500),
    ])
    def test_http_status_hint(self, kind, status):
        assert http_status_hint(kind) == status

    def test_provider_error_to_dict(self):
        error = ProviderError("Rate limit exceeded for Groq.", provider_id="groq", kind=ErrorKind.RATE_LIMIT)

        assert error.to_dict() == {
            "errorKind": "RATE_LIMIT",
            "message": "Rate limit exceeded for Groq.",
            "httpStatusHint": 429,
        }

    def test_no_provider_available(self):
        error = NoProviderAvailableError()

        assert error.kind == ErrorKind.UNAVAILABLE
        assert error.http_status_hint == 503

    def test_exhausted_without_last_error(self):
        error = AllProvidersExhaustedError(None)

        assert error.kind == ErrorKind.UNKNOWN
        assert error.message == "All AI services failed. Last error: Unknown error"

    def test_cancelled(self):
        error = RequestCancelledError(total_attempts=2)

        assert error.total_attempts == 2
        assert "cancelled" in error.message
        assert error.http_status_hint == 499
        assert error.to_dict()["httpStatusHint"] == 499
