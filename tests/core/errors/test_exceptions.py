"""Tests for the pipeline exception hierarchy and error classification."""

import pytest

from core.errors.exceptions import (
    BrokerConnectionError,
    DeliveryExhaustedError,
    FetchError,
    OversizeMessageError,
    ParseError,
    PermanentError,
    PipelineError,
    TransformError,
    TransientError,
    classify_exception,
    classify_http_status,
    is_retryable_error,
)
from core.types import ErrorCategory


class TestPipelineError:
    def test_str_includes_cause(self):
        error = PipelineError("outer", cause=ValueError("inner"))

        assert str(error) == "outer | Caused by: inner"

    def test_context_defaults_to_empty_dict(self):
        assert PipelineError("x").context == {}

    def test_unknown_is_retryable(self):
        assert PipelineError("x").is_retryable is True

    def test_permanent_not_retryable(self):
        assert PermanentError("x").is_retryable is False
        assert TransientError("x").is_retryable is True


class TestFetchError:
    @pytest.mark.parametrize(
        "status,category",
        [
            (404, ErrorCategory.PERMANENT),
            (403, ErrorCategory.PERMANENT),
            (429, ErrorCategory.TRANSIENT),
            (500, ErrorCategory.TRANSIENT),
            (503, ErrorCategory.TRANSIENT),
        ],
    )
    def test_category_follows_status(self, status, category):
        error = FetchError("failed", url="https://example.com/a.csv", status_code=status)

        assert error.category == category
        assert error.context == {"url": "https://example.com/a.csv", "http_status": status}

    def test_network_failure_is_transient(self):
        assert FetchError("refused").category == ErrorCategory.TRANSIENT


class TestDomainErrors:
    def test_parse_error_carries_line_number(self):
        error = ParseError("bad row", line_number=7)

        assert error.line_number == 7
        assert error.context["line_number"] == 7
        assert error.category == ErrorCategory.PERMANENT

    def test_oversize_message(self):
        error = OversizeMessageError(300, 200)

        assert error.size_bytes == 300
        assert error.max_bytes == 200
        assert "300" in str(error) and "200" in str(error)
        assert error.category == ErrorCategory.PERMANENT

    def test_delivery_exhausted(self):
        cause = ConnectionError("down")
        error = DeliveryExhaustedError("gave up", attempts=5, pending=12, cause=cause)

        assert error.attempts == 5
        assert error.pending == 12
        assert error.cause is cause
        assert error.context == {"attempts": 5, "pending": 12}

    def test_broker_connection_is_transient(self):
        assert BrokerConnectionError("down").category == ErrorCategory.TRANSIENT

    def test_transform_is_permanent(self):
        assert TransformError("bad").category == ErrorCategory.PERMANENT


class TestClassification:
    def test_http_success_is_not_an_error(self):
        assert classify_http_status(200) == ErrorCategory.UNKNOWN

    @pytest.mark.parametrize(
        "exc,category",
        [
            (ConnectionError("reset"), ErrorCategory.TRANSIENT),
            (OSError("Connection refused"), ErrorCategory.TRANSIENT),
            (TimeoutError(), ErrorCategory.TRANSIENT),
            (ValueError("odd"), ErrorCategory.UNKNOWN),
            (ParseError("bad"), ErrorCategory.PERMANENT),
        ],
    )
    def test_classify_exception(self, exc, category):
        assert classify_exception(exc) == category

    def test_kafka_size_error_is_permanent(self):
        class MessageSizeTooLargeError(Exception):
            pass

        assert classify_exception(MessageSizeTooLargeError()) == ErrorCategory.PERMANENT
        assert is_retryable_error(MessageSizeTooLargeError()) is False

    def test_is_retryable_error(self):
        assert is_retryable_error(ConnectionError()) is True
        assert is_retryable_error(TransformError("bad")) is False
