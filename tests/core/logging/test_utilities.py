"""Tests for logging utility functions."""

import logging
from unittest.mock import MagicMock

from core.errors.exceptions import FetchError
from core.logging.utilities import log_exception, log_with_context


class TestLogWithContext:

    def test_logs_message_at_given_level(self):
        logger = MagicMock()
        log_with_context(logger, logging.INFO, "test message")

        logger.log.assert_called_once_with(logging.INFO, "test message", exc_info=None, extra={})

    def test_passes_extra_fields(self):
        logger = MagicMock()
        log_with_context(logger, logging.INFO, "Fetched feed", category="hail", records_processed=3)

        logger.log.assert_called_once_with(
            logging.INFO,
            "Fetched feed",
            exc_info=None,
            extra={"category": "hail", "records_processed": 3},
        )

    def test_drops_reserved_keys(self):
        logger = MagicMock()
        log_with_context(logger, logging.INFO, "msg", name="clash", topic="t")

        assert logger.log.call_args.kwargs["extra"] == {"topic": "t"}

    def test_handles_exc_info_separately(self):
        logger = MagicMock()
        log_with_context(logger, logging.ERROR, "failed", exc_info=True, url="u")

        logger.log.assert_called_once_with(logging.ERROR, "failed", exc_info=True, extra={"url": "u"})


class TestLogException:

    def test_extracts_category_and_message(self):
        logger = MagicMock()
        error = FetchError("Feed request failed with HTTP 404", status_code=404)

        log_exception(logger, error, "Feed fetch failed", category="torn")

        level, msg = logger.log.call_args.args
        kwargs = logger.log.call_args.kwargs
        assert level == logging.ERROR
        assert msg == "Feed fetch failed"
        assert kwargs["exc_info"] is error
        assert kwargs["extra"]["error_category"] == "permanent"
        assert kwargs["extra"]["error_type"] == "FetchError"
        assert kwargs["extra"]["error_message"] == "Feed request failed with HTTP 404"
        assert kwargs["extra"]["category"] == "torn"

    def test_without_traceback(self):
        logger = MagicMock()

        log_exception(
            logger, ValueError("x"), "warn", level=logging.WARNING, include_traceback=False
        )

        assert "exc_info" not in logger.log.call_args.kwargs
        assert "error_category" not in logger.log.call_args.kwargs["extra"]

    def test_truncates_long_messages(self):
        logger = MagicMock()

        log_exception(logger, ValueError("x" * 600), "failed")

        message = logger.log.call_args.kwargs["extra"]["error_message"]
        assert len(message) == 503
        assert message.endswith("...")
