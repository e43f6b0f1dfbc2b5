"""Helpers for logging with structured ``extra`` fields."""

import logging
from typing import Any

# Attributes every LogRecord already has; passing one of these in ``extra``
# makes logging raise KeyError.
_RESERVED_LOG_KEYS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

MAX_ERROR_MESSAGE_LENGTH = 500


def _safe_extra(fields: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in fields.items() if k not in _RESERVED_LOG_KEYS}


def log_with_context(logger: logging.Logger, level: int, msg: str, **kwargs: Any) -> None:
    """
    Log ``msg`` with keyword arguments as structured fields.

    ``exc_info`` is passed through to the logger; keys that clash with
    LogRecord attributes are dropped.

    Example:
        log_with_context(logger, logging.INFO, "Fetched feed", category="hail", records_processed=42)
    """
    exc_info = kwargs.pop("exc_info", None)
    logger.log(level, msg, exc_info=exc_info, extra=_safe_extra(kwargs))


def log_exception(
    logger: logging.Logger,
    exc: Exception,
    msg: str,
    level: int = logging.ERROR,
    include_traceback: bool = True,
    **kwargs: Any,
) -> None:
    """
    Log an exception with its type, message and (for pipeline errors) retry category.

    Example:
        except FetchError as e:
            log_exception(logger, e, "Feed fetch failed", category="wind")
    """
    category = getattr(exc, "category", None)
    if category is not None and kwargs.get("error_category") is None:
        kwargs["error_category"] = getattr(category, "value", str(category))

    message = str(exc)
    if len(message) > MAX_ERROR_MESSAGE_LENGTH:
        message = message[:MAX_ERROR_MESSAGE_LENGTH] + "..."
    kwargs["error_message"] = message
    kwargs.setdefault("error_type", type(exc).__name__)

    if include_traceback:
        logger.log(level, msg, exc_info=exc, extra=_safe_extra(kwargs))
    else:
        logger.log(level, msg, extra=_safe_extra(kwargs))
