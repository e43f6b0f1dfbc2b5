"""
Log formatters.

JSONFormatter writes one object per line for the file logs (and for stdout in
containers); ConsoleFormatter writes a short human-readable line with the run
and category as tags.
"""

import json
import logging
import re
import sys
from datetime import UTC, datetime
from typing import Any

from core.logging.context import get_log_context
from core.utils.json_serializers import json_serializer

# Structured fields copied from ``extra=``; the value is the type the field
# is coerced to, or None to pass it through unchanged.
STRUCTURED_FIELDS: dict[str, type | None] = {
    # run
    "run_id": None,
    "explicit_date": None,
    "state": None,
    "duration_ms": float,
    "interval_seconds": float,
    "signal": None,
    # feeds
    "category": None,
    "url": None,
    "http_status": int,
    "line_number": int,
    "records_processed": int,
    "records_failed": int,
    "records_skipped": int,
    # delivery
    "topic": None,
    "partition": int,
    "offset": int,
    "batch_size": int,
    "pending": int,
    "size_bytes": int,
    "max_bytes": int,
    "bootstrap_servers": None,
    "group_id": None,
    # retries
    "operation": None,
    "attempt": int,
    "max_attempts": int,
    "delay_seconds": float,
    "callback_error": None,
    # errors
    "error": None,
    "error_type": None,
    "error_category": None,
    "error_message": None,
}

_SECRET_QUERY_PARAM = re.compile(r"(?i)([?&])(sig|token|key|secret|password|auth)=[^&#]*")

LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[35m",
}
RESET = "\033[0m"


def redact_url(url: str) -> str:
    """Mask credential-like query parameters (``?token=...`` etc.)."""
    return _SECRET_QUERY_PARAM.sub(r"\1\2=[REDACTED]", url)


def _coerce(field: str, value: Any) -> Any:
    cast = STRUCTURED_FIELDS.get(field)
    if cast is None:
        return value
    try:
        return cast(value)
    except (TypeError, ValueError):
        return None


def _utc_timestamp(created: float) -> str:
    stamp = datetime.fromtimestamp(created, UTC)
    return stamp.strftime("%Y-%m-%dT%H:%M:%S.") + f"{stamp.microsecond // 1000:03d}Z"


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with log context and structured extras."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": _utc_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update({k: v for k, v in get_log_context().items() if v})

        if record.levelno >= logging.ERROR or record.levelno == logging.DEBUG:
            entry["file"] = f"{record.filename}:{record.lineno}"

        for field in STRUCTURED_FIELDS:
            value = getattr(record, field, None)
            if value is None:
                continue
            value = _coerce(field, value)
            if field == "url" and isinstance(value, str):
                value = redact_url(value)
            entry[field] = value

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            entry["exception"] = {
                "type": getattr(exc_type, "__name__", None),
                "message": None if exc_value is None else str(exc_value),
                "stacktrace": self.formatException(record.exc_info),
            }

        return json.dumps(entry, default=json_serializer, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    ``<time> - <LEVEL> - [stage] - [run:xxxxxxxx] [category] message``

    Levels are colored only when stdout is a terminal, unless ``use_colors``
    says otherwise.
    """

    def __init__(self, *args, use_colors: bool | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.use_colors = sys.stdout.isatty() if use_colors is None else use_colors

    def format(self, record: logging.LogRecord) -> str:
        context = get_log_context()

        level = record.levelname
        if self.use_colors and record.levelno in LEVEL_COLORS:
            level = f"{LEVEL_COLORS[record.levelno]}{level}{RESET}"

        head = [datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S"), level]
        if context["stage"]:
            head.append(f"[{context['stage']}]")

        tags = []
        run_id = getattr(record, "run_id", None) or context["run_id"]
        if run_id:
            # random suffix of the run id
            tags.append(f"[run:{run_id[-8:]}]")
        category = getattr(record, "category", None) or context["category"]
        if category:
            tags.append(f"[{category}]")

        line = " - ".join(head) + " - " + " ".join([*tags, record.getMessage()])
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line
