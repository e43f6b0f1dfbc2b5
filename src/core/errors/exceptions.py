"""
Unified exception hierarchy for the storm feed pipeline.

Provides typed exceptions with retry classification so that callers can
decide what to retry, what to drop, and what to surface.
"""

from core.types import ErrorCategory


class PipelineError(Exception):
    """
    Root of the stormfeed error tree.

    Attributes:
        message: What went wrong, without the cause
        category: Retry classification; subclasses fix it per type
        cause: Wrapped lower-level exception, if any
        context: Structured fields (url, line number, ...) for the logs
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        return self.category in (ErrorCategory.TRANSIENT, ErrorCategory.UNKNOWN)

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


class TransientError(PipelineError):
    """Worth retrying: the same call may succeed later."""

    category = ErrorCategory.TRANSIENT


class PermanentError(PipelineError):
    """Retrying cannot help: the input or the request itself is bad."""

    category = ErrorCategory.PERMANENT


class FetchError(PipelineError):
    """Network failure or non-success HTTP status while retrieving a feed.

    Category follows the HTTP status when one was received (5xx/429 are
    transient, other 4xx permanent); network failures are transient.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        context = dict(context or {})
        if url:
            context["url"] = url
        if status_code is not None:
            context["http_status"] = status_code
        super().__init__(message, cause, context)
        self.url = url
        self.status_code = status_code
        self.category = (
            classify_http_status(status_code)
            if status_code is not None
            else ErrorCategory.TRANSIENT
        )


class ParseError(PermanentError):
    """Malformed tabular stream (wrong column count, unterminated quote)."""

    def __init__(
        self,
        message: str,
        line_number: int | None = None,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        context = dict(context or {})
        if line_number is not None:
            context["line_number"] = line_number
        super().__init__(message, cause, context)
        self.line_number = line_number


class BrokerConnectionError(TransientError):
    """Broker connect or disconnect failure."""

    pass


class OversizeMessageError(PermanentError):
    """A single serialized record exceeds the message size ceiling."""

    def __init__(self, size_bytes: int, max_bytes: int, context: dict | None = None):
        super().__init__(
            f"Message size {size_bytes} bytes exceeds limit of {max_bytes} bytes",
            context=context,
        )
        self.size_bytes = size_bytes
        self.max_bytes = max_bytes


class DeliveryExhaustedError(TransientError):
    """Retry/backoff attempts exhausted for a batch publish."""

    def __init__(
        self,
        message: str,
        attempts: int,
        pending: int,
        cause: Exception | None = None,
    ):
        super().__init__(message, cause, {"attempts": attempts, "pending": pending})
        self.attempts = attempts
        self.pending = pending


class TransformError(PermanentError):
    """A raw record could not be converted into a processed storm report."""

    pass


# Substrings of an exception's type name or message that mark a broker or
# network hiccup worth retrying
_TRANSIENT_MARKERS = (
    "connectionerror",
    "connection refused",
    "connection reset",
    "broken pipe",
    "timeout",
    "requesttimedout",
    "nodenotready",
    "notleader",
    "leadernotavailable",
    "kafkaconnectionerror",
)

# Kafka errors that will fail the same way on every attempt
_PERMANENT_TYPE_MARKERS = ("messagesizetoolarge", "unknowntopic")


def classify_http_status(status_code: int) -> ErrorCategory:
    """Map an HTTP status to a retry category (2xx is not an error: UNKNOWN)."""
    if status_code in (408, 429) or status_code >= 500:
        return ErrorCategory.TRANSIENT
    if 400 <= status_code < 500:
        return ErrorCategory.PERMANENT
    return ErrorCategory.UNKNOWN


def classify_exception(exc: Exception) -> ErrorCategory:
    """Retry category of any exception; pipeline errors carry their own."""
    if isinstance(exc, PipelineError):
        return exc.category

    name = type(exc).__name__.lower()
    text = f"{name} {str(exc).lower()}"
    if any(marker in text for marker in _TRANSIENT_MARKERS):
        return ErrorCategory.TRANSIENT
    if any(marker in name for marker in _PERMANENT_TYPE_MARKERS):
        return ErrorCategory.PERMANENT
    return ErrorCategory.UNKNOWN


def is_retryable_error(exc: Exception) -> bool:
    """Transient and unclassified errors are retried; permanent ones are not."""
    return classify_exception(exc) != ErrorCategory.PERMANENT
