"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- PipelineError hierarchy for typed exceptions
- Classification utilities for error handling
"""

from core.errors.exceptions import (
    BrokerConnectionError,
    DeliveryExhaustedError,
    ErrorCategory,
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

__all__ = [
    # Enums
    "ErrorCategory",
    # Base classes
    "PipelineError",
    "TransientError",
    "PermanentError",
    # Domain errors
    "FetchError",
    "ParseError",
    "BrokerConnectionError",
    "OversizeMessageError",
    "DeliveryExhaustedError",
    "TransformError",
    # Classification utilities
    "classify_http_status",
    "classify_exception",
    "is_retryable_error",
]
