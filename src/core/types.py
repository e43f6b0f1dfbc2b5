"""
Core types used across modules.
"""

from enum import Enum


class ErrorCategory(Enum):
    """
    Classification of error types for handling decisions.

    Categories:
        TRANSIENT: Temporary failures that may succeed on retry
                   (e.g., network timeouts, 429/503 responses, broker unavailable)
        PERMANENT: Failures that won't succeed on retry
                   (e.g., 404, malformed CSV, oversized messages)
        UNKNOWN: Unclassified errors
    """

    TRANSIENT = "transient"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"
