"""
Resilience patterns module.

Components:
    - RetryConfig: Exponential backoff configuration
    - @with_retry_async decorator: Retry async callables with backoff
"""

from .retry import (
    DEFAULT_RETRY,
    RetryConfig,
    with_retry_async,
)

__all__ = [
    "RetryConfig",
    "with_retry_async",
    "DEFAULT_RETRY",
]
