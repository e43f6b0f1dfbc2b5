"""
Async retry with exponential backoff.

Whether a failure is retried is decided by its error category: permanent
errors fail on the first attempt, transient and unclassified ones back off
and try again until ``max_attempts`` is used up.
"""

import asyncio
import logging
import random
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import wraps

from core.errors.exceptions import classify_exception
from core.types import ErrorCategory

logger = logging.getLogger(__name__)

_LOGGED_MESSAGE_LENGTH = 200


@dataclass
class RetryConfig:
    """Backoff schedule and retry policy.

    The sleep after failed attempt ``n`` (0-indexed) is
    ``base_delay * exponential_base**n``, capped at ``max_delay``. ``jitter``
    picks uniformly from the upper half of that delay.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = False

    # Permanent errors fail fast
    respect_permanent: bool = True

    # Type overrides, checked before the category; never_retry wins
    always_retry: set[type[Exception]] = field(default_factory=set)
    never_retry: set[type[Exception]] = field(default_factory=set)

    def __post_init__(self):
        # Values may arrive as strings from YAML or the environment
        self.max_attempts = int(self.max_attempts)
        self.base_delay = float(self.base_delay)
        self.max_delay = float(self.max_delay)
        self.exponential_base = float(self.exponential_base)
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")

    def get_delay(self, attempt: int) -> float:
        """Seconds to sleep after 0-indexed ``attempt`` failed."""
        delay = min(self.base_delay * self.exponential_base**attempt, self.max_delay)
        if not self.jitter:
            return delay
        half = delay / 2
        return half + random.uniform(0, half)

    def should_retry(self, error: Exception, attempt: int) -> bool:
        """Whether another attempt follows the failure of 0-indexed ``attempt``."""
        if attempt + 1 >= self.max_attempts:
            return False
        if isinstance(error, tuple(self.never_retry)):
            return False
        if isinstance(error, tuple(self.always_retry)):
            return True
        if not self.respect_permanent:
            return True
        return classify_exception(error) != ErrorCategory.PERMANENT


DEFAULT_RETRY = RetryConfig(max_attempts=3, base_delay=1.0)


def _failure_fields(func_name: str, attempt: int, config: RetryConfig, error: Exception) -> dict:
    return {
        "operation": func_name,
        "attempt": attempt + 1,
        "max_attempts": config.max_attempts,
        "error_category": classify_exception(error).value,
        "error_type": type(error).__name__,
        "error_message": str(error)[:_LOGGED_MESSAGE_LENGTH],
    }


def _notify(on_retry: Callable, error: Exception, attempt: int, delay: float, func_name: str):
    try:
        on_retry(error, attempt, delay)
    except Exception as cb_err:
        # Callback failures are logged, never raised
        logger.warning(
            "on_retry callback failed for %s",
            func_name,
            extra={"operation": func_name, "callback_error": str(cb_err)[:100]},
        )


def with_retry_async(
    config: RetryConfig | None = None,
    on_retry: Callable[[Exception, int, float], None] | None = None,
):
    """
    Decorate an async callable so transient failures are retried with backoff.

    The last exception is re-raised unchanged once the policy gives up.
    ``on_retry(error, attempt, delay)`` is called before each sleep.

    Usage:
        @with_retry_async(config=RetryConfig(max_attempts=5))
        async def deliver():
            ...
    """
    config = config or DEFAULT_RETRY

    def decorator(func: Callable):
        func_name = getattr(func, "__name__", repr(func))

        @wraps(func)
        async def wrapper(*args, **kwargs):
            attempt = 0
            while True:
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    fields = _failure_fields(func_name, attempt, config, e)
                    if not config.should_retry(e, attempt):
                        if attempt + 1 >= config.max_attempts:
                            logger.error("Giving up on %s after %d attempts", func_name, attempt + 1, extra=fields)
                        else:
                            logger.warning("%s failed with a non-retryable error", func_name, extra=fields)
                        raise

                    delay = config.get_delay(attempt)
                    fields["delay_seconds"] = round(delay, 2)
                    logger.warning("%s failed, retrying in %.2fs", func_name, delay, extra=fields)
                    if on_retry:
                        _notify(on_retry, e, attempt, delay, func_name)
                    await asyncio.sleep(delay)
                    attempt += 1
                    continue

                if attempt:
                    logger.info(
                        "%s succeeded on attempt %d",
                        func_name,
                        attempt + 1,
                        extra={"operation": func_name, "attempt": attempt + 1, "max_attempts": config.max_attempts},
                    )
                return result

        return wrapper

    return decorator


__all__ = [
    "RetryConfig",
    "with_retry_async",
    "DEFAULT_RETRY",
]
