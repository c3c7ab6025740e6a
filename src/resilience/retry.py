"""Retry with exponential backoff for outbound calls.

Blocking only: webhook delivery and template downloads already run in
worker threads.

    config = RetryConfig(max_attempts=3, retryable_exceptions=(requests.RequestException,))
    response = call_with_retry(requests.post, config, url, data=body)
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Optional, Tuple, Type, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")
ExceptionTypes = Union[Type[BaseException], Tuple[Type[BaseException], ...]]


class RetryExhausted(Exception):
    """Every attempt failed with a retryable exception."""

    def __init__(self, message: str, attempts: int, last_exception: Optional[Exception] = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_exception = last_exception


@dataclass
class RetryConfig:
    """
    Attributes:
        max_attempts: Total attempts, the first one included.
        base_delay: Seconds to wait after the first failure.
        max_delay: Upper bound on any single wait.
        backoff_multiplier: Growth factor between waits.
        jitter: Random spread as a fraction of the wait (0 disables it).
        retryable_exceptions: Exceptions worth another attempt.
        non_retryable_exceptions: Exceptions re-raised at once even if they
            also match ``retryable_exceptions``.
        on_retry: Called with (attempt, exception, delay) before each wait.
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    backoff_multiplier: float = 2.0
    jitter: float = 0.1
    retryable_exceptions: ExceptionTypes = (Exception,)
    non_retryable_exceptions: ExceptionTypes = ()
    on_retry: Optional[Callable[[int, Exception, float], None]] = None

    def calculate_delay(self, attempt: int) -> float:
        """Wait after failed attempt number ``attempt`` (1-indexed)."""
        delay = min(self.base_delay * self.backoff_multiplier ** (attempt - 1), self.max_delay)
        if self.jitter > 0:
            spread = delay * self.jitter
            delay = max(0.0, delay + random.uniform(-spread, spread))
        return delay

    def should_retry(self, exception: BaseException) -> bool:
        if self.non_retryable_exceptions and isinstance(exception, self.non_retryable_exceptions):
            return False
        return isinstance(exception, self.retryable_exceptions)


def call_with_retry(func: Callable[..., T], config: RetryConfig, *args: Any, **kwargs: Any) -> T:
    """
    Call ``func(*args, **kwargs)`` until it returns or attempts run out.

    Raises:
        RetryExhausted: the last attempt failed with a retryable exception
        Exception: a non-retryable exception, as raised
    """
    label = getattr(func, "__name__", repr(func))
    attempt = 0
    while True:
        attempt += 1
        try:
            return func(*args, **kwargs)
        except Exception as e:
            if not config.should_retry(e):
                raise
            if attempt >= config.max_attempts:
                logger.warning(f"{label} failed {attempt} times, giving up: {e}")
                raise RetryExhausted(
                    f"Retry exhausted after {attempt} attempts",
                    attempts=attempt,
                    last_exception=e,
                ) from e

            delay = config.calculate_delay(attempt)
            logger.info(f"{label} attempt {attempt}/{config.max_attempts} failed ({e}); retrying in {delay:.2f}s")
            if config.on_retry:
                config.on_retry(attempt, e, delay)
            time.sleep(delay)


def sync_retry(config: Optional[RetryConfig] = None, **options: Any) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator form of ``call_with_retry``.

        @sync_retry(max_attempts=5, base_delay=0.5)
        def fetch_template(url): ...
    """
    retry_config = config or RetryConfig(**options)

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            return call_with_retry(func, retry_config, *args, **kwargs)
        return wrapper

    return decorator
