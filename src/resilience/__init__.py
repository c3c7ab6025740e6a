"""Resilience patterns for outbound calls.

Provides retry logic with exponential backoff for webhook delivery and
other calls to external services.
"""

from .retry import (
    call_with_retry,
    sync_retry,
    RetryConfig,
    RetryExhausted,
)

__all__ = [
    "call_with_retry",
    "sync_retry",
    "RetryConfig",
    "RetryExhausted",
]
