"""Retry policies for channel delivery."""

from courier.resilience.retry.policy import (
    DEFAULT_RETRY_POLICIES,
    EXPONENTIAL,
    FIXED,
    RetryPolicy,
    build_retry_policies,
)

__all__ = [
    "DEFAULT_RETRY_POLICIES",
    "EXPONENTIAL",
    "FIXED",
    "RetryPolicy",
    "build_retry_policies",
]
