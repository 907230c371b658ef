"""Resilience patterns for channel delivery.

Circuit breakers, retry policies, the dead-letter queue and rate limiting.
"""

from courier.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerOpenError,
    CircuitState,
    clear_circuit_breaker_registry,
    get_all_circuit_breaker_stats,
    get_circuit_breaker,
    get_open_circuit_breakers,
    register_circuit_breaker,
)
from courier.resilience.dlq import (
    DeadLetterAttempt,
    DeadLetterEntry,
    DeadLetterReason,
    DeadLetterStore,
    InMemoryDeadLetterStore,
)
from courier.resilience.rate_limit import SlidingWindowRateLimiter
from courier.resilience.retry import (
    DEFAULT_RETRY_POLICIES,
    RetryPolicy,
    build_retry_policies,
)

__all__ = [
    # Circuit Breaker
    "CircuitBreaker",
    "CircuitBreakerOpenError",
    "CircuitState",
    "clear_circuit_breaker_registry",
    "get_all_circuit_breaker_stats",
    "get_circuit_breaker",
    "get_open_circuit_breakers",
    "register_circuit_breaker",
    # Retry
    "DEFAULT_RETRY_POLICIES",
    "RetryPolicy",
    "build_retry_policies",
    # Dead letters
    "DeadLetterAttempt",
    "DeadLetterEntry",
    "DeadLetterReason",
    "DeadLetterStore",
    "InMemoryDeadLetterStore",
    # Rate limiting
    "SlidingWindowRateLimiter",
]
