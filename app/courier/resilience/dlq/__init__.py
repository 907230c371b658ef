"""Dead-letter queue for deliveries that exhausted their retries."""

from courier.resilience.dlq.models import (
    DeadLetterAttempt,
    DeadLetterEntry,
    DeadLetterReason,
)
from courier.resilience.dlq.store import DeadLetterStore, InMemoryDeadLetterStore

__all__ = [
    "DeadLetterAttempt",
    "DeadLetterEntry",
    "DeadLetterReason",
    "DeadLetterStore",
    "InMemoryDeadLetterStore",
]
