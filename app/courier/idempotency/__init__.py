"""Delivery idempotency.

Usage:

    from courier.idempotency import DeduplicationGuard, IdempotencyKeyBuilder

    key = IdempotencyKeyBuilder().build(correlation_id, "INVOICE_DUE", channel, recipient)
    outcome, deduped = await guard.run(key, lambda: executor.execute(payload))
"""

from courier.idempotency.factory import build_outcome_store
from courier.idempotency.guard import DeduplicationGuard
from courier.idempotency.key_builder import IdempotencyKeyBuilder
from courier.idempotency.redis_store import RedisOutcomeStore
from courier.idempotency.store import InMemoryOutcomeStore, OutcomeStore

__all__ = [
    "DeduplicationGuard",
    "IdempotencyKeyBuilder",
    "InMemoryOutcomeStore",
    "OutcomeStore",
    "RedisOutcomeStore",
    "build_outcome_store",
]
