"""Outcome store factory."""

from typing import Type

from pydantic import BaseModel

from courier.configuration import IdempotencySettings
from courier.idempotency.redis_store import RedisOutcomeStore
from courier.idempotency.store import InMemoryOutcomeStore, OutcomeStore
from courier.logging import get_module_logger

logger = get_module_logger()


def build_outcome_store(
    settings: IdempotencySettings, model_type: Type[BaseModel]
) -> OutcomeStore:
    """Create the outcome store selected by ``IDEMPOTENCY_BACKEND``.

    Raises:
        ValueError: If the backend name is unknown.
    """
    backend = settings.IDEMPOTENCY_BACKEND.lower()

    if backend == "memory":
        logger.info("initialized_outcome_store", backend="memory")
        return InMemoryOutcomeStore()

    if backend == "redis":
        logger.info("initialized_outcome_store", backend="redis")
        return RedisOutcomeStore.from_url(
            settings.REDIS_URL,
            model_type,
            key_prefix=settings.IDEMPOTENCY_KEY_PREFIX,
        )

    raise ValueError(f"Unknown idempotency backend: {settings.IDEMPOTENCY_BACKEND}")
