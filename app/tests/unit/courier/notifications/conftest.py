from unittest.mock import AsyncMock

import pytest

from courier.idempotency import DeduplicationGuard, InMemoryOutcomeStore
from courier.notifications import (
    NotificationPipeline,
    NotificationService,
    ResilientDeliveryExecutor,
)


@pytest.fixture
def backoff_sleep():
    return AsyncMock()


@pytest.fixture
def dedup_guard():
    return DeduplicationGuard(
        InMemoryOutcomeStore(), ttl_seconds=300, is_terminal=lambda o: o.is_terminal
    )


@pytest.fixture
def pipeline_factory(
    dispatcher_factory,
    dead_letter_store,
    metrics,
    preference_service,
    log_repository,
    dedup_guard,
    backoff_sleep,
    fake_clock,
):
    """Build a pipeline around the given adapters with in-memory collaborators.

    Example:
        pipeline = pipeline_factory(email_adapter, rate_limiter=limiter)
    """

    def _factory(*adapters, retry_policies=None, breakers=None, **kwargs):
        executor = ResilientDeliveryExecutor(
            dispatcher=dispatcher_factory(*adapters),
            dead_letters=dead_letter_store,
            metrics=metrics,
            retry_policies=retry_policies,
            breakers=breakers,
            sleep=backoff_sleep,
            clock=fake_clock,
        )
        kwargs.setdefault("preferences", preference_service)
        return NotificationPipeline(
            executor=executor,
            log_repository=log_repository,
            dedup_guard=dedup_guard,
            metrics=metrics,
            **kwargs,
        )

    return _factory


@pytest.fixture
def service_factory(pipeline_factory):
    def _factory(*adapters, **kwargs):
        return NotificationService(pipeline_factory(*adapters, **kwargs))

    return _factory
