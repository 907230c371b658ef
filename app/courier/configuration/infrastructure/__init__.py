"""Infrastructure settings."""

from courier.configuration.infrastructure.delivery import DeliverySettings
from courier.configuration.infrastructure.dlq import DeadLetterSettings
from courier.configuration.infrastructure.idempotency import IdempotencySettings
from courier.configuration.infrastructure.resilience import ResilienceSettings

__all__ = [
    "DeliverySettings",
    "DeadLetterSettings",
    "IdempotencySettings",
    "ResilienceSettings",
]
