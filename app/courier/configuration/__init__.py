"""Configuration module - public API.

Centralized configuration for the Courier delivery engine using Pydantic
BaseSettings with domain-based organization.

Exports:
    Settings: Main settings class (for testing/overrides)
    DeliverySettings: Per-channel timeouts, retries and rate limits
    ResilienceSettings: Circuit breaker tuning

Example:
    ```python
    from courier.services import get_settings

    settings = get_settings()
    if settings.is_production:
        # Production-specific logic...
    ```
"""

from courier.configuration.settings import Settings, get_settings
from courier.configuration.infrastructure import (
    DeadLetterSettings,
    DeliverySettings,
    IdempotencySettings,
    ResilienceSettings,
)

__all__ = [
    "Settings",
    "get_settings",
    "DeliverySettings",
    "DeadLetterSettings",
    "IdempotencySettings",
    "ResilienceSettings",
]
