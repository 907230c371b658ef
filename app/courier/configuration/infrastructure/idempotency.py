"""Idempotency infrastructure settings."""

from pydantic import Field

from courier.configuration.base import InfrastructureSettings


class IdempotencySettings(InfrastructureSettings):
    """Delivery deduplication configuration.

    Environment Variables:
        IDEMPOTENCY_BACKEND: 'memory' or 'redis' (default: memory)
        IDEMPOTENCY_TTL_SECONDS: Lifetime of a cached delivery outcome (default: 300s)
        STATUS_UPDATE_TTL_SECONDS: Lifetime of a processed provider status
            callback key (default: 7 days)
        IDEMPOTENCY_KEY_PREFIX: Prefix for every dedup key
        REDIS_URL: Redis connection URL (redis backend only)

    Example:
        ```python
        from courier.services import get_settings

        ttl = get_settings().idempotency.IDEMPOTENCY_TTL_SECONDS
        ```
    """

    IDEMPOTENCY_BACKEND: str = Field(default="memory", alias="IDEMPOTENCY_BACKEND")
    IDEMPOTENCY_TTL_SECONDS: int = Field(default=300, alias="IDEMPOTENCY_TTL_SECONDS")
    STATUS_UPDATE_TTL_SECONDS: int = Field(
        default=7 * 24 * 3600, alias="STATUS_UPDATE_TTL_SECONDS"
    )
    IDEMPOTENCY_KEY_PREFIX: str = Field(default="", alias="IDEMPOTENCY_KEY_PREFIX")
    REDIS_URL: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
