"""Dead-letter queue settings."""

from pydantic import Field

from courier.configuration.base import InfrastructureSettings


class DeadLetterSettings(InfrastructureSettings):
    """Dead-letter retention and cleanup configuration.

    Environment Variables:
        DLQ_RETENTION_DAYS: Age after which entries are purged (default: 90)
        DLQ_CLEANUP_BATCH_SIZE: Entries deleted per cleanup batch (default: 500)
        DLQ_CLEANUP_TIME: Daily cleanup time, HH:MM (default: 02:00)
        DLQ_HEALTH_MAX_ENTRIES: Entry count above which the DLQ reports unhealthy
    """

    retention_days: int = Field(default=90, alias="DLQ_RETENTION_DAYS")
    cleanup_batch_size: int = Field(default=500, alias="DLQ_CLEANUP_BATCH_SIZE")
    cleanup_time: str = Field(default="02:00", alias="DLQ_CLEANUP_TIME")
    health_max_entries: int = Field(default=10000, alias="DLQ_HEALTH_MAX_ENTRIES")
