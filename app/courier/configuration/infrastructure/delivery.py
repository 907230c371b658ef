"""Delivery pipeline settings: timeouts, retries, concurrency and rate limits."""

from typing import List

from pydantic import Field

from courier.configuration.base import InfrastructureSettings


class DeliverySettings(InfrastructureSettings):
    """Per-channel delivery tuning.

    Timeouts and retry budgets are keyed by channel because providers have
    very different latency and cost profiles (SMS costs money per attempt,
    push is free but flaky).

    Environment Variables:
        NOTIFICATION_TIMEOUT_<CHANNEL>_MS: Provider call timeout per channel
        NOTIFICATION_RETRY_<CHANNEL>_MAX_ATTEMPTS: Attempt budget per channel
        NOTIFICATION_RETRY_<CHANNEL>_BASE_DELAY_MS: Backoff base per channel
        NOTIFICATION_RETRY_MAX_DELAY_MS: Backoff cap for every channel
        NOTIFICATION_EVENT_TYPES: JSON list of event types to subscribe to
        NOTIFICATION_MAX_CONCURRENCY: Shared fan-out concurrency limit
        NOTIFICATION_RATE_LIMIT_ENABLED: Enable per-channel rate limiting
        NOTIFICATION_RATE_LIMIT_WINDOW_SECONDS: Sliding window size
        NOTIFICATION_RATE_LIMIT_<CHANNEL>: Sends allowed per user per window

    Example:
        ```python
        from courier.services import get_settings

        settings = get_settings()
        timeout_ms = settings.delivery.timeout_sms_ms
        ```
    """

    # Timeouts (milliseconds)
    timeout_email_ms: int = Field(default=30000, alias="NOTIFICATION_TIMEOUT_EMAIL_MS")
    timeout_sms_ms: int = Field(default=30000, alias="NOTIFICATION_TIMEOUT_SMS_MS")
    timeout_whatsapp_ms: int = Field(
        default=45000, alias="NOTIFICATION_TIMEOUT_WHATSAPP_MS"
    )
    timeout_push_ms: int = Field(default=20000, alias="NOTIFICATION_TIMEOUT_PUSH_MS")
    timeout_in_app_ms: int = Field(
        default=10000, alias="NOTIFICATION_TIMEOUT_IN_APP_MS"
    )

    # Retry budgets
    retry_email_max_attempts: int = Field(
        default=3, alias="NOTIFICATION_RETRY_EMAIL_MAX_ATTEMPTS"
    )
    retry_email_base_delay_ms: int = Field(
        default=1000, alias="NOTIFICATION_RETRY_EMAIL_BASE_DELAY_MS"
    )
    retry_sms_max_attempts: int = Field(
        default=2, alias="NOTIFICATION_RETRY_SMS_MAX_ATTEMPTS"
    )
    retry_sms_base_delay_ms: int = Field(
        default=3000, alias="NOTIFICATION_RETRY_SMS_BASE_DELAY_MS"
    )
    retry_whatsapp_max_attempts: int = Field(
        default=2, alias="NOTIFICATION_RETRY_WHATSAPP_MAX_ATTEMPTS"
    )
    retry_whatsapp_base_delay_ms: int = Field(
        default=3000, alias="NOTIFICATION_RETRY_WHATSAPP_BASE_DELAY_MS"
    )
    retry_push_max_attempts: int = Field(
        default=4, alias="NOTIFICATION_RETRY_PUSH_MAX_ATTEMPTS"
    )
    retry_push_base_delay_ms: int = Field(
        default=1000, alias="NOTIFICATION_RETRY_PUSH_BASE_DELAY_MS"
    )
    retry_in_app_max_attempts: int = Field(
        default=3, alias="NOTIFICATION_RETRY_IN_APP_MAX_ATTEMPTS"
    )
    retry_in_app_base_delay_ms: int = Field(
        default=1000, alias="NOTIFICATION_RETRY_IN_APP_BASE_DELAY_MS"
    )
    retry_max_delay_ms: int = Field(
        default=30000, alias="NOTIFICATION_RETRY_MAX_DELAY_MS"
    )

    # Event types the service subscribes to on the event bus (JSON list)
    subscribed_event_types: List[str] = Field(
        default_factory=list, alias="NOTIFICATION_EVENT_TYPES"
    )

    # Fan-out
    max_concurrency: int = Field(default=10, alias="NOTIFICATION_MAX_CONCURRENCY")

    # Rate limiting (per user, per channel, per window)
    rate_limit_enabled: bool = Field(
        default=True, alias="NOTIFICATION_RATE_LIMIT_ENABLED"
    )
    rate_limit_window_seconds: int = Field(
        default=60, alias="NOTIFICATION_RATE_LIMIT_WINDOW_SECONDS"
    )
    rate_limit_email: int = Field(default=50, alias="NOTIFICATION_RATE_LIMIT_EMAIL")
    rate_limit_sms: int = Field(default=20, alias="NOTIFICATION_RATE_LIMIT_SMS")
    rate_limit_whatsapp: int = Field(
        default=30, alias="NOTIFICATION_RATE_LIMIT_WHATSAPP"
    )
    rate_limit_push: int = Field(default=80, alias="NOTIFICATION_RATE_LIMIT_PUSH")
    rate_limit_in_app: int = Field(
        default=100, alias="NOTIFICATION_RATE_LIMIT_IN_APP"
    )
