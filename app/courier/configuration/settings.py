"""Courier configuration settings - main aggregator."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

# Integration settings
from courier.configuration.integrations import (
    FcmSettings,
    SmtpSettings,
    TwilioSettings,
    WhatsAppSettings,
)

# Infrastructure settings
from courier.configuration.infrastructure import (
    DeadLetterSettings,
    DeliverySettings,
    IdempotencySettings,
    ResilienceSettings,
)


class Settings(BaseSettings):
    """Courier configuration settings - main aggregator.

    Aggregates all domain-specific settings into a single configuration object:

    - **Integrations**: Provider credentials (SMTP, Twilio, WhatsApp, FCM)
    - **Infrastructure**: Delivery tuning, circuit breaking, idempotency, DLQ

    Environment Variables:
        PREFIX: Environment prefix for non-production deployments
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)

    Example:
        ```python
        from courier.services import get_settings

        settings = get_settings()

        if settings.twilio.TWILIO_ACCOUNT_SID:
            # SMS channel is configured...

        timeout_ms = settings.delivery.timeout_push_ms
        ```
    """

    # Application-level settings
    PREFIX: str = ""
    LOG_LEVEL: str = "INFO"

    # Integration settings
    smtp: SmtpSettings
    twilio: TwilioSettings
    whatsapp: WhatsAppSettings
    fcm: FcmSettings

    # Infrastructure settings
    delivery: DeliverySettings
    resilience: ResilienceSettings
    idempotency: IdempotencySettings
    dlq: DeadLetterSettings

    @property
    def is_production(self) -> bool:
        """Check if the application is running in production.

        Returns:
            True if PREFIX is empty (production), False otherwise.
        """
        return not bool(self.PREFIX)

    def __init__(self, **kwargs):
        """Initialize Settings with automatic subsettings instantiation.

        Args:
            **kwargs: Optional overrides for specific settings sections.
        """
        settings_map = {
            # Integrations
            "smtp": SmtpSettings,
            "twilio": TwilioSettings,
            "whatsapp": WhatsAppSettings,
            "fcm": FcmSettings,
            # Infrastructure
            "delivery": DeliverySettings,
            "resilience": ResilienceSettings,
            "idempotency": IdempotencySettings,
            "dlq": DeadLetterSettings,
        }

        for setting_name, setting_class in settings_map.items():
            if setting_name not in kwargs:
                kwargs[setting_name] = setting_class()

        super().__init__(**kwargs)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get the process-wide settings singleton.

    The @lru_cache decorator ensures only ONE instance is created per process.
    Tests can call ``get_settings.cache_clear()`` after patching the environment.

    Returns:
        Settings: Cached settings instance loaded from environment.
    """
    return Settings()
