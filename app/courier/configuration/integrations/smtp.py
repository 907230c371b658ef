"""SMTP email integration settings."""

from pydantic import Field

from courier.configuration.base import IntegrationSettings


class SmtpSettings(IntegrationSettings):
    """SMTP server configuration for the email channel.

    Environment Variables:
        SMTP_HOST: SMTP server hostname (empty disables the email channel)
        SMTP_PORT: SMTP server port (default: 587)
        SMTP_USERNAME: Login username
        SMTP_PASSWORD: Login password
        SMTP_USE_TLS: Use implicit TLS instead of STARTTLS (default: False)
        SMTP_FROM_ADDRESS: Envelope sender address
        SMTP_FROM_NAME: Display name for the From header

    Example:
        ```python
        from courier.services import get_settings

        settings = get_settings()
        host = settings.smtp.SMTP_HOST
        ```
    """

    SMTP_HOST: str = Field(default="", alias="SMTP_HOST")
    SMTP_PORT: int = Field(default=587, alias="SMTP_PORT")
    SMTP_USERNAME: str | None = Field(default=None, alias="SMTP_USERNAME")
    SMTP_PASSWORD: str | None = Field(default=None, alias="SMTP_PASSWORD")
    SMTP_USE_TLS: bool = Field(default=False, alias="SMTP_USE_TLS")
    SMTP_FROM_ADDRESS: str = Field(
        default="no-reply@example.com", alias="SMTP_FROM_ADDRESS"
    )
    SMTP_FROM_NAME: str = Field(default="Courier", alias="SMTP_FROM_NAME")
