"""Twilio SMS integration settings."""

from pydantic import Field

from courier.configuration.base import IntegrationSettings


class TwilioSettings(IntegrationSettings):
    """Twilio REST API configuration for the SMS channel.

    Environment Variables:
        TWILIO_ACCOUNT_SID: Twilio account SID
        TWILIO_AUTH_TOKEN: Twilio auth token
        TWILIO_FROM_NUMBER: Sender phone number in E.164 format
    """

    TWILIO_ACCOUNT_SID: str | None = Field(default=None, alias="TWILIO_ACCOUNT_SID")
    TWILIO_AUTH_TOKEN: str | None = Field(default=None, alias="TWILIO_AUTH_TOKEN")
    TWILIO_FROM_NUMBER: str | None = Field(default=None, alias="TWILIO_FROM_NUMBER")
