"""WhatsApp Business (Meta Cloud API) integration settings."""

from pydantic import Field

from courier.configuration.base import IntegrationSettings


class WhatsAppSettings(IntegrationSettings):
    """Meta WhatsApp Cloud API configuration.

    Environment Variables:
        WHATSAPP_ACCESS_TOKEN: Permanent or system-user access token
        WHATSAPP_PHONE_NUMBER_ID: Sending phone number ID
        WHATSAPP_API_VERSION: Graph API version (default: v18.0)
        WHATSAPP_API_BASE_URL: Graph API base URL
    """

    WHATSAPP_ACCESS_TOKEN: str | None = Field(
        default=None, alias="WHATSAPP_ACCESS_TOKEN"
    )
    WHATSAPP_PHONE_NUMBER_ID: str | None = Field(
        default=None, alias="WHATSAPP_PHONE_NUMBER_ID"
    )
    WHATSAPP_API_VERSION: str = Field(default="v18.0", alias="WHATSAPP_API_VERSION")
    WHATSAPP_API_BASE_URL: str = Field(
        default="https://graph.facebook.com", alias="WHATSAPP_API_BASE_URL"
    )
