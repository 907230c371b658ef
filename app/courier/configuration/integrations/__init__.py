"""Provider integration settings."""

from courier.configuration.integrations.smtp import SmtpSettings
from courier.configuration.integrations.twilio import TwilioSettings
from courier.configuration.integrations.whatsapp import WhatsAppSettings
from courier.configuration.integrations.fcm import FcmSettings

__all__ = [
    "SmtpSettings",
    "TwilioSettings",
    "WhatsAppSettings",
    "FcmSettings",
]
