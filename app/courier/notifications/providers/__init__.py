"""Provider clients used by the channel adapters."""

from courier.notifications.providers.fcm import FcmClient
from courier.notifications.providers.in_app import InAppInbox, InboxItem
from courier.notifications.providers.smtp import SmtpClient
from courier.notifications.providers.twilio import TwilioSmsClient
from courier.notifications.providers.whatsapp import WhatsAppCloudClient

__all__ = [
    "FcmClient",
    "InAppInbox",
    "InboxItem",
    "SmtpClient",
    "TwilioSmsClient",
    "WhatsAppCloudClient",
]
