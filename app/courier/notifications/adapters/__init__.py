"""Channel adapters."""

from courier.notifications.adapters.base import (
    ChannelAdapter,
    SendReceipt,
    SendResult,
    SkipReason,
)
from courier.notifications.adapters.email import EmailAdapter
from courier.notifications.adapters.in_app import InAppAdapter
from courier.notifications.adapters.push import PushAdapter, build_fcm_message
from courier.notifications.adapters.sms import SmsAdapter
from courier.notifications.adapters.whatsapp import WhatsAppAdapter

__all__ = [
    "ChannelAdapter",
    "EmailAdapter",
    "InAppAdapter",
    "PushAdapter",
    "SendReceipt",
    "SendResult",
    "SkipReason",
    "SmsAdapter",
    "WhatsAppAdapter",
    "build_fcm_message",
]
