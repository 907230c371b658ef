"""Email channel adapter (SMTP)."""

import aiosmtplib

from courier.logging import get_module_logger
from courier.notifications.adapters.base import ChannelAdapter, SendReceipt, SendResult
from courier.notifications.models import NotificationChannel, NotificationPayload
from courier.notifications.recipients import validate_recipient
from courier.operations import classify_smtp_error

logger = get_module_logger()


class EmailAdapter(ChannelAdapter):
    """Sends the payload body as an HTML email.

    The body falls back through ``content``, ``html`` and ``message``; the
    subject falls back to ``data["subject"]`` and then to the notification
    type.
    """

    channel = NotificationChannel.EMAIL
    provider_errors = (aiosmtplib.SMTPException, OSError)
    classify_error = staticmethod(classify_smtp_error)

    async def send(self, payload: NotificationPayload) -> SendResult:
        html = self._require(payload.body(), "content")
        validate_recipient(self.channel, payload.recipient)
        subject = payload.subject or payload.data.get("subject") or payload.type

        if not self.client.is_configured:
            return self._skip_not_configured(payload)

        message_id = await self._call_provider(
            self.client.send(to=payload.recipient.strip(), subject=subject, html=html)
        )
        logger.info(
            "email_sent",
            notification_type=payload.type,
            message_id=message_id,
        )
        return SendReceipt(message_id=message_id)
