"""SMS channel adapter (Twilio)."""

from twilio.base.exceptions import TwilioException

from courier.logging import get_module_logger
from courier.notifications.adapters.base import ChannelAdapter, SendReceipt, SendResult
from courier.notifications.models import NotificationChannel, NotificationPayload
from courier.notifications.recipients import validate_recipient
from courier.operations import classify_twilio_error

logger = get_module_logger()

MAX_SMS_LENGTH = 1600


class SmsAdapter(ChannelAdapter):
    channel = NotificationChannel.SMS
    provider_errors = (TwilioException, OSError)
    classify_error = staticmethod(classify_twilio_error)

    async def send(self, payload: NotificationPayload) -> SendResult:
        body = self._require(payload.body(), "content")
        validate_recipient(self.channel, payload.recipient)

        if len(body) > MAX_SMS_LENGTH:
            logger.warning(
                "sms_message_truncated",
                notification_type=payload.type,
                original_length=len(body),
            )
            body = body[: MAX_SMS_LENGTH - 3] + "..."

        if not self.client.is_configured:
            return self._skip_not_configured(payload)

        sid = await self._call_provider(
            self.client.send(to=payload.recipient.strip(), body=body)
        )
        logger.info("sms_sent", notification_type=payload.type, message_sid=sid)
        return SendReceipt(message_id=sid)
