"""WhatsApp channel adapter (Meta Cloud API)."""

import httpx

from courier.logging import get_module_logger
from courier.notifications.adapters.base import ChannelAdapter, SendReceipt, SendResult
from courier.notifications.models import NotificationChannel, NotificationPayload
from courier.notifications.recipients import validate_recipient
from courier.operations import classify_http_error

logger = get_module_logger()


class WhatsAppAdapter(ChannelAdapter):
    """Sends approved template messages.

    Requires ``template_name``, ``template_language`` and a
    ``template_parameters`` list in the payload data. The returned receipt
    carries the Cloud API message id, which the pipeline stores on the log
    entry so status webhooks can be matched to it.
    """

    channel = NotificationChannel.WHATSAPP
    provider_errors = (httpx.HTTPError,)
    classify_error = staticmethod(classify_http_error)

    async def send(self, payload: NotificationPayload) -> SendResult:
        template_name = self._require(payload.data.get("template_name"), "template_name")
        language = self._require(payload.data.get("template_language"), "template_language")
        parameters = payload.data.get("template_parameters")
        if not isinstance(parameters, list):
            self._require(None, "template_parameters")
        validate_recipient(self.channel, payload.recipient)

        if not self.client.is_configured:
            return self._skip_not_configured(payload)

        message_id = await self._call_provider(
            self.client.send_template(
                to=payload.recipient.strip(),
                template_name=template_name,
                language=language,
                parameters=parameters,
            )
        )
        logger.info(
            "whatsapp_sent",
            notification_type=payload.type,
            template=template_name,
            message_id=message_id,
        )
        return SendReceipt(message_id=message_id)
