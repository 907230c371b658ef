"""In-app channel adapter."""

from uuid import uuid4

from courier.events import IN_APP_CREATED, Event, dispatch_event
from courier.logging import get_module_logger
from courier.notifications.adapters.base import ChannelAdapter, SendReceipt, SendResult
from courier.notifications.models import NotificationChannel, NotificationPayload
from courier.notifications.providers.in_app import InboxItem

logger = get_module_logger()


class InAppAdapter(ChannelAdapter):
    """Stores an inbox item and announces it on the event bus."""

    channel = NotificationChannel.IN_APP

    async def send(self, payload: NotificationPayload) -> SendResult:
        user_id = self._require(payload.user_id, "user_id")
        message = self._require(payload.body(), "content")

        if not self.client.is_configured:
            return self._skip_not_configured(payload)

        item = await self._call_provider(
            self.client.create(
                InboxItem(
                    user_id=user_id,
                    type=payload.type,
                    title=payload.resolved_title(),
                    message=message,
                    data=payload.data,
                    correlation_id=payload.correlation_id,
                )
            )
        )
        dispatch_event(
            Event(
                event_type=IN_APP_CREATED,
                correlation_id=payload.correlation_id or str(uuid4()),
                user_id=user_id,
                metadata=item.model_dump(mode="json"),
            )
        )
        logger.info("in_app_notification_created", item_id=item.id, notification_type=payload.type)
        return SendReceipt(message_id=item.id)
