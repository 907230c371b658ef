"""Channel dispatcher.

Routes a payload to the adapter registered for its channel.
"""

from typing import Dict, Iterable, List, Optional

from courier.logging import get_module_logger
from courier.notifications.adapters.base import ChannelAdapter, SendResult
from courier.notifications.errors import ProviderPermanentError
from courier.notifications.models import NotificationChannel, NotificationPayload
from courier.operations import OperationResult

logger = get_module_logger()


class ChannelDispatcher:
    """Adapter registry keyed by channel.

    Example:
        dispatcher = ChannelDispatcher([email_adapter, sms_adapter])
        await dispatcher.dispatch(payload)
    """

    def __init__(self, adapters: Optional[Iterable[ChannelAdapter]] = None):
        self._adapters: Dict[NotificationChannel, ChannelAdapter] = {}
        for adapter in adapters or []:
            self.register(adapter)

    def register(self, adapter: ChannelAdapter) -> None:
        """Register ``adapter`` for its channel, replacing any previous one."""
        self._adapters[adapter.channel] = adapter
        logger.debug("registered_channel_adapter", channel=adapter.channel.value)

    @property
    def channels(self) -> List[NotificationChannel]:
        return list(self._adapters)

    def get_adapter(self, channel: NotificationChannel) -> ChannelAdapter:
        """Get the adapter for ``channel``.

        Raises:
            ProviderPermanentError: If no adapter is registered for the channel.
        """
        adapter = self._adapters.get(channel)
        if adapter is None:
            raise ProviderPermanentError(
                f"No adapter registered for channel {channel.value}",
                channel=channel,
                error_code="NO_ADAPTER",
            )
        return adapter

    async def dispatch(self, payload: NotificationPayload) -> SendResult:
        return await self.get_adapter(payload.channel).send(payload)

    def health(self) -> Dict[str, OperationResult]:
        """Health of every registered adapter, keyed by channel value."""
        return {
            channel.value: adapter.health_check()
            for channel, adapter in self._adapters.items()
        }
