"""Per-channel provider call timeouts."""

import asyncio
from typing import Awaitable, Dict, Optional, TypeVar

from courier.configuration import DeliverySettings
from courier.notifications.errors import NotificationTimeoutError
from courier.notifications.models import NotificationChannel

T = TypeVar("T")

DEFAULT_TIMEOUTS_MS: Dict[NotificationChannel, int] = {
    NotificationChannel.SMS: 30000,
    NotificationChannel.EMAIL: 30000,
    NotificationChannel.WHATSAPP: 45000,
    NotificationChannel.PUSH: 20000,
    NotificationChannel.IN_APP: 10000,
}


class TimeoutConfig:
    """Timeout lookup in milliseconds, keyed by channel."""

    def __init__(self, overrides: Optional[Dict[NotificationChannel, int]] = None):
        self._timeouts = dict(DEFAULT_TIMEOUTS_MS)
        if overrides:
            self._timeouts.update(overrides)

    @classmethod
    def from_settings(cls, settings: DeliverySettings) -> "TimeoutConfig":
        return cls(
            {
                NotificationChannel.EMAIL: settings.timeout_email_ms,
                NotificationChannel.SMS: settings.timeout_sms_ms,
                NotificationChannel.WHATSAPP: settings.timeout_whatsapp_ms,
                NotificationChannel.PUSH: settings.timeout_push_ms,
                NotificationChannel.IN_APP: settings.timeout_in_app_ms,
            }
        )

    def get_timeout(self, channel: NotificationChannel) -> int:
        return self._timeouts[channel]


async def with_timeout(
    awaitable: Awaitable[T],
    channel: NotificationChannel,
    timeout_config: TimeoutConfig,
) -> T:
    """Await a provider call under the channel timeout.

    Raises:
        NotificationTimeoutError: If the call does not finish in time. Only
            the wait is cancelled; a provider call running in a worker
            thread may still complete in the background.
    """
    timeout_ms = timeout_config.get_timeout(channel)
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_ms / 1000)
    except asyncio.TimeoutError:
        raise NotificationTimeoutError(channel, timeout_ms) from None
