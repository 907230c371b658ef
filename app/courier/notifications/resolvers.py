"""Channel and recipient resolution.

Decides which channels an event goes out on and which address each
recipient has on each channel.
"""

from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Protocol, Sequence

from courier.logging import get_module_logger
from courier.notifications.models import (
    NotificationChannel,
    NotificationEvent,
    NotificationGroup,
    RecipientInfo,
)
from courier.notifications.recipients import normalize_phone

logger = get_module_logger()

RecipientResolver = Callable[[NotificationEvent], Awaitable[List[RecipientInfo]]]


class DeviceTokenDirectory(Protocol):
    """Lookup of registered push device tokens."""

    async def get_device_tokens(self, user_id: str) -> List[str]: ...


class ChannelResolver:
    """Maps notification groups to the channels they may use.

    Groups without an explicit entry use every channel. An event's explicit
    channel list narrows the group's channels; names that are not channels
    are dropped with a warning.

    Example:
        resolver = ChannelResolver()
        resolver.register(NotificationGroup.SECURITY, [NotificationChannel.EMAIL])
    """

    def __init__(
        self,
        group_channels: Optional[Dict[NotificationGroup, Sequence[NotificationChannel]]] = None,
    ):
        self._group_channels: Dict[NotificationGroup, List[NotificationChannel]] = {}
        for group, channels in (group_channels or {}).items():
            self.register(group, channels)

    def register(self, group: NotificationGroup, channels: Iterable[NotificationChannel]) -> None:
        self._group_channels[group] = list(dict.fromkeys(channels))

    def channels_for(self, group: NotificationGroup) -> List[NotificationChannel]:
        return list(self._group_channels.get(group, list(NotificationChannel)))

    def resolve(self, event: NotificationEvent) -> List[NotificationChannel]:
        allowed = self.channels_for(event.group)
        if event.channels is None:
            return allowed

        requested: List[NotificationChannel] = []
        for raw in event.channels:
            try:
                channel = NotificationChannel(str(raw).strip().lower())
            except ValueError:
                logger.warning(
                    "invalid_notification_channel_dropped",
                    channel=raw,
                    notification_type=event.type,
                )
                continue
            if channel not in allowed:
                logger.info(
                    "channel_not_allowed_for_group",
                    channel=channel.value,
                    group=event.group.value,
                )
                continue
            if channel not in requested:
                requested.append(channel)
        return requested


class RecipientResolverRegistry:
    """Per-event-type recipient lookup.

    Producers may publish an event without recipients when the delivery
    side knows who cares (e.g. every guardian of a student). A resolver
    registered for the event type then supplies them.
    """

    def __init__(self) -> None:
        self._resolvers: Dict[str, RecipientResolver] = {}

    def register(self, event_type: str, resolver: RecipientResolver) -> None:
        self._resolvers[event_type] = resolver

    def get(self, event_type: str) -> Optional[RecipientResolver]:
        return self._resolvers.get(event_type)

    async def resolve(self, event: NotificationEvent) -> List[RecipientInfo]:
        if event.recipients:
            return list(event.recipients)
        resolver = self._resolvers.get(event.type)
        if resolver is None:
            return []
        return list(await resolver(event))


async def resolve_addresses(
    recipient: RecipientInfo,
    channel: NotificationChannel,
    device_tokens: Optional[DeviceTokenDirectory] = None,
) -> List[str]:
    """Addresses of ``recipient`` on ``channel``; empty when there are none.

    Phone numbers are normalized to E.164. A phone that cannot be normalized
    is passed through unchanged so the adapter rejects it as an invalid
    recipient rather than it silently disappearing.
    """
    if channel == NotificationChannel.EMAIL:
        return [recipient.email.strip()] if recipient.email and recipient.email.strip() else []

    if channel in (NotificationChannel.SMS, NotificationChannel.WHATSAPP):
        if not recipient.phone or not recipient.phone.strip():
            return []
        return [normalize_phone(recipient.phone) or recipient.phone.strip()]

    if channel == NotificationChannel.PUSH:
        tokens = list(recipient.device_tokens)
        if not tokens and device_tokens is not None:
            tokens = await device_tokens.get_device_tokens(recipient.user_id)
        return list(dict.fromkeys(t for t in tokens if t and t.strip()))

    return [recipient.user_id]
