"""Notification preference gate.

Preferences are resolved in two tiers:

1. a row scoped to the recipient's profile (e.g. a parent's view of one
   child), when the payload carries a profile
2. the user-level row

With no row at all the channel is enabled: users opt out, never in.
"""

import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from courier.logging import get_module_logger
from courier.notifications.models import (
    NotificationChannel,
    NotificationGroup,
    NotificationPreference,
)

logger = get_module_logger()

PreferenceKey = Tuple[str, NotificationChannel, NotificationGroup, Optional[str], Optional[str]]


class PreferenceRepository(Protocol):
    """Persistence interface for preference rows."""

    async def find(
        self,
        user_id: str,
        channel: NotificationChannel,
        group: NotificationGroup,
        profile_type: Optional[str] = None,
        profile_id: Optional[str] = None,
    ) -> Optional[NotificationPreference]: ...

    async def find_by_user(self, user_id: str) -> List[NotificationPreference]: ...

    async def save(self, preference: NotificationPreference) -> NotificationPreference: ...


class InMemoryPreferenceRepository:
    """Thread-safe in-memory preference repository."""

    def __init__(self) -> None:
        self._rows: Dict[PreferenceKey, NotificationPreference] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(pref: NotificationPreference) -> PreferenceKey:
        return (pref.user_id, pref.channel, pref.group, pref.profile_type, pref.profile_id)

    async def find(
        self,
        user_id: str,
        channel: NotificationChannel,
        group: NotificationGroup,
        profile_type: Optional[str] = None,
        profile_id: Optional[str] = None,
    ) -> Optional[NotificationPreference]:
        with self._lock:
            return self._rows.get((user_id, channel, group, profile_type, profile_id))

    async def find_by_user(self, user_id: str) -> List[NotificationPreference]:
        with self._lock:
            return [p for p in self._rows.values() if p.user_id == user_id]

    async def save(self, preference: NotificationPreference) -> NotificationPreference:
        with self._lock:
            self._rows[self._key(preference)] = preference
        return preference


class NotificationPreferenceService:
    """Reads and upserts preference rows."""

    def __init__(self, repository: PreferenceRepository):
        self.repository = repository

    async def get_preferences(self, user_id: str) -> List[NotificationPreference]:
        return await self.repository.find_by_user(user_id)

    async def is_enabled(
        self,
        user_id: str,
        channel: NotificationChannel,
        group: NotificationGroup,
        profile_type: Optional[str] = None,
        profile_id: Optional[str] = None,
    ) -> bool:
        """Whether ``user_id`` accepts ``group`` notifications on ``channel``."""
        if profile_type and profile_id:
            scoped = await self.repository.find(
                user_id, channel, group, profile_type, profile_id
            )
            if scoped is not None:
                return scoped.enabled

        user_level = await self.repository.find(user_id, channel, group)
        if user_level is not None:
            return user_level.enabled

        return True

    async def update_preference(
        self,
        user_id: str,
        channel: NotificationChannel,
        group: NotificationGroup,
        enabled: bool,
        profile_type: Optional[str] = None,
        profile_id: Optional[str] = None,
    ) -> NotificationPreference:
        """Create or update one preference row."""
        existing = await self.repository.find(
            user_id, channel, group, profile_type, profile_id
        )
        if existing is not None:
            preference = existing.model_copy(
                update={"enabled": enabled, "updated_at": datetime.now(timezone.utc)}
            )
        else:
            preference = NotificationPreference(
                user_id=user_id,
                channel=channel,
                group=group,
                enabled=enabled,
                profile_type=profile_type,
                profile_id=profile_id,
            )
        saved = await self.repository.save(preference)
        logger.info(
            "notification_preference_updated",
            user_id=user_id,
            channel=channel.value,
            group=group.value,
            enabled=enabled,
            profile_type=profile_type,
        )
        return saved

    async def update_preferences(
        self,
        user_id: str,
        preferences: Sequence[Tuple[NotificationChannel, NotificationGroup, bool]],
    ) -> List[NotificationPreference]:
        return [
            await self.update_preference(user_id, channel, group, enabled)
            for channel, group, enabled in preferences
        ]

    async def _set_all(
        self,
        user_id: str,
        enabled: bool,
        groups: Sequence[NotificationGroup] = tuple(NotificationGroup),
    ) -> None:
        for channel in NotificationChannel:
            for group in groups:
                await self.update_preference(user_id, channel, group, enabled)

    async def create_default_preferences(self, user_id: str) -> None:
        """Write explicit enabled rows for every channel and group."""
        await self._set_all(user_id, True)

    async def enable_all_channels(self, user_id: str) -> None:
        await self._set_all(user_id, True)

    async def disable_all_channels(self, user_id: str) -> None:
        await self._set_all(user_id, False)

    async def disable_group(self, user_id: str, group: NotificationGroup) -> None:
        await self._set_all(user_id, False, groups=(group,))
