"""Unit tests for the notification preference gate."""

import pytest

from courier.notifications import NotificationChannel, NotificationGroup

EMAIL = NotificationChannel.EMAIL
SMS = NotificationChannel.SMS
BILLING = NotificationGroup.BILLING


@pytest.mark.unit
class TestPreferenceLookup:
    @pytest.mark.asyncio
    async def test_enabled_by_default(self, preference_service):
        assert await preference_service.is_enabled("user-1", EMAIL, BILLING) is True

    @pytest.mark.asyncio
    async def test_user_level_row_applies(self, preference_service):
        await preference_service.update_preference("user-1", EMAIL, BILLING, False)

        assert await preference_service.is_enabled("user-1", EMAIL, BILLING) is False
        assert await preference_service.is_enabled("user-1", SMS, BILLING) is True

    @pytest.mark.asyncio
    async def test_profile_row_overrides_user_row(self, preference_service):
        await preference_service.update_preference("user-1", EMAIL, BILLING, False)
        await preference_service.update_preference(
            "user-1", EMAIL, BILLING, True, profile_type="student", profile_id="s-1"
        )

        assert (
            await preference_service.is_enabled("user-1", EMAIL, BILLING, "student", "s-1")
            is True
        )

    @pytest.mark.asyncio
    async def test_missing_profile_row_falls_back_to_user_row(self, preference_service):
        await preference_service.update_preference("user-1", EMAIL, BILLING, False)

        assert (
            await preference_service.is_enabled("user-1", EMAIL, BILLING, "student", "s-2")
            is False
        )

    @pytest.mark.asyncio
    async def test_profile_row_does_not_leak_to_user_level(self, preference_service):
        await preference_service.update_preference(
            "user-1", EMAIL, BILLING, False, profile_type="student", profile_id="s-1"
        )

        assert await preference_service.is_enabled("user-1", EMAIL, BILLING) is True


@pytest.mark.unit
class TestPreferenceUpdates:
    @pytest.mark.asyncio
    async def test_update_is_an_upsert(self, preference_service):
        first = await preference_service.update_preference("user-1", EMAIL, BILLING, False)
        second = await preference_service.update_preference("user-1", EMAIL, BILLING, True)

        assert second.id == first.id
        assert second.enabled is True
        assert len(await preference_service.get_preferences("user-1")) == 1

    @pytest.mark.asyncio
    async def test_update_preferences_in_bulk(self, preference_service):
        saved = await preference_service.update_preferences(
            "user-1", [(EMAIL, BILLING, False), (SMS, BILLING, True)]
        )

        assert [p.enabled for p in saved] == [False, True]

    @pytest.mark.asyncio
    async def test_create_default_preferences(self, preference_service):
        await preference_service.create_default_preferences("user-1")

        rows = await preference_service.get_preferences("user-1")
        assert len(rows) == len(NotificationChannel) * len(NotificationGroup)
        assert all(row.enabled for row in rows)

    @pytest.mark.asyncio
    async def test_disable_all_then_enable_all(self, preference_service):
        await preference_service.disable_all_channels("user-1")
        assert await preference_service.is_enabled("user-1", SMS, BILLING) is False

        await preference_service.enable_all_channels("user-1")
        assert await preference_service.is_enabled("user-1", SMS, BILLING) is True

    @pytest.mark.asyncio
    async def test_disable_group(self, preference_service):
        await preference_service.disable_group("user-1", BILLING)

        for channel in NotificationChannel:
            assert await preference_service.is_enabled("user-1", channel, BILLING) is False
        assert (
            await preference_service.is_enabled("user-1", EMAIL, NotificationGroup.SECURITY)
            is True
        )
