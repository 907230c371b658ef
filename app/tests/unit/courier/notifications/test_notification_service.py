"""Unit tests for the notification service facade."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from courier.events import Event, dispatch_event, get_handlers_for_event
from courier.notifications import (
    DispatchReport,
    DispatchStatus,
    MalformedEventError,
    NotificationChannel,
    NotificationGroup,
    NotificationLogStatus,
    ProviderTransientError,
)
from courier.resilience import CircuitBreaker
from courier.notifications.errors import RetryableDeliveryError
from tests.factories.notifications import ScriptedAdapter

EMAIL = NotificationChannel.EMAIL


def invoice_event(**overrides):
    metadata = {
        "group": "BILLING",
        "recipients": [{"user_id": "user-1", "email": "parent@example.com"}],
        "data": {"subject": "Invoice due", "content": "Your invoice is due"},
        "channels": ["email"],
    }
    metadata.update(overrides)
    return Event(event_type="INVOICE_DUE", correlation_id="evt-1", metadata=metadata)


@pytest.mark.unit
class TestToNotificationEvent:
    def test_metadata_becomes_event_body(self, service_factory):
        event = service_factory().to_notification_event(invoice_event())

        assert event.type == "INVOICE_DUE"
        assert event.correlation_id == "evt-1"
        assert event.group == NotificationGroup.BILLING
        assert event.recipients[0].email == "parent@example.com"
        assert event.channels == ["email"]

    def test_event_type_wins_over_metadata(self, service_factory):
        event = service_factory().to_notification_event(invoice_event(type="OTHER"))

        assert event.type == "INVOICE_DUE"

    def test_invalid_metadata_is_malformed(self, service_factory):
        with pytest.raises(MalformedEventError):
            service_factory().to_notification_event(invoice_event(group="not-a-group"))


@pytest.mark.unit
class TestHandleEvent:
    def test_without_loop_delivers_synchronously(
        self, service_factory, scripted_adapter_factory
    ):
        adapter = scripted_adapter_factory(EMAIL)
        service = service_factory(adapter)

        report = service.handle_event(invoice_event())

        assert isinstance(report, DispatchReport)
        assert report.counts() == {"sent": 1}
        assert len(adapter.calls) == 1

    @pytest.mark.asyncio
    async def test_on_loop_runs_as_background_task(
        self, service_factory, scripted_adapter_factory
    ):
        adapter = scripted_adapter_factory(EMAIL)
        service = service_factory(adapter)

        task = service.handle_event(invoice_event())
        assert isinstance(task, asyncio.Task)
        await service.drain()

        assert task.result().counts() == {"sent": 1}

    @pytest.mark.asyncio
    async def test_from_worker_thread_schedules_on_bound_loop(
        self, service_factory, scripted_adapter_factory
    ):
        adapter = scripted_adapter_factory(EMAIL)
        service = service_factory(adapter)
        service.bind_loop(asyncio.get_running_loop())

        future = await asyncio.to_thread(service.handle_event, invoice_event())
        report = await asyncio.wrap_future(future)

        assert report.counts() == {"sent": 1}

    def test_subscribe_registers_on_event_bus(self, service_factory, scripted_adapter_factory):
        adapter = scripted_adapter_factory(EMAIL)
        service = service_factory(adapter)

        service.subscribe(["INVOICE_DUE", "LESSON_RESCHEDULED"])
        results = dispatch_event(invoice_event())

        assert get_handlers_for_event("LESSON_RESCHEDULED") == [service.handle_event]
        assert len(results) == 1
        assert results[0].counts() == {"sent": 1}

    def test_malformed_event_does_not_break_event_bus(self, service_factory):
        service = service_factory()
        service.subscribe(["INVOICE_DUE"])

        assert dispatch_event(invoice_event(recipients="nobody")) == []


@pytest.mark.unit
class TestPreferencesAndHistory:
    @pytest.mark.asyncio
    async def test_update_and_read_preference(self, service_factory):
        service = service_factory()

        await service.update_preference("user-1", EMAIL, NotificationGroup.BILLING, False)

        assert await service.is_enabled("user-1", EMAIL, NotificationGroup.BILLING) is False

    @pytest.mark.asyncio
    async def test_history_filters(self, service_factory, scripted_adapter_factory):
        service = service_factory(scripted_adapter_factory(EMAIL))
        await service.process(service.to_notification_event(invoice_event()))
        await service.update_preference("user-1", EMAIL, NotificationGroup.BILLING, False)
        await service.process(
            service.to_notification_event(
                Event(event_type="INVOICE_DUE", correlation_id="evt-2", metadata=invoice_event().metadata)
            )
        )

        everything = await service.get_history(user_id="user-1")
        skipped = await service.get_history(
            user_id="user-1", status=NotificationLogStatus.SKIPPED
        )
        by_type = await service.get_history(notification_type="LESSON_RESCHEDULED")
        recent = await service.get_history(
            since=datetime.now(timezone.utc) - timedelta(minutes=1), page_size=1
        )

        assert everything.total == 2
        assert skipped.total == 1
        assert skipped.items[0].correlation_id == "evt-2"
        assert by_type.total == 0
        assert recent.total == 2
        assert len(recent.items) == 1
        assert recent.has_next is True


@pytest.mark.unit
class TestHealth:
    def test_healthy_snapshot(self, service_factory, scripted_adapter_factory):
        service = service_factory(scripted_adapter_factory(EMAIL))

        health = service.get_health()

        assert health["healthy"] is True
        assert health["channels"]["email"]["healthy"] is True
        assert health["dead_letters"] == 0
        assert health["pending_dispatches"] == 0
        assert health["idempotency"]["backend"] == "memory"
        assert health["idempotency"]["in_flight"] == 0

    def test_unconfigured_provider_reported(self, service_factory, metrics, timeout_config):
        adapter = ScriptedAdapter(
            NotificationChannel.SMS, metrics, timeout_config, configured=False
        )
        service = service_factory(adapter)

        channel = service.get_health()["channels"]["sms"]

        assert channel["healthy"] is False
        assert "not configured" in channel["message"]

    @pytest.mark.asyncio
    async def test_open_breaker_makes_service_unhealthy(
        self, service_factory, scripted_adapter_factory, fake_clock
    ):
        breaker = CircuitBreaker(
            name="notification.email",
            failure_threshold=1,
            counted_exceptions=(RetryableDeliveryError,),
            clock=fake_clock,
        )
        adapter = scripted_adapter_factory(EMAIL, [ProviderTransientError("503", EMAIL)])
        service = service_factory(adapter, breakers={EMAIL: breaker})

        report = await service.process(service.to_notification_event(invoice_event()))
        health = service.get_health()

        assert report.results[0].status == DispatchStatus.DEAD_LETTERED
        assert health["healthy"] is False
        assert health["open_circuit_breakers"] == ["email"]
        assert health["dead_letters"] == 1
        assert health["metrics"]["email"]["failed"] == 1
