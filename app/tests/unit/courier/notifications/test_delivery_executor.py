"""Unit tests for the resilient delivery executor."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from courier.notifications import (
    DeliveryStatus,
    InvalidRecipientError,
    NotificationChannel,
    ProviderPermanentError,
    ProviderTransientError,
    ResilientDeliveryExecutor,
)
from courier.notifications.adapters import SendReceipt, SkipReason
from courier.notifications.errors import RetryableDeliveryError
from courier.resilience import CircuitBreaker, DeadLetterReason, RetryPolicy

SMS = NotificationChannel.SMS
EMAIL = NotificationChannel.EMAIL


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def build_executor(dispatcher_factory, dead_letter_store, metrics, sleep, fake_clock):
    def _build(*adapters, retry_policies=None, breakers=None):
        return ResilientDeliveryExecutor(
            dispatcher=dispatcher_factory(*adapters),
            dead_letters=dead_letter_store,
            metrics=metrics,
            retry_policies=retry_policies,
            breakers=breakers,
            sleep=sleep,
            clock=fake_clock,
        )

    return _build


@pytest.mark.unit
class TestSuccessfulDelivery:
    @pytest.mark.asyncio
    async def test_first_attempt_success(
        self, build_executor, scripted_adapter_factory, payload_factory, metrics, sleep
    ):
        adapter = scripted_adapter_factory(EMAIL)
        executor = build_executor(adapter)

        outcome = await executor.execute(payload_factory(EMAIL))

        assert outcome.status == DeliveryStatus.SENT
        assert outcome.attempts == 1
        assert outcome.latency_ms == 0
        assert len(adapter.calls) == 1
        assert metrics.get_stats()["email"]["sent"] == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_success_after_transient_failure(
        self, build_executor, scripted_adapter_factory, payload_factory, sleep, metrics
    ):
        adapter = scripted_adapter_factory(EMAIL, [ProviderTransientError("503", EMAIL)])
        executor = build_executor(adapter)

        outcome = await executor.execute(payload_factory(EMAIL))

        assert outcome.status == DeliveryStatus.SENT
        assert outcome.attempts == 2
        sleep.assert_awaited_once_with(1.0)
        assert metrics.get_stats()["email"] == {
            "sent": 1,
            "failed": 0,
            "avg_latency_ms": 0,
        }


    @pytest.mark.asyncio
    async def test_message_id_comes_from_the_receipt(
        self, build_executor, scripted_adapter_factory, payload_factory
    ):
        adapter = scripted_adapter_factory(
            EMAIL, [SendReceipt(message_id="<msg-9@example.com>")]
        )
        executor = build_executor(adapter)
        payload = payload_factory(
            EMAIL, data={"content": "Hi", "whatsapp_message_id": "wamid.producer"}
        )

        outcome = await executor.execute(payload)

        assert outcome.message_id == "<msg-9@example.com>"

    @pytest.mark.asyncio
    async def test_receiptless_success_has_no_message_id(
        self, build_executor, scripted_adapter_factory, payload_factory
    ):
        executor = build_executor(scripted_adapter_factory(EMAIL))
        payload = payload_factory(EMAIL, data={"content": "Hi", "whatsapp_message_id": "x"})

        outcome = await executor.execute(payload)

        assert outcome.message_id is None

    @pytest.mark.asyncio
    async def test_slot_is_held_per_attempt_and_released_for_backoff(
        self, build_executor, scripted_adapter_factory, payload_factory, sleep
    ):
        slot = asyncio.Semaphore(1)
        held_during_send = []
        held_during_sleep = []
        adapter = scripted_adapter_factory(SMS, [ProviderTransientError("503", SMS)])
        original_send = adapter.send

        async def tracking_send(payload):
            held_during_send.append(slot.locked())
            return await original_send(payload)

        adapter.send = tracking_send
        sleep.side_effect = lambda delay: held_during_sleep.append(slot.locked())
        executor = build_executor(adapter)

        outcome = await executor.execute(payload_factory(SMS), slot=slot)

        assert outcome.status == DeliveryStatus.SENT
        assert held_during_send == [True, True]
        assert held_during_sleep == [False]
        assert not slot.locked()


@pytest.mark.unit
class TestRetryExhaustion:
    @pytest.mark.asyncio
    async def test_one_dead_letter_entry_with_every_attempt(
        self, build_executor, scripted_adapter_factory, payload_factory, dead_letter_store, sleep
    ):
        adapter = scripted_adapter_factory(
            EMAIL,
            [
                ProviderTransientError("503 first", EMAIL, error_code="503"),
                ProviderTransientError("503 second", EMAIL, error_code="503"),
                ProviderTransientError("503 third", EMAIL, error_code="503"),
            ],
        )
        executor = build_executor(adapter)

        outcome = await executor.execute(payload_factory(EMAIL))

        assert outcome.status == DeliveryStatus.DEAD_LETTERED
        assert outcome.attempts == 3
        assert outcome.error == "503 third"
        assert dead_letter_store.count() == 1

        entry = dead_letter_store.get(outcome.dead_letter_id)
        assert entry.reason == DeadLetterReason.RETRIES_EXHAUSTED
        assert [a.error for a in entry.attempts] == ["503 first", "503 second", "503 third"]
        assert entry.payload["recipient"] == "parent@example.com"
        assert entry.correlation_id == "evt-1"

        # Exponential backoff between attempts, none after the last one
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_failed_metric_recorded_once(
        self, build_executor, scripted_adapter_factory, payload_factory, metrics
    ):
        adapter = scripted_adapter_factory(
            SMS, [ProviderTransientError("timeout", SMS), ProviderTransientError("timeout", SMS)]
        )
        executor = build_executor(adapter)

        await executor.execute(payload_factory(SMS))

        assert metrics.get_stats()["sms"]["failed"] == 1
        assert (
            metrics.registry.get_sample_value(
                "notifications_dead_lettered_total",
                {"channel": "sms", "reason": "retries_exhausted"},
            )
            == 1
        )

    @pytest.mark.asyncio
    async def test_retry_after_extends_backoff(
        self, build_executor, scripted_adapter_factory, payload_factory, sleep
    ):
        adapter = scripted_adapter_factory(
            EMAIL, [ProviderTransientError("429", EMAIL, error_code="429", retry_after=5)]
        )
        executor = build_executor(adapter)

        await executor.execute(payload_factory(EMAIL))

        sleep.assert_awaited_once_with(5.0)

    @pytest.mark.asyncio
    async def test_retry_after_capped_by_policy(
        self, build_executor, scripted_adapter_factory, payload_factory, sleep
    ):
        adapter = scripted_adapter_factory(
            EMAIL, [ProviderTransientError("429", EMAIL, retry_after=3600)]
        )
        executor = build_executor(
            adapter,
            retry_policies={"email": RetryPolicy(max_attempts=2, base_delay_ms=100, max_delay_ms=2000)},
        )

        await executor.execute(payload_factory(EMAIL))

        sleep.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    async def test_on_retry_awaited_before_each_backoff(
        self, build_executor, scripted_adapter_factory, payload_factory
    ):
        first = ProviderTransientError("503", EMAIL)
        adapter = scripted_adapter_factory(EMAIL, [first])
        executor = build_executor(adapter)
        on_retry = AsyncMock()

        await executor.execute(payload_factory(EMAIL), on_retry=on_retry)

        on_retry.assert_awaited_once_with(1, first)


@pytest.mark.unit
class TestNonRetryableFailures:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error, code",
        [
            (InvalidRecipientError(EMAIL, "not a valid email address"), "INVALID_RECIPIENT"),
            (ProviderPermanentError("mailbox unavailable", EMAIL, "550"), "550"),
        ],
    )
    async def test_fail_without_retry(
        self,
        build_executor,
        scripted_adapter_factory,
        payload_factory,
        dead_letter_store,
        sleep,
        metrics,
        error,
        code,
    ):
        adapter = scripted_adapter_factory(EMAIL, [error])
        executor = build_executor(adapter)

        outcome = await executor.execute(payload_factory(EMAIL))

        assert outcome.status == DeliveryStatus.FAILED
        assert outcome.attempts == 1
        assert outcome.error_code == code
        assert len(adapter.calls) == 1
        assert dead_letter_store.count() == 0
        assert metrics.get_stats()["email"]["failed"] == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_permanent(
        self, build_executor, scripted_adapter_factory, payload_factory
    ):
        adapter = scripted_adapter_factory(EMAIL, [RuntimeError("boom")])
        executor = build_executor(adapter)

        outcome = await executor.execute(payload_factory(EMAIL))

        assert outcome.status == DeliveryStatus.FAILED
        assert outcome.error_code == "UNEXPECTED_ERROR"
        assert len(adapter.calls) == 1

    @pytest.mark.asyncio
    async def test_missing_adapter(self, build_executor, payload_factory):
        executor = build_executor()

        outcome = await executor.execute(payload_factory(SMS))

        assert outcome.status == DeliveryStatus.FAILED
        assert outcome.error_code == "NO_ADAPTER"

    @pytest.mark.asyncio
    async def test_skip_reason_is_failed_without_metric(
        self, build_executor, scripted_adapter_factory, payload_factory, metrics
    ):
        adapter = scripted_adapter_factory(
            NotificationChannel.PUSH, [SkipReason.PUSH_TOKEN_UNREGISTERED]
        )
        executor = build_executor(adapter)

        outcome = await executor.execute(payload_factory(NotificationChannel.PUSH))

        assert outcome.status == DeliveryStatus.FAILED
        assert outcome.error == "push_token_unregistered"
        assert outcome.error_code == "PUSH_TOKEN_UNREGISTERED"
        assert len(adapter.calls) == 1
        # The adapter owns the failure metric for skips
        assert metrics.get_stats() == {}


@pytest.mark.unit
class TestCircuitBreakerIntegration:
    def _breaker(self, fake_clock):
        return CircuitBreaker(
            name="notification.sms",
            failure_threshold=1,
            cooldown_seconds=30,
            counted_exceptions=(RetryableDeliveryError,),
            clock=fake_clock,
        )

    @pytest.mark.asyncio
    async def test_open_breaker_dead_letters_without_calling_provider(
        self,
        build_executor,
        scripted_adapter_factory,
        payload_factory,
        dead_letter_store,
        fake_clock,
    ):
        adapter = scripted_adapter_factory(SMS, [ProviderTransientError("503", SMS)])
        breaker = self._breaker(fake_clock)
        executor = build_executor(
            adapter,
            retry_policies={"sms": RetryPolicy(max_attempts=1, base_delay_ms=0, max_delay_ms=0)},
            breakers={SMS: breaker},
        )

        first = await executor.execute(payload_factory(SMS))
        assert first.status == DeliveryStatus.DEAD_LETTERED

        second = await executor.execute(payload_factory(SMS))

        assert second.status == DeliveryStatus.DEAD_LETTERED
        assert second.attempts == 0
        assert second.error_code == "CIRCUIT_OPEN"
        assert len(adapter.calls) == 1
        entry = dead_letter_store.get(second.dead_letter_id)
        assert entry.reason == DeadLetterReason.CIRCUIT_OPEN

    @pytest.mark.asyncio
    async def test_breaker_opening_mid_retry_stops_retries(
        self,
        build_executor,
        scripted_adapter_factory,
        payload_factory,
        dead_letter_store,
        fake_clock,
    ):
        adapter = scripted_adapter_factory(SMS, [ProviderTransientError("503", SMS)])
        executor = build_executor(adapter, breakers={SMS: self._breaker(fake_clock)})

        outcome = await executor.execute(payload_factory(SMS))

        assert outcome.status == DeliveryStatus.DEAD_LETTERED
        assert outcome.attempts == 1
        entry = dead_letter_store.get(outcome.dead_letter_id)
        assert entry.reason == DeadLetterReason.CIRCUIT_OPEN
        assert [a.error_code for a in entry.attempts] == ["PROVIDER_ERROR", "CIRCUIT_OPEN"]
        assert len(adapter.calls) == 1

    @pytest.mark.asyncio
    async def test_validation_errors_do_not_trip_breaker(
        self, build_executor, scripted_adapter_factory, payload_factory, fake_clock
    ):
        breaker = self._breaker(fake_clock)
        adapter = scripted_adapter_factory(
            SMS, [InvalidRecipientError(SMS, "phone number is not in E.164 format")]
        )
        executor = build_executor(adapter, breakers={SMS: breaker})

        await executor.execute(payload_factory(SMS))

        assert breaker.get_stats()["state"] == "closed"
