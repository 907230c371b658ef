"""Resilient delivery executor.

Runs one payload through its channel's circuit breaker, the dispatcher and
the adapter, retrying retryable failures with the channel's backoff. This
executor is the only place that counts attempts; nothing upstream retries.

Outcomes:
- SENT: the provider accepted the message
- FAILED: validation error, permanent provider rejection, or an adapter
  that deliberately skipped the send
- DEAD_LETTERED: retries exhausted, or the breaker rejected the attempt;
  exactly one dead-letter entry holds every attempt's error
"""

import asyncio
import time
from typing import AsyncContextManager, Awaitable, Callable, Dict, Iterable, List, Optional

from courier.configuration import ResilienceSettings
from courier.logging import get_module_logger
from courier.notifications.adapters.base import SendReceipt, SendResult, SkipReason
from courier.notifications.dispatcher import ChannelDispatcher
from courier.notifications.errors import (
    NotificationError,
    NotificationValidationError,
    ProviderPermanentError,
    RetryableDeliveryError,
)
from courier.notifications.metrics import NotificationMetrics
from courier.notifications.models import (
    DeliveryOutcome,
    DeliveryStatus,
    NotificationChannel,
    NotificationPayload,
)
from courier.resilience import (
    DEFAULT_RETRY_POLICIES,
    CircuitBreaker,
    CircuitBreakerOpenError,
    DeadLetterAttempt,
    DeadLetterEntry,
    DeadLetterReason,
    DeadLetterStore,
    RetryPolicy,
    register_circuit_breaker,
)

logger = get_module_logger()

RetryCallback = Callable[[int, NotificationError], Awaitable[None]]


def build_channel_breakers(
    settings: ResilienceSettings,
    channels: Iterable[NotificationChannel] = tuple(NotificationChannel),
) -> Dict[NotificationChannel, CircuitBreaker]:
    """Create and register one breaker per channel.

    Returns an empty mapping when circuit breaking is disabled.
    """
    if not settings.circuit_breaker_enabled:
        return {}
    breakers = {}
    for channel in channels:
        breaker = CircuitBreaker(
            name=f"notification.{channel.value}",
            failure_threshold=settings.failure_threshold,
            window_seconds=settings.window_seconds,
            cooldown_seconds=settings.cooldown_seconds,
            cooldown_multiplier=settings.cooldown_multiplier,
            max_cooldown_seconds=settings.max_cooldown_seconds,
            counted_exceptions=(RetryableDeliveryError,),
        )
        register_circuit_breaker(breaker)
        breakers[channel] = breaker
    return breakers


class ResilientDeliveryExecutor:
    """Bounded-retry delivery of a single payload.

    Args:
        dispatcher: Routes payloads to channel adapters
        dead_letters: Store receiving undeliverable payloads
        metrics: Delivery metrics recorder
        retry_policies: Policies keyed by channel value
        breakers: Circuit breakers keyed by channel; channels without one
            are called directly
        sleep: Async sleep used for backoff (injectable for tests)
        clock: Monotonic clock used for latency
    """

    def __init__(
        self,
        dispatcher: ChannelDispatcher,
        dead_letters: DeadLetterStore,
        metrics: NotificationMetrics,
        retry_policies: Optional[Dict[str, RetryPolicy]] = None,
        breakers: Optional[Dict[NotificationChannel, CircuitBreaker]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.dispatcher = dispatcher
        self.dead_letters = dead_letters
        self.metrics = metrics
        self.retry_policies = dict(DEFAULT_RETRY_POLICIES)
        if retry_policies:
            self.retry_policies.update(retry_policies)
        self.breakers = breakers or {}
        self._sleep = sleep
        self._clock = clock

    def policy_for(self, channel: NotificationChannel) -> RetryPolicy:
        return self.retry_policies[channel.value]

    async def _attempt(
        self, payload: NotificationPayload, slot: Optional[AsyncContextManager]
    ) -> SendResult:
        if slot is None:
            return await self._call(payload)
        async with slot:
            return await self._call(payload)

    async def _call(self, payload: NotificationPayload) -> SendResult:
        breaker = self.breakers.get(payload.channel)
        if breaker is None:
            return await self.dispatcher.dispatch(payload)
        return await breaker.call(self.dispatcher.dispatch, payload)

    async def execute(
        self,
        payload: NotificationPayload,
        on_retry: Optional[RetryCallback] = None,
        slot: Optional[AsyncContextManager] = None,
    ) -> DeliveryOutcome:
        """Deliver ``payload``, retrying per the channel policy.

        Args:
            payload: Payload to deliver
            on_retry: Awaited before each backoff with the failed attempt
                number and its error
            slot: Held around each provider attempt (for example a shared
                semaphore); released during backoff

        Returns:
            DeliveryOutcome; never raises for delivery failures
        """
        channel = payload.channel
        policy = self.policy_for(channel)
        failures: List[DeadLetterAttempt] = []

        for attempt in range(1, policy.max_attempts + 1):
            started = self._clock()
            try:
                result = await self._attempt(payload, slot)
            except CircuitBreakerOpenError as e:
                failures.append(
                    DeadLetterAttempt(attempt=attempt, error=str(e), error_code="CIRCUIT_OPEN")
                )
                return self._dead_letter(
                    payload, failures, DeadLetterReason.CIRCUIT_OPEN, attempt - 1
                )
            except (NotificationValidationError, ProviderPermanentError) as e:
                return self._fail(payload, attempt, e.message, e.error_code)
            except RetryableDeliveryError as e:
                failures.append(
                    DeadLetterAttempt(attempt=attempt, error=e.message, error_code=e.error_code)
                )
                if attempt >= policy.max_attempts:
                    return self._dead_letter(
                        payload, failures, DeadLetterReason.RETRIES_EXHAUSTED, attempt
                    )
                delay_ms = policy.delay_for(attempt)
                retry_after = getattr(e, "retry_after", None)
                if retry_after:
                    delay_ms = min(max(delay_ms, retry_after * 1000), policy.max_delay_ms)
                logger.warning(
                    "delivery_attempt_failed",
                    channel=channel.value,
                    notification_type=payload.type,
                    attempt=attempt,
                    max_attempts=policy.max_attempts,
                    reason=e.reason,
                    error=e.message,
                    retry_in_ms=delay_ms,
                )
                if on_retry is not None:
                    await on_retry(attempt, e)
                await self._sleep(delay_ms / 1000)
                continue
            except NotificationError as e:
                return self._fail(payload, attempt, e.message, e.error_code)
            except Exception as e:
                logger.exception(
                    "delivery_unexpected_error",
                    channel=channel.value,
                    notification_type=payload.type,
                    attempt=attempt,
                )
                return self._fail(payload, attempt, str(e), "UNEXPECTED_ERROR")

            latency_ms = int((self._clock() - started) * 1000)

            if isinstance(result, SkipReason):
                # The adapter already recorded the failure metric
                return DeliveryOutcome(
                    status=DeliveryStatus.FAILED,
                    attempts=attempt,
                    error=result.value,
                    error_code=result.name,
                )

            self.metrics.record_sent(channel, payload.type)
            self.metrics.record_latency(channel, payload.type, latency_ms)
            logger.info(
                "notification_sent",
                channel=channel.value,
                notification_type=payload.type,
                attempts=attempt,
                latency_ms=latency_ms,
            )
            return DeliveryOutcome(
                status=DeliveryStatus.SENT,
                attempts=attempt,
                latency_ms=latency_ms,
                message_id=result.message_id if isinstance(result, SendReceipt) else None,
            )

        # max_attempts >= 1 guarantees the loop returns
        raise AssertionError("unreachable")

    def _fail(
        self,
        payload: NotificationPayload,
        attempts: int,
        error: str,
        error_code: Optional[str],
    ) -> DeliveryOutcome:
        self.metrics.record_failed(payload.channel, payload.type)
        logger.error(
            "notification_failed",
            channel=payload.channel.value,
            notification_type=payload.type,
            attempts=attempts,
            error=error,
            error_code=error_code,
        )
        return DeliveryOutcome(
            status=DeliveryStatus.FAILED,
            attempts=attempts,
            error=error,
            error_code=error_code,
        )

    def _dead_letter(
        self,
        payload: NotificationPayload,
        failures: List[DeadLetterAttempt],
        reason: DeadLetterReason,
        attempts: int,
    ) -> DeliveryOutcome:
        entry = DeadLetterEntry(
            payload=payload.model_dump(mode="json"),
            channel=payload.channel.value,
            correlation_id=payload.correlation_id,
            reason=reason,
            attempts=failures,
        )
        entry_id = self.dead_letters.add(entry)
        self.metrics.record_failed(payload.channel, payload.type)
        self.metrics.record_dead_lettered(payload.channel, reason.value)
        last = failures[-1]
        logger.error(
            "notification_dead_lettered",
            channel=payload.channel.value,
            notification_type=payload.type,
            reason=reason.value,
            attempts=attempts,
            dead_letter_id=entry_id,
            error=last.error,
        )
        return DeliveryOutcome(
            status=DeliveryStatus.DEAD_LETTERED,
            attempts=attempts,
            error=last.error,
            error_code=last.error_code,
            dead_letter_id=entry_id,
        )
