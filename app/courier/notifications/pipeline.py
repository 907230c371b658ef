"""Notification pipeline.

Turns one domain event into deliveries. Per event:

    RECEIVED -> CHANNELS_RESOLVED -> DISPATCHING -> per pair result

Every (recipient, channel, address) pair then runs through, in order:

1. the preference gate (disabled -> SKIPPED)
2. the deduplication guard (hit -> DEDUPED)
3. the rate limiter, inside the guard (exceeded -> SKIPPED)
4. the resilient executor (SENT | FAILED | DEAD_LETTERED)

Pairs run concurrently and are isolated from each other: one pair failing,
or one address lookup failing, never affects another. Only a malformed
event fails the whole dispatch. A shared semaphore bounds the provider
calls in flight across events; it is not held during retry backoff.
"""

import asyncio
from typing import List, Optional, Set, Tuple

from courier.idempotency import DeduplicationGuard, IdempotencyKeyBuilder
from courier.logging import bind_request_context, get_module_logger
from courier.notifications.delivery import ResilientDeliveryExecutor
from courier.notifications.errors import (
    MalformedEventError,
    NotificationError,
    RateLimitExceededError,
)
from courier.notifications.log_repository import NotificationLogRepository
from courier.notifications.metrics import NotificationMetrics
from courier.notifications.models import (
    DeliveryOutcome,
    DeliveryResult,
    DeliveryStatus,
    DispatchReport,
    DispatchStatus,
    NotificationChannel,
    NotificationEvent,
    NotificationLogEntry,
    NotificationLogStatus,
    NotificationPayload,
    RecipientInfo,
)
from courier.notifications.preferences import NotificationPreferenceService
from courier.notifications.resolvers import (
    ChannelResolver,
    DeviceTokenDirectory,
    RecipientResolverRegistry,
    resolve_addresses,
)
from courier.resilience import SlidingWindowRateLimiter

logger = get_module_logger()

CONTENT_SNAPSHOT_LENGTH = 500

_OUTCOME_TO_DISPATCH = {
    DeliveryStatus.SENT: DispatchStatus.SENT,
    DeliveryStatus.FAILED: DispatchStatus.FAILED,
    DeliveryStatus.DEAD_LETTERED: DispatchStatus.DEAD_LETTERED,
}

Pair = Tuple[RecipientInfo, NotificationChannel, str]


def _log_status(outcome: DeliveryOutcome) -> NotificationLogStatus:
    if outcome.status == DeliveryStatus.SENT:
        return NotificationLogStatus.SENT
    return NotificationLogStatus.FAILED


class NotificationPipeline:
    """Routes notification events through the delivery stages.

    Args:
        executor: Resilient delivery executor
        preferences: Preference gate
        log_repository: Notification log persistence
        dedup_guard: Single-flight deduplication guard
        metrics: Delivery metrics recorder
        key_builder: Idempotency key builder
        rate_limiter: Optional per-channel rate limiter
        channel_resolver: Group -> channel mapping
        recipient_resolvers: Per-event-type recipient lookup
        device_tokens: Optional push token directory
        max_concurrency: Provider calls in flight at the same time, across events
    """

    def __init__(
        self,
        executor: ResilientDeliveryExecutor,
        preferences: NotificationPreferenceService,
        log_repository: NotificationLogRepository,
        dedup_guard: DeduplicationGuard,
        metrics: NotificationMetrics,
        key_builder: Optional[IdempotencyKeyBuilder] = None,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
        channel_resolver: Optional[ChannelResolver] = None,
        recipient_resolvers: Optional[RecipientResolverRegistry] = None,
        device_tokens: Optional[DeviceTokenDirectory] = None,
        max_concurrency: int = 10,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.executor = executor
        self.preferences = preferences
        self.log_repository = log_repository
        self.dedup_guard = dedup_guard
        self.metrics = metrics
        self.key_builder = key_builder or IdempotencyKeyBuilder()
        self.rate_limiter = rate_limiter
        self.channel_resolver = channel_resolver or ChannelResolver()
        self.recipient_resolvers = recipient_resolvers or RecipientResolverRegistry()
        self.device_tokens = device_tokens
        self.max_concurrency = max_concurrency
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def process(self, event: NotificationEvent) -> DispatchReport:
        """Deliver ``event`` and wait for every pair to finish.

        Raises:
            MalformedEventError: If the event has no type or no usable recipients.
        """
        with bind_request_context(
            correlation_id=event.correlation_id, notification_type=event.type
        ):
            logger.info(
                "notification_event_received",
                group=event.group.value,
                recipient_count=len(event.recipients),
            )
            recipients = await self._resolve_recipients(event)
            channels = self.channel_resolver.resolve(event)
            logger.info(
                "notification_channels_resolved",
                channels=[c.value for c in channels],
            )

            report = DispatchReport(correlation_id=event.correlation_id, event_type=event.type)
            pairs: List[Pair] = []
            for recipient in recipients:
                for channel in channels:
                    pairs.extend(await self._resolve_pairs(event, recipient, channel, report))

            logger.info("notification_dispatching", pair_count=len(pairs))
            results = await asyncio.gather(
                *(self._run_pair(event, *pair) for pair in pairs),
                return_exceptions=True,
            )

            for (recipient, channel, address), result in zip(pairs, results):
                if isinstance(result, BaseException):
                    logger.error(
                        "notification_pair_crashed",
                        channel=channel.value,
                        user_id=recipient.user_id,
                        error=str(result),
                        exc_info=result,
                    )
                    result = DeliveryResult(
                        channel=channel,
                        user_id=recipient.user_id,
                        recipient=address,
                        status=DispatchStatus.FAILED,
                        reason="internal_error",
                    )
                report.results.append(result)

            logger.info("notification_event_completed", **report.counts())
            return report

    def dispatch(self, event: NotificationEvent) -> "asyncio.Task[DispatchReport]":
        """Fire-and-forget delivery. Must be called from a running event loop.

        The task is tracked until it finishes; failures are logged. Use
        ``drain()`` to wait for outstanding tasks on shutdown.
        """
        task = asyncio.get_running_loop().create_task(
            self.process(event), name=f"notification:{event.correlation_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("notification_dispatch_cancelled", task=task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "notification_dispatch_failed",
                task=task.get_name(),
                error=str(exc),
                exc_info=exc,
            )

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait until every task started by ``dispatch`` has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def reprocess_dead_letter(self, entry_id: str) -> DeliveryOutcome:
        """Replay a dead-lettered payload through the executor.

        Deduplication is bypassed on purpose: the earlier outcome for this
        key is the dead-letter itself. The entry is marked reprocessed
        whatever the new outcome is; a new failure produces a new entry.

        Raises:
            KeyError: If no entry has this id.
        """
        store = self.executor.dead_letters
        entry = store.get(entry_id)
        if entry is None:
            raise KeyError(entry_id)

        payload = NotificationPayload.model_validate(entry.payload)
        with bind_request_context(
            correlation_id=payload.correlation_id, notification_type=payload.type
        ):
            logger.info("dead_letter_reprocessing", entry_id=entry_id, channel=entry.channel)
            outcome = await self._execute_logged(payload)
            store.mark_reprocessed(entry_id)
            logger.info(
                "dead_letter_reprocessed",
                entry_id=entry_id,
                status=outcome.status.value,
            )
            return outcome

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _resolve_recipients(self, event: NotificationEvent) -> List[RecipientInfo]:
        if not event.type or not event.type.strip():
            raise MalformedEventError("Notification event has no type")
        recipients = await self.recipient_resolvers.resolve(event)
        if not recipients:
            raise MalformedEventError(
                f"Notification event {event.type} has no recipients"
            )
        unknown = [r for r in recipients if not r.user_id or not r.user_id.strip()]
        if unknown:
            raise MalformedEventError(
                f"Notification event {event.type} has {len(unknown)} recipient(s) without a user id"
            )
        return recipients

    async def _resolve_pairs(
        self,
        event: NotificationEvent,
        recipient: RecipientInfo,
        channel: NotificationChannel,
        report: DispatchReport,
    ) -> List[Pair]:
        """Addresses of one (recipient, channel); failures land in ``report``."""
        try:
            addresses = await resolve_addresses(recipient, channel, self.device_tokens)
        except Exception:
            logger.exception(
                "notification_address_lookup_failed",
                channel=channel.value,
                user_id=recipient.user_id,
            )
            self.metrics.record_failed(channel, event.type)
            report.results.append(
                DeliveryResult(
                    channel=channel,
                    user_id=recipient.user_id,
                    status=DispatchStatus.FAILED,
                    reason="address_lookup_failed",
                )
            )
            return []

        if not addresses:
            self.metrics.record_skipped(channel, "no_address")
            report.results.append(
                DeliveryResult(
                    channel=channel,
                    user_id=recipient.user_id,
                    status=DispatchStatus.SKIPPED,
                    reason="no_address",
                )
            )
            return []
        return [(recipient, channel, address) for address in addresses]

    def _build_payload(
        self,
        event: NotificationEvent,
        recipient: RecipientInfo,
        channel: NotificationChannel,
        address: str,
    ) -> NotificationPayload:
        data = dict(event.data)
        return NotificationPayload(
            recipient=address,
            channel=channel,
            type=event.type,
            group=event.group,
            data=data,
            locale=recipient.locale or event.locale,
            user_id=recipient.user_id,
            profile_type=recipient.profile_type,
            profile_id=recipient.profile_id,
            correlation_id=event.correlation_id,
            subject=data.get("subject"),
            title=data.get("title"),
        )

    def _new_log_entry(
        self, payload: NotificationPayload, status: NotificationLogStatus, **extra
    ) -> NotificationLogEntry:
        body = payload.body()
        return NotificationLogEntry(
            channel=payload.channel,
            type=payload.type,
            group=payload.group,
            recipient=payload.recipient,
            user_id=payload.user_id,
            status=status,
            correlation_id=payload.correlation_id,
            template=payload.data.get("template") or payload.data.get("template_name"),
            content_snapshot=body[:CONTENT_SNAPSHOT_LENGTH] if body else None,
            **extra,
        )

    async def _skip(
        self, payload: NotificationPayload, reason: str
    ) -> DeliveryResult:
        logger.info(
            "notification_skipped",
            channel=payload.channel.value,
            user_id=payload.user_id,
            reason=reason,
        )
        self.metrics.record_skipped(payload.channel, reason)
        entry = await self.log_repository.append(
            self._new_log_entry(payload, NotificationLogStatus.SKIPPED, error=reason)
        )
        return DeliveryResult(
            channel=payload.channel,
            user_id=payload.user_id,
            recipient=payload.recipient,
            status=DispatchStatus.SKIPPED,
            reason=reason,
            log_entry_id=entry.id,
        )

    async def _execute_logged(
        self, payload: NotificationPayload, holder: Optional[dict] = None
    ) -> DeliveryOutcome:
        entry = await self.log_repository.append(
            self._new_log_entry(payload, NotificationLogStatus.PENDING)
        )
        if holder is not None:
            holder["log_entry_id"] = entry.id

        async def mark_retrying(attempt: int, error: NotificationError) -> None:
            await self._update_log(
                entry.id,
                status=NotificationLogStatus.RETRYING,
                attempts=attempt,
                error=error.message,
            )

        outcome = await self.executor.execute(
            payload, on_retry=mark_retrying, slot=self._semaphore
        )
        await self._update_log(
            entry.id,
            status=_log_status(outcome),
            attempts=outcome.attempts,
            latency_ms=outcome.latency_ms,
            error=outcome.error,
            message_id=outcome.message_id,
        )
        return outcome

    async def _update_log(self, entry_id: str, **changes) -> None:
        # A log write failure must not turn a delivered message into a resend
        try:
            await self.log_repository.update(entry_id, **changes)
        except Exception:
            logger.exception("notification_log_update_failed", log_entry_id=entry_id)

    async def _run_pair(
        self,
        event: NotificationEvent,
        recipient: RecipientInfo,
        channel: NotificationChannel,
        address: str,
    ) -> DeliveryResult:
        payload = self._build_payload(event, recipient, channel, address)

        enabled = await self.preferences.is_enabled(
            recipient.user_id,
            channel,
            event.group,
            recipient.profile_type,
            recipient.profile_id,
        )
        if not enabled:
            return await self._skip(payload, "preference_disabled")

        key = self.key_builder.build(event.correlation_id, event.type, channel, address)
        holder: dict = {}
        try:
            outcome, deduped = await self.dedup_guard.run(
                key, lambda: self._deliver(payload, holder)
            )
        except RateLimitExceededError:
            return await self._skip(payload, "rate_limited")

        if deduped:
            self.metrics.record_deduplicated(channel)
            return DeliveryResult(
                channel=channel,
                user_id=recipient.user_id,
                recipient=address,
                status=DispatchStatus.DEDUPED,
                reason=outcome.status.value,
                outcome=outcome,
            )

        return DeliveryResult(
            channel=channel,
            user_id=recipient.user_id,
            recipient=address,
            status=_OUTCOME_TO_DISPATCH[outcome.status],
            reason=outcome.error_code,
            outcome=outcome,
            log_entry_id=holder.get("log_entry_id"),
        )

    async def _deliver(self, payload: NotificationPayload, holder: dict) -> DeliveryOutcome:
        # Runs inside the guard: a replay answered from the store spends no budget,
        # and a limited pair raises so nothing is cached for its key
        if self.rate_limiter is not None and not self.rate_limiter.allow(
            payload.channel, payload.user_id
        ):
            raise RateLimitExceededError(
                f"Rate limit reached for {payload.channel.value}", channel=payload.channel
            )
        return await self._execute_logged(payload, holder)
