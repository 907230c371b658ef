"""
Factory functions for dependency injection.

Provides application-scoped singleton providers for the delivery engine.
"""

from functools import lru_cache

from courier.configuration import Settings
from courier.configuration import get_settings as _load_settings
from courier.idempotency import (
    DeduplicationGuard,
    IdempotencyKeyBuilder,
    build_outcome_store,
)
from courier.notifications import (
    ChannelDispatcher,
    DeliveryOutcome,
    InMemoryNotificationLogRepository,
    InMemoryPreferenceRepository,
    NotificationMetrics,
    NotificationPipeline,
    NotificationPreferenceService,
    NotificationService,
    ResilientDeliveryExecutor,
    StatusUpdateResult,
    TimeoutConfig,
    WhatsAppStatusProcessor,
    build_channel_breakers,
)
from courier.notifications.adapters import (
    EmailAdapter,
    InAppAdapter,
    PushAdapter,
    SmsAdapter,
    WhatsAppAdapter,
)
from courier.notifications.status_updates import is_cacheable_status_result
from courier.notifications.providers import (
    FcmClient,
    InAppInbox,
    SmtpClient,
    TwilioSmsClient,
    WhatsAppCloudClient,
)
from courier.resilience import (
    DeadLetterStore,
    InMemoryDeadLetterStore,
    SlidingWindowRateLimiter,
    build_retry_policies,
)


def get_settings() -> Settings:
    """
    Get application-scoped settings singleton.

    Infrastructure packages should use this to ensure singleton consistency:
        from courier.services import get_settings
        settings = get_settings()

    Returns:
        Settings: Cached settings instance loaded from environment.
    """
    return _load_settings()


@lru_cache
def get_notification_metrics() -> NotificationMetrics:
    return NotificationMetrics()


@lru_cache
def get_dead_letter_store() -> DeadLetterStore:
    """Process-wide dead-letter store shared by the executor and the cleanup job."""
    return InMemoryDeadLetterStore()


@lru_cache
def get_log_repository() -> InMemoryNotificationLogRepository:
    return InMemoryNotificationLogRepository()


@lru_cache
def get_inbox() -> InAppInbox:
    return InAppInbox()


@lru_cache
def get_whatsapp_status_processor() -> WhatsAppStatusProcessor:
    """Applies WhatsApp status callbacks to the shared notification log."""
    settings = get_settings()
    return WhatsAppStatusProcessor(
        log_repository=get_log_repository(),
        guard=DeduplicationGuard(
            build_outcome_store(settings.idempotency, StatusUpdateResult),
            ttl_seconds=settings.idempotency.STATUS_UPDATE_TTL_SECONDS,
            is_terminal=is_cacheable_status_result,
        ),
        metrics=get_notification_metrics(),
        key_builder=IdempotencyKeyBuilder(prefix=settings.idempotency.IDEMPOTENCY_KEY_PREFIX),
    )

def build_channel_dispatcher(
    settings: Settings, metrics: NotificationMetrics
) -> ChannelDispatcher:
    """Construct every provider client and adapter from settings.

    Clients without credentials are still registered; their adapters skip
    sends and report unhealthy.
    """
    timeouts = TimeoutConfig.from_settings(settings.delivery)
    return ChannelDispatcher(
        [
            EmailAdapter(SmtpClient(settings.smtp), metrics, timeouts),
            SmsAdapter(TwilioSmsClient(settings.twilio), metrics, timeouts),
            WhatsAppAdapter(WhatsAppCloudClient(settings.whatsapp), metrics, timeouts),
            PushAdapter(FcmClient(settings.fcm), metrics, timeouts),
            InAppAdapter(get_inbox(), metrics, timeouts),
        ]
    )


@lru_cache
def get_notification_service() -> NotificationService:
    """
    Get application-scoped notification service singleton.

    Returns:
        NotificationService: Fully wired service (adapters, resilience,
        deduplication, preferences and log).

    Usage:
        service = get_notification_service()
        service.subscribe(["INVOICE_DUE", "ATTENDANCE_ABSENT"])
    """
    settings = get_settings()
    metrics = get_notification_metrics()

    executor = ResilientDeliveryExecutor(
        dispatcher=build_channel_dispatcher(settings, metrics),
        dead_letters=get_dead_letter_store(),
        metrics=metrics,
        retry_policies=build_retry_policies(settings.delivery),
        breakers=build_channel_breakers(settings.resilience),
    )
    dedup_guard = DeduplicationGuard(
        build_outcome_store(settings.idempotency, DeliveryOutcome),
        ttl_seconds=settings.idempotency.IDEMPOTENCY_TTL_SECONDS,
        is_terminal=lambda outcome: outcome.is_terminal,
    )
    pipeline = NotificationPipeline(
        executor=executor,
        preferences=NotificationPreferenceService(InMemoryPreferenceRepository()),
        log_repository=get_log_repository(),
        dedup_guard=dedup_guard,
        metrics=metrics,
        key_builder=IdempotencyKeyBuilder(prefix=settings.idempotency.IDEMPOTENCY_KEY_PREFIX),
        rate_limiter=SlidingWindowRateLimiter.from_settings(settings.delivery),
        max_concurrency=settings.delivery.max_concurrency,
    )
    return NotificationService(pipeline, status_processor=get_whatsapp_status_processor())
