"""Multi-channel notification delivery.

Usage:

    from courier.notifications import NotificationEvent, RecipientInfo
    from courier.services import get_notification_service

    service = get_notification_service()
    report = await service.process(
        NotificationEvent(
            type="INVOICE_DUE",
            group=NotificationGroup.BILLING,
            recipients=[RecipientInfo(user_id="u1", email="parent@example.com")],
            data={"subject": "Invoice due", "content": "Your invoice is due"},
        )
    )
"""

from courier.notifications.delivery import ResilientDeliveryExecutor, build_channel_breakers
from courier.notifications.dispatcher import ChannelDispatcher
from courier.notifications.errors import (
    InvalidRecipientError,
    MalformedEventError,
    MissingNotificationContent,
    NotificationError,
    NotificationTimeoutError,
    NotificationValidationError,
    ProviderNotConfiguredError,
    ProviderPermanentError,
    ProviderTransientError,
    RateLimitExceededError,
    RetryableDeliveryError,
)
from courier.notifications.log_repository import (
    InMemoryNotificationLogRepository,
    LogEntryImmutableError,
    NotificationLogRepository,
    Page,
)
from courier.notifications.metrics import NotificationMetrics
from courier.notifications.models import (
    DeliveryOutcome,
    DeliveryResult,
    DeliveryStatus,
    DispatchReport,
    DispatchStatus,
    NotificationChannel,
    NotificationEvent,
    NotificationGroup,
    NotificationLogEntry,
    NotificationLogStatus,
    NotificationPayload,
    NotificationPreference,
    RecipientInfo,
)
from courier.notifications.pipeline import NotificationPipeline
from courier.notifications.preferences import (
    InMemoryPreferenceRepository,
    NotificationPreferenceService,
    PreferenceRepository,
)
from courier.notifications.resolvers import (
    ChannelResolver,
    DeviceTokenDirectory,
    RecipientResolverRegistry,
    resolve_addresses,
)
from courier.notifications.service import NotificationService
from courier.notifications.status_updates import (
    StatusUpdateResult,
    WhatsAppStatusProcessor,
    WhatsAppWebhookEvent,
)
from courier.notifications.timeouts import TimeoutConfig, with_timeout

__all__ = [
    # Models
    "DeliveryOutcome",
    "DeliveryResult",
    "DeliveryStatus",
    "DispatchReport",
    "DispatchStatus",
    "NotificationChannel",
    "NotificationEvent",
    "NotificationGroup",
    "NotificationLogEntry",
    "NotificationLogStatus",
    "NotificationPayload",
    "NotificationPreference",
    "RecipientInfo",
    # Errors
    "InvalidRecipientError",
    "MalformedEventError",
    "MissingNotificationContent",
    "NotificationError",
    "NotificationTimeoutError",
    "NotificationValidationError",
    "ProviderNotConfiguredError",
    "ProviderPermanentError",
    "ProviderTransientError",
    "RateLimitExceededError",
    "RetryableDeliveryError",
    # Delivery
    "ChannelDispatcher",
    "ResilientDeliveryExecutor",
    "build_channel_breakers",
    "NotificationMetrics",
    "TimeoutConfig",
    "with_timeout",
    # Routing
    "ChannelResolver",
    "DeviceTokenDirectory",
    "NotificationPipeline",
    "RecipientResolverRegistry",
    "resolve_addresses",
    # Persistence
    "InMemoryNotificationLogRepository",
    "InMemoryPreferenceRepository",
    "LogEntryImmutableError",
    "NotificationLogRepository",
    "NotificationPreferenceService",
    "Page",
    "PreferenceRepository",
    # Provider status callbacks
    "StatusUpdateResult",
    "WhatsAppStatusProcessor",
    "WhatsAppWebhookEvent",
    # Facade
    "NotificationService",
]
