"""
Dependency injection services.

Provides provider functions returning process-wide singletons.
"""

from courier.services.providers import (
    build_channel_dispatcher,
    get_dead_letter_store,
    get_inbox,
    get_log_repository,
    get_notification_metrics,
    get_notification_service,
    get_settings,
    get_whatsapp_status_processor,
)

__all__ = [
    "build_channel_dispatcher",
    "get_dead_letter_store",
    "get_inbox",
    "get_log_repository",
    "get_notification_metrics",
    "get_notification_service",
    "get_settings",
    "get_whatsapp_status_processor",
]
