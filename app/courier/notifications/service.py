"""Notification service facade.

Single entry point for the rest of the application: dispatching events,
managing preferences, reading history and reporting health.
"""

import asyncio
from concurrent.futures import Future
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from courier.events import Event, register_event_handler
from courier.idempotency import DeduplicationGuard
from courier.logging import get_module_logger
from courier.notifications.errors import MalformedEventError, ProviderNotConfiguredError
from courier.notifications.log_repository import NotificationLogRepository, Page
from courier.notifications.models import (
    DispatchReport,
    NotificationChannel,
    NotificationEvent,
    NotificationGroup,
    NotificationLogEntry,
    NotificationLogStatus,
    NotificationPreference,
)
from courier.notifications.pipeline import NotificationPipeline
from courier.notifications.preferences import NotificationPreferenceService
from courier.notifications.status_updates import StatusUpdateResult, WhatsAppStatusProcessor
from courier.operations import OperationStatus

logger = get_module_logger()

HandleResult = Union[DispatchReport, "asyncio.Task[DispatchReport]", Future]


class NotificationService:
    """Facade over the notification pipeline and its repositories.

    Args:
        pipeline: Wired notification pipeline
        status_processor: Applies WhatsApp delivery status callbacks
    """

    def __init__(
        self,
        pipeline: NotificationPipeline,
        status_processor: Optional[WhatsAppStatusProcessor] = None,
    ):
        self.pipeline = pipeline
        self.status_processor = status_processor
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def preferences(self) -> NotificationPreferenceService:
        return self.pipeline.preferences

    @property
    def log_repository(self) -> NotificationLogRepository:
        return self.pipeline.log_repository

    @property
    def dedup_guard(self) -> DeduplicationGuard:
        return self.pipeline.dedup_guard

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(self, event: NotificationEvent) -> "asyncio.Task[DispatchReport]":
        """Fire-and-forget delivery of ``event`` on the running loop."""
        return self.pipeline.dispatch(event)

    async def process(self, event: NotificationEvent) -> DispatchReport:
        """Deliver ``event`` and wait for the report."""
        return await self.pipeline.process(event)

    async def reprocess_dead_letter(self, entry_id: str):
        return await self.pipeline.reprocess_dead_letter(entry_id)

    async def drain(self) -> None:
        await self.pipeline.drain()

    async def handle_whatsapp_webhook(self, payload: Dict[str, Any]) -> List[StatusUpdateResult]:
        """Apply a verified WhatsApp Cloud API webhook body to the log.

        Raises:
            ProviderNotConfiguredError: If no status processor is wired.
            MalformedEventError: If the body is not a Cloud API webhook.
        """
        if self.status_processor is None:
            raise ProviderNotConfiguredError(
                "WhatsApp status processing is not configured",
                channel=NotificationChannel.WHATSAPP,
            )
        return await self.status_processor.process_webhook(payload)

    # ------------------------------------------------------------------
    # Event bus bridge
    # ------------------------------------------------------------------

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Loop that receives events handled from other threads.

        Event bus handlers may run on the background dispatch pool. Binding
        the application loop lets those calls schedule onto it instead of
        delivering on a private loop.
        """
        self._loop = loop

    @staticmethod
    def to_notification_event(event: Event) -> NotificationEvent:
        """Build a NotificationEvent from an event bus Event.

        Raises:
            MalformedEventError: If the metadata does not describe a notification.
        """
        body: Dict[str, Any] = dict(event.metadata or {})
        body["type"] = event.event_type
        body["correlation_id"] = event.correlation_id
        try:
            return NotificationEvent.model_validate(body)
        except ValidationError as e:
            raise MalformedEventError(
                f"Event {event.event_type} is not a valid notification: "
                f"{e.error_count()} validation error(s)"
            ) from e

    def handle_event(self, event: Event) -> HandleResult:
        """Event bus handler.

        Called on the loop thread, the delivery runs as a background task.
        Called from another thread with a bound loop, it is scheduled on that
        loop. Otherwise it is delivered synchronously on a fresh loop.
        """
        notification_event = self.to_notification_event(event)
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            pass
        else:
            return self.pipeline.dispatch(notification_event)

        if self._loop is not None and self._loop.is_running():
            return asyncio.run_coroutine_threadsafe(
                self.pipeline.process(notification_event), self._loop
            )

        return asyncio.run(self.pipeline.process(notification_event))

    def subscribe(self, event_types: Iterable[str]) -> None:
        """Register ``handle_event`` for each event type on the event bus."""
        for event_type in event_types:
            register_event_handler(event_type)(self.handle_event)
            logger.info("notification_service_subscribed", event_type=event_type)

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    async def is_enabled(
        self,
        user_id: str,
        channel: NotificationChannel,
        group: NotificationGroup,
        profile_type: Optional[str] = None,
        profile_id: Optional[str] = None,
    ) -> bool:
        return await self.preferences.is_enabled(
            user_id, channel, group, profile_type, profile_id
        )

    async def update_preference(
        self,
        user_id: str,
        channel: NotificationChannel,
        group: NotificationGroup,
        enabled: bool,
        profile_type: Optional[str] = None,
        profile_id: Optional[str] = None,
    ) -> NotificationPreference:
        return await self.preferences.update_preference(
            user_id, channel, group, enabled, profile_type, profile_id
        )

    # ------------------------------------------------------------------
    # History and health
    # ------------------------------------------------------------------

    async def get_history(
        self,
        user_id: Optional[str] = None,
        channel: Optional[NotificationChannel] = None,
        status: Optional[NotificationLogStatus] = None,
        notification_type: Optional[str] = None,
        correlation_id: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[NotificationLogEntry]:
        """Read-only, newest-first view of the notification log."""
        return await self.log_repository.query(
            user_id=user_id,
            channel=channel,
            status=status,
            type=notification_type,
            correlation_id=correlation_id,
            since=since,
            until=until,
            page=page,
            page_size=page_size,
        )

    def get_health(self) -> Dict[str, Any]:
        """Snapshot of channel, breaker, queue and dedup health."""
        executor = self.pipeline.executor
        channels = {}
        for channel, result in executor.dispatcher.health().items():
            channels[channel] = {
                "healthy": result.status == OperationStatus.SUCCESS,
                "status": result.status.value,
                "message": result.message,
            }

        breakers = {
            channel.value: breaker.get_stats()
            for channel, breaker in executor.breakers.items()
        }
        open_breakers = [
            name for name, stats in breakers.items() if stats["state"] != "closed"
        ]

        return {
            "healthy": not open_breakers,
            "channels": channels,
            "circuit_breakers": breakers,
            "open_circuit_breakers": open_breakers,
            "metrics": self.pipeline.metrics.get_stats(),
            "dead_letters": executor.dead_letters.count(),
            "pending_dispatches": self.pipeline.pending_tasks,
            "idempotency": {
                **self.dedup_guard.store.get_stats(),
                "in_flight": self.dedup_guard.in_flight_count,
            },
        }
