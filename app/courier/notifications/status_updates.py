"""WhatsApp delivery status callbacks.

Meta reports what happened to a sent template message (sent, delivered,
read, failed) through the Cloud API webhook. Each status is matched to the
notification log row by the message id stored at send time, and moves that
row forward:

    sent -> SENT (no change)    delivered, read -> DELIVERED    failed -> FAILED

Meta redelivers webhooks, so every (message id, status) pair is applied at
most once through a deduplication guard. Statuses for unknown message ids
are not cached; a redelivery may still find the row once the send is logged.

Webhook signature checks and the verification handshake belong to the HTTP
layer in front of this processor.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from courier.idempotency import DeduplicationGuard, IdempotencyKeyBuilder
from courier.logging import get_module_logger
from courier.notifications.errors import MalformedEventError
from courier.notifications.log_repository import (
    LogEntryImmutableError,
    NotificationLogRepository,
)
from courier.notifications.metrics import NotificationMetrics
from courier.notifications.models import NotificationChannel, NotificationLogStatus

logger = get_module_logger()

ORPHANED = "orphaned"
OUT_OF_ORDER = "out_of_order"
UNKNOWN_STATUS = "unknown_status"
DUPLICATE = "duplicate"

WHATSAPP_STATUS_MAP = {
    "sent": NotificationLogStatus.SENT,
    "delivered": NotificationLogStatus.DELIVERED,
    # Read implies delivered; the read time is kept on the row
    "read": NotificationLogStatus.DELIVERED,
    "failed": NotificationLogStatus.FAILED,
}


class WhatsAppStatusError(BaseModel):
    code: Optional[int] = None
    title: Optional[str] = None
    message: Optional[str] = None
    error_data: Optional[Dict[str, Any]] = None


class WhatsAppStatus(BaseModel):
    """One entry of ``value.statuses`` in a Cloud API webhook."""

    id: str
    status: str
    timestamp: Optional[str] = None
    recipient_id: Optional[str] = None
    errors: List[WhatsAppStatusError] = Field(default_factory=list)

    @property
    def occurred_at(self) -> Optional[datetime]:
        """Status time; Meta sends unix seconds as a string."""
        try:
            return datetime.fromtimestamp(int(self.timestamp), tz=timezone.utc)
        except (TypeError, ValueError):
            return None

    @property
    def error_message(self) -> Optional[str]:
        if not self.errors:
            return None
        first = self.errors[0]
        return first.message or first.title


class WhatsAppChangeValue(BaseModel):
    statuses: List[WhatsAppStatus] = Field(default_factory=list)
    messages: List[Dict[str, Any]] = Field(default_factory=list)


class WhatsAppChange(BaseModel):
    field: Optional[str] = None
    value: WhatsAppChangeValue


class WhatsAppEntry(BaseModel):
    id: Optional[str] = None
    changes: List[WhatsAppChange] = Field(default_factory=list)


class WhatsAppWebhookEvent(BaseModel):
    """Cloud API webhook body (``object`` = "whatsapp_business_account")."""

    object: Optional[str] = None
    entry: List[WhatsAppEntry] = Field(default_factory=list)

    def statuses(self) -> List[WhatsAppStatus]:
        return [
            status
            for entry in self.entry
            for change in entry.changes
            for status in change.value.statuses
        ]


class StatusUpdateResult(BaseModel):
    """What one status callback did. Cached per (message id, status)."""

    message_id: str
    provider_status: str
    applied: bool
    reason: Optional[str] = None
    log_entry_id: Optional[str] = None
    log_status: Optional[NotificationLogStatus] = None


class WhatsAppStatusProcessor:
    """Applies WhatsApp status callbacks to the notification log.

    Args:
        log_repository: Log holding the rows written at send time
        guard: Deduplication guard over a StatusUpdateResult store
        metrics: Delivery metrics recorder
        key_builder: Builds the (message id, status) keys
    """

    def __init__(
        self,
        log_repository: NotificationLogRepository,
        guard: DeduplicationGuard,
        metrics: NotificationMetrics,
        key_builder: Optional[IdempotencyKeyBuilder] = None,
    ):
        self.log_repository = log_repository
        self.guard = guard
        self.metrics = metrics
        self.key_builder = key_builder or IdempotencyKeyBuilder()

    async def process_webhook(self, payload: Dict[str, Any]) -> List[StatusUpdateResult]:
        """Apply every status in a webhook body, in order.

        A status that fails to apply is logged and skipped; the rest of the
        batch still runs. Incoming user messages are ignored.

        Raises:
            MalformedEventError: If the body is not a Cloud API webhook.
        """
        try:
            event = WhatsAppWebhookEvent.model_validate(payload)
        except ValidationError as e:
            raise MalformedEventError(
                f"Invalid WhatsApp webhook body: {e.error_count()} validation error(s)",
                channel=NotificationChannel.WHATSAPP,
            ) from e

        results = []
        # Sequential: the same message id can appear twice in one batch
        for status in event.statuses():
            try:
                results.append(await self.process_status(status))
            except Exception:
                logger.exception(
                    "whatsapp_status_update_failed",
                    message_id=status.id,
                    provider_status=status.status,
                )
                self.metrics.record_status_update(
                    NotificationChannel.WHATSAPP, status.status, "error"
                )
        return results

    async def process_status(self, status: WhatsAppStatus) -> StatusUpdateResult:
        key = self.key_builder.build_status_key(
            NotificationChannel.WHATSAPP, status.id, status.status
        )
        result, deduped = await self.guard.run(key, lambda: self._apply(status))
        if deduped:
            self.metrics.record_status_update(
                NotificationChannel.WHATSAPP, status.status, DUPLICATE
            )
            return result.model_copy(update={"applied": False, "reason": DUPLICATE})
        return result

    async def _apply(self, status: WhatsAppStatus) -> StatusUpdateResult:
        log_status = WHATSAPP_STATUS_MAP.get(status.status)
        if log_status is None:
            logger.warning(
                "whatsapp_status_unknown",
                message_id=status.id,
                provider_status=status.status,
            )
            return self._result(status, UNKNOWN_STATUS)

        changes: Dict[str, Any] = {"provider_status": status.status}
        if status.status == "read":
            changes["read_at"] = status.occurred_at or datetime.now(timezone.utc)
        if log_status == NotificationLogStatus.FAILED and status.error_message:
            changes["error"] = status.error_message

        try:
            entry = await self.log_repository.apply_provider_status(
                status.id, log_status, **changes
            )
        except LogEntryImmutableError as e:
            logger.info(
                "whatsapp_status_out_of_order",
                message_id=status.id,
                provider_status=status.status,
                error=str(e),
            )
            return self._result(status, OUT_OF_ORDER)

        if entry is None:
            logger.warning(
                "whatsapp_status_orphaned",
                message_id=status.id,
                provider_status=status.status,
            )
            return self._result(status, ORPHANED)

        logger.info(
            "whatsapp_status_applied",
            message_id=status.id,
            provider_status=status.status,
            log_entry_id=entry.id,
            log_status=entry.status.value,
        )
        self.metrics.record_status_update(
            NotificationChannel.WHATSAPP, status.status, "applied"
        )
        return StatusUpdateResult(
            message_id=status.id,
            provider_status=status.status,
            applied=True,
            log_entry_id=entry.id,
            log_status=entry.status,
        )

    def _result(self, status: WhatsAppStatus, reason: str) -> StatusUpdateResult:
        self.metrics.record_status_update(NotificationChannel.WHATSAPP, status.status, reason)
        return StatusUpdateResult(
            message_id=status.id,
            provider_status=status.status,
            applied=False,
            reason=reason,
        )


def is_cacheable_status_result(result: StatusUpdateResult) -> bool:
    """Orphaned statuses stay uncached so a redelivery can match the row later."""
    return result.reason != ORPHANED
