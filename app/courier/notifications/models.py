"""Notification delivery models.

Channel-agnostic models shared by the pipeline, the adapters and the
repositories. Producers describe *who* should hear about *what*; the
delivery engine decides *how* per channel.

Uses Pydantic BaseModel for:
- Runtime input validation of inbound events
- JSON round-tripping of cached outcomes and dead letters
"""

from collections import Counter
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NotificationChannel(str, Enum):
    """Delivery channels."""

    EMAIL = "email"
    SMS = "sms"
    WHATSAPP = "whatsapp"
    PUSH = "push"
    IN_APP = "in_app"


class NotificationGroup(str, Enum):
    """Preference groups. Users opt in or out per channel and group."""

    BILLING = "BILLING"
    ATTENDANCE = "ATTENDANCE"
    ACADEMIC = "ACADEMIC"
    ACCOUNT = "ACCOUNT"
    SECURITY = "SECURITY"
    SYSTEM = "SYSTEM"
    GENERAL = "GENERAL"


class NotificationPayload(BaseModel):
    """One message for one recipient on one channel.

    ``recipient`` is the channel address: an email, an E.164 phone number,
    a device token or a user id for in-app.

    Attributes:
        recipient: Channel address
        channel: Delivery channel
        type: Notification type (e.g. "INVOICE_DUE")
        group: Preference group
        data: Channel content (html, content, message, title, sound,
            deep_link, ttl, template_name, template_language,
            template_parameters...)
        locale: Recipient locale
        user_id: Recipient user id
        profile_type: Optional profile scope for preferences
        profile_id: Optional profile scope for preferences
        correlation_id: Originating event correlation id
        subject: Email subject
        title: Push/in-app title
    """

    recipient: str
    channel: NotificationChannel
    type: str
    group: NotificationGroup = NotificationGroup.GENERAL
    data: Dict[str, Any] = Field(default_factory=dict)
    locale: str = "en"
    user_id: Optional[str] = None
    profile_type: Optional[str] = None
    profile_id: Optional[str] = None
    correlation_id: Optional[str] = None
    subject: Optional[str] = None
    title: Optional[str] = None

    def body(self) -> Optional[str]:
        """Message body: first non-empty of content, html, message."""
        for key in ("content", "html", "message"):
            value = self.data.get(key)
            if isinstance(value, str) and value.strip():
                return value
        return None

    def resolved_title(self) -> Optional[str]:
        title = self.title or self.data.get("title")
        if isinstance(title, str) and title.strip():
            return title
        return None


class DeliveryStatus(str, Enum):
    """Terminal outcome of one delivery (all attempts included)."""

    SENT = "sent"
    FAILED = "failed"
    DEAD_LETTERED = "dead_lettered"


TERMINAL_DELIVERY_STATUSES = frozenset(DeliveryStatus)


class DeliveryOutcome(BaseModel):
    """Result of running a payload through the delivery executor.

    This is the record cached by the deduplication store.
    """

    status: DeliveryStatus
    attempts: int = 0
    error: Optional[str] = None
    error_code: Optional[str] = None
    message_id: Optional[str] = None
    latency_ms: Optional[int] = None
    dead_letter_id: Optional[str] = None
    recorded_at: datetime = Field(default_factory=utcnow)

    @property
    def is_success(self) -> bool:
        return self.status == DeliveryStatus.SENT

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_DELIVERY_STATUSES


class DispatchStatus(str, Enum):
    """Final state of one (recipient, channel) pair within an event."""

    SENT = "sent"
    FAILED = "failed"
    DEAD_LETTERED = "dead_lettered"
    SKIPPED = "skipped"
    DEDUPED = "deduped"


class DeliveryResult(BaseModel):
    """Per-pair entry of a dispatch report."""

    channel: NotificationChannel
    user_id: Optional[str] = None
    recipient: Optional[str] = None
    status: DispatchStatus
    reason: Optional[str] = None
    outcome: Optional[DeliveryOutcome] = None
    log_entry_id: Optional[str] = None


class DispatchReport(BaseModel):
    """Everything that happened to one notification event."""

    correlation_id: str
    event_type: str
    results: List[DeliveryResult] = Field(default_factory=list)

    def counts(self) -> Dict[str, int]:
        """Number of pairs per DispatchStatus value."""
        return dict(Counter(result.status.value for result in self.results))

    def by_status(self, status: DispatchStatus) -> List[DeliveryResult]:
        return [r for r in self.results if r.status == status]


class NotificationLogStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"
    RETRYING = "RETRYING"
    SKIPPED = "SKIPPED"


TERMINAL_LOG_STATUSES = frozenset(
    {
        NotificationLogStatus.SENT,
        NotificationLogStatus.DELIVERED,
        NotificationLogStatus.FAILED,
        NotificationLogStatus.SKIPPED,
    }
)


class NotificationLogEntry(BaseModel):
    """Audit row for one delivery attempt series.

    Created as PENDING when delivery starts and updated once to a terminal
    status. Terminal rows are immutable apart from retention purges and
    provider status callbacks, which may move a SENT row to DELIVERED or
    FAILED (matched on ``message_id``).
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    channel: NotificationChannel
    type: str
    group: NotificationGroup = NotificationGroup.GENERAL
    recipient: str
    user_id: Optional[str] = None
    status: NotificationLogStatus = NotificationLogStatus.PENDING
    attempts: int = 0
    latency_ms: Optional[int] = None
    correlation_id: Optional[str] = None
    template: Optional[str] = None
    content_snapshot: Optional[str] = None
    error: Optional[str] = None
    message_id: Optional[str] = None
    provider_status: Optional[str] = None
    read_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_LOG_STATUSES


class NotificationPreference(BaseModel):
    """Opt-in row for (user, channel, group), optionally scoped to a profile.

    A profile-scoped row overrides the user-level row. Rows are upserted,
    never deleted.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    channel: NotificationChannel
    group: NotificationGroup
    profile_type: Optional[str] = None
    profile_id: Optional[str] = None
    enabled: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class RecipientInfo(BaseModel):
    """Addresses known for one recipient of an event."""

    user_id: str
    email: Optional[str] = None
    phone: Optional[str] = None
    device_tokens: List[str] = Field(default_factory=list)
    profile_type: Optional[str] = None
    profile_id: Optional[str] = None
    locale: Optional[str] = None


class NotificationEvent(BaseModel):
    """Domain event to notify about.

    Attributes:
        type: Notification type (e.g. "INVOICE_DUE")
        group: Preference group
        recipients: Who should be notified
        data: Content shared by every channel
        correlation_id: Event id; generated when missing
        channels: Optional explicit channel list (raw strings, validated later)
        locale: Default locale for recipients without one

    Example:
        event = NotificationEvent(
            type="INVOICE_DUE",
            group=NotificationGroup.BILLING,
            recipients=[RecipientInfo(user_id="u1", email="parent@example.com")],
            data={"subject": "Invoice due", "content": "Your invoice is due"},
        )
    """

    type: str
    group: NotificationGroup = NotificationGroup.GENERAL
    recipients: List[RecipientInfo] = Field(default_factory=list)
    data: Dict[str, Any] = Field(default_factory=dict)
    correlation_id: str = Field(default_factory=lambda: str(uuid4()))
    channels: Optional[List[str]] = None
    locale: str = "en"

    @field_validator("correlation_id", mode="before")
    @classmethod
    def default_correlation_id(cls, v: Any) -> str:
        """Generate a correlation id when the producer sent none."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return str(uuid4())
        return str(v)
