"""Event models for the in-process event bus.

Domain events arrive here from the rest of the platform (an invoice fell
due, a lesson was rescheduled...) and the delivery engine emits its own
events back (an FCM token went stale, an inbox item was created).
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

# Events emitted by the delivery engine
PUSH_TOKEN_INVALID = "notification.push.token_invalid"
IN_APP_CREATED = "notification.in_app.created"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Event:
    """Immutable record of something that happened.

    ``metadata`` carries the event-specific body. For notification events
    it holds ``group``, ``recipients``, ``data`` and optionally ``channels``
    and ``locale``.
    """

    event_type: str
    """The type of event (e.g., 'INVOICE_DUE' or 'notification.push.token_invalid')."""

    timestamp: datetime = field(default_factory=_utcnow)

    correlation_id: str = field(default_factory=lambda: str(uuid4()))
    """Identifier shared by every delivery that originates from this event."""

    user_id: Optional[str] = None
    """User who triggered the event, if any."""

    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the event with an ISO format timestamp."""
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        """Deserialize an event from a dictionary.

        Raises:
            ValueError: If required fields are missing or invalid.
        """
        try:
            raw_timestamp = data.get("timestamp")
            if isinstance(raw_timestamp, str):
                timestamp = datetime.fromisoformat(raw_timestamp)
            elif isinstance(raw_timestamp, datetime):
                timestamp = raw_timestamp
            else:
                timestamp = _utcnow()

            return cls(
                event_type=data["event_type"],
                timestamp=timestamp,
                correlation_id=str(data.get("correlation_id") or uuid4()),
                user_id=data.get("user_id"),
                metadata=data.get("metadata") or {},
            )
        except (KeyError, ValueError) as e:
            raise ValueError(f"Invalid event data: {e}") from e

    def __hash__(self) -> int:
        return hash((self.correlation_id, self.timestamp))
