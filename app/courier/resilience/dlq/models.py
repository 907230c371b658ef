"""Dead-letter queue models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeadLetterReason(str, Enum):
    """Why a delivery ended up in the dead-letter queue."""

    RETRIES_EXHAUSTED = "retries_exhausted"
    CIRCUIT_OPEN = "circuit_open"


class DeadLetterAttempt(BaseModel):
    """One failed attempt recorded on a dead-letter entry."""

    attempt: int
    error: str
    error_code: Optional[str] = None
    at: datetime = Field(default_factory=_utcnow)


class DeadLetterEntry(BaseModel):
    """A delivery that could not be completed.

    ``payload`` is the full dump of the notification payload so the entry can
    be replayed later without going back to the originating event.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    payload: Dict[str, Any]
    channel: str
    correlation_id: Optional[str] = None
    reason: DeadLetterReason
    attempts: List[DeadLetterAttempt] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    reprocessed_at: Optional[datetime] = None

    @property
    def last_error(self) -> Optional[str]:
        return self.attempts[-1].error if self.attempts else None
