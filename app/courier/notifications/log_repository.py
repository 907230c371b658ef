"""Notification log repository.

One row per delivery attempt series: created PENDING when the executor
starts and updated once to a terminal status. Terminal rows are immutable
except for provider status callbacks on SENT rows (see
``PROVIDER_STATUS_TRANSITIONS``); only the retention purge removes them.
"""

import threading
from datetime import datetime, timezone
from typing import Any, Dict, Generic, Iterable, List, Optional, Protocol, TypeVar

from pydantic import BaseModel

from courier.logging import get_module_logger
from courier.notifications.models import (
    NotificationChannel,
    NotificationLogEntry,
    NotificationLogStatus,
)

logger = get_module_logger()

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return (self.total + self.page_size - 1) // self.page_size

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


class LogEntryImmutableError(Exception):
    """Raised when updating a log entry that already reached a terminal status."""


# Status callbacks may only move a row forward
PROVIDER_STATUS_TRANSITIONS = {
    NotificationLogStatus.SENT: frozenset(
        {
            NotificationLogStatus.SENT,
            NotificationLogStatus.DELIVERED,
            NotificationLogStatus.FAILED,
        }
    ),
    NotificationLogStatus.DELIVERED: frozenset({NotificationLogStatus.DELIVERED}),
}


class NotificationLogRepository(Protocol):
    """Persistence interface for notification log rows."""

    async def append(self, entry: NotificationLogEntry) -> NotificationLogEntry: ...

    async def update(self, entry_id: str, **changes: Any) -> NotificationLogEntry: ...

    async def get(self, entry_id: str) -> Optional[NotificationLogEntry]: ...

    async def apply_provider_status(
        self, message_id: str, status: NotificationLogStatus, **changes: Any
    ) -> Optional[NotificationLogEntry]: ...

    async def query(
        self,
        user_id: Optional[str] = None,
        channel: Optional[NotificationChannel] = None,
        status: Optional[NotificationLogStatus] = None,
        type: Optional[str] = None,
        correlation_id: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[NotificationLogEntry]: ...

    async def delete_terminal_older_than(
        self,
        cutoff: datetime,
        statuses: Iterable[NotificationLogStatus],
        limit: int,
    ) -> int: ...


class InMemoryNotificationLogRepository:
    """Thread-safe in-memory log repository."""

    def __init__(self) -> None:
        self._entries: Dict[str, NotificationLogEntry] = {}
        self._lock = threading.Lock()

    async def append(self, entry: NotificationLogEntry) -> NotificationLogEntry:
        with self._lock:
            self._entries[entry.id] = entry
        return entry

    async def update(self, entry_id: str, **changes: Any) -> NotificationLogEntry:
        """Apply ``changes`` to a non-terminal entry.

        Raises:
            KeyError: If the entry does not exist
            LogEntryImmutableError: If the entry is already terminal
        """
        with self._lock:
            entry = self._entries.get(entry_id)
            if entry is None:
                raise KeyError(entry_id)
            if entry.is_terminal:
                raise LogEntryImmutableError(
                    f"Log entry {entry_id} is {entry.status.value} and cannot change"
                )
            changes["updated_at"] = datetime.now(timezone.utc)
            updated = entry.model_copy(update=changes)
            self._entries[entry_id] = updated
            return updated

    async def get(self, entry_id: str) -> Optional[NotificationLogEntry]:
        with self._lock:
            return self._entries.get(entry_id)

    async def apply_provider_status(
        self, message_id: str, status: NotificationLogStatus, **changes: Any
    ) -> Optional[NotificationLogEntry]:
        """Apply a provider status callback to the row holding ``message_id``.

        Returns:
            The updated entry, or None when no row has this message id.

        Raises:
            LogEntryImmutableError: If the row's status cannot move to ``status``
        """
        with self._lock:
            entry = next(
                (e for e in self._entries.values() if e.message_id == message_id), None
            )
            if entry is None:
                return None
            if status not in PROVIDER_STATUS_TRANSITIONS.get(entry.status, frozenset()):
                raise LogEntryImmutableError(
                    f"Log entry {entry.id} is {entry.status.value} and cannot become "
                    f"{status.value}"
                )
            changes["status"] = status
            changes["updated_at"] = datetime.now(timezone.utc)
            updated = entry.model_copy(update=changes)
            self._entries[entry.id] = updated
            return updated

    async def query(
        self,
        user_id: Optional[str] = None,
        channel: Optional[NotificationChannel] = None,
        status: Optional[NotificationLogStatus] = None,
        type: Optional[str] = None,
        correlation_id: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[NotificationLogEntry]:
        """Filtered, newest-first page of log entries. ``page`` is 1-based."""
        if page < 1:
            raise ValueError("page must be at least 1")
        if page_size < 1:
            raise ValueError("page_size must be at least 1")

        with self._lock:
            entries = list(self._entries.values())

        def matches(e: NotificationLogEntry) -> bool:
            return (
                (user_id is None or e.user_id == user_id)
                and (channel is None or e.channel == channel)
                and (status is None or e.status == status)
                and (type is None or e.type == type)
                and (correlation_id is None or e.correlation_id == correlation_id)
                and (since is None or e.created_at >= since)
                and (until is None or e.created_at < until)
            )

        filtered = sorted(
            (e for e in entries if matches(e)), key=lambda e: e.created_at, reverse=True
        )
        start = (page - 1) * page_size
        return Page[NotificationLogEntry](
            items=filtered[start : start + page_size],
            total=len(filtered),
            page=page,
            page_size=page_size,
        )

    async def delete_terminal_older_than(
        self,
        cutoff: datetime,
        statuses: Iterable[NotificationLogStatus],
        limit: int,
    ) -> int:
        """Delete up to ``limit`` rows in ``statuses`` created before ``cutoff``."""
        wanted = set(statuses)
        with self._lock:
            old = sorted(
                (
                    e
                    for e in self._entries.values()
                    if e.status in wanted and e.created_at < cutoff
                ),
                key=lambda e: e.created_at,
            )[:limit]
            for e in old:
                del self._entries[e.id]
        return len(old)
