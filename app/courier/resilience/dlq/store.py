"""Dead-letter storage.

The protocol-based design allows for multiple storage backends. The
in-memory store is suitable for single-instance deployments and tests.
"""

import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol

from courier.logging import get_module_logger
from courier.resilience.dlq.models import DeadLetterEntry

logger = get_module_logger()


class DeadLetterStore(Protocol):
    """Storage interface for dead-letter entries.

    Methods:
        add: Persist an entry and return its ID
        get: Fetch a single entry
        list_entries: Page through entries, newest first
        list_older_than: IDs of entries created before ``cutoff``, oldest first
        delete_many: Delete entries by ID, returning how many were removed
        mark_reprocessed: Stamp an entry as replayed
        count: Number of stored entries
        oldest_created_at: Creation time of the oldest entry
    """

    def add(self, entry: DeadLetterEntry) -> str: ...

    def get(self, entry_id: str) -> Optional[DeadLetterEntry]: ...

    def list_entries(self, limit: int = 100, offset: int = 0) -> List[DeadLetterEntry]: ...

    def list_older_than(self, cutoff: datetime, limit: int) -> List[str]: ...

    def delete_many(self, entry_ids: List[str]) -> int: ...

    def mark_reprocessed(self, entry_id: str) -> bool: ...

    def count(self) -> int: ...

    def oldest_created_at(self) -> Optional[datetime]: ...


class InMemoryDeadLetterStore:
    """Thread-safe in-memory dead-letter store.

    Every method takes the lock for one short operation only, so a cleanup
    job deleting in batches never blocks writers for the whole purge.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, DeadLetterEntry] = {}
        self._lock = threading.Lock()

    def add(self, entry: DeadLetterEntry) -> str:
        with self._lock:
            self._entries[entry.id] = entry
        logger.warning(
            "dead_letter_entry_added",
            entry_id=entry.id,
            channel=entry.channel,
            reason=entry.reason.value,
            attempts=len(entry.attempts),
            correlation_id=entry.correlation_id,
        )
        return entry.id

    def get(self, entry_id: str) -> Optional[DeadLetterEntry]:
        with self._lock:
            return self._entries.get(entry_id)

    def list_entries(self, limit: int = 100, offset: int = 0) -> List[DeadLetterEntry]:
        with self._lock:
            entries = sorted(
                self._entries.values(), key=lambda e: e.created_at, reverse=True
            )
        return entries[offset : offset + limit]

    def list_older_than(self, cutoff: datetime, limit: int) -> List[str]:
        with self._lock:
            old = [e for e in self._entries.values() if e.created_at < cutoff]
        old.sort(key=lambda e: e.created_at)
        return [e.id for e in old[:limit]]

    def delete_many(self, entry_ids: List[str]) -> int:
        deleted = 0
        with self._lock:
            for entry_id in entry_ids:
                if self._entries.pop(entry_id, None) is not None:
                    deleted += 1
        return deleted

    def mark_reprocessed(self, entry_id: str) -> bool:
        with self._lock:
            entry = self._entries.get(entry_id)
            if entry is None:
                return False
            self._entries[entry_id] = entry.model_copy(
                update={"reprocessed_at": datetime.now(timezone.utc)}
            )
            return True

    def count(self) -> int:
        with self._lock:
            return len(self._entries)

    def oldest_created_at(self) -> Optional[datetime]:
        with self._lock:
            if not self._entries:
                return None
            return min(e.created_at for e in self._entries.values())
