"""In-app inbox repository.

Stores inbox items users read inside the product. Real-time delivery to
open sessions happens elsewhere, triggered by the item-created event.
"""

import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class InboxItem(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    type: str
    title: Optional[str] = None
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)
    correlation_id: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    read_at: Optional[datetime] = None


class InAppInbox:
    """Thread-safe in-memory inbox."""

    is_configured = True

    def __init__(self) -> None:
        self._items: Dict[str, InboxItem] = {}
        self._lock = threading.Lock()

    async def create(self, item: InboxItem) -> InboxItem:
        with self._lock:
            self._items[item.id] = item
        return item

    async def list_for_user(
        self, user_id: str, unread_only: bool = False, limit: int = 50
    ) -> List[InboxItem]:
        with self._lock:
            items = [
                i
                for i in self._items.values()
                if i.user_id == user_id and not (unread_only and i.read_at)
            ]
        items.sort(key=lambda i: i.created_at, reverse=True)
        return items[:limit]

    async def mark_read(self, item_id: str) -> bool:
        with self._lock:
            item = self._items.get(item_id)
            if item is None:
                return False
            if item.read_at is None:
                self._items[item_id] = item.model_copy(
                    update={"read_at": datetime.now(timezone.utc)}
                )
            return True

    async def unread_count(self, user_id: str) -> int:
        with self._lock:
            return sum(
                1 for i in self._items.values() if i.user_id == user_id and i.read_at is None
            )
