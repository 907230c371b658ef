"""Outcome store abstract base class and in-memory implementation."""

import time
from abc import ABC, abstractmethod
from threading import Lock
from typing import Any, Callable, Dict, Optional, Tuple

from pydantic import BaseModel

from courier.logging import get_module_logger

logger = get_module_logger()


class OutcomeStore(ABC):
    """Abstract base class for delivery outcome stores.

    Stores the terminal outcome of a delivery under its idempotency key so
    a replayed event observes the earlier result instead of sending again.
    Implementations must treat expired entries as missing.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[BaseModel]:
        """Get the cached outcome for ``key``.

        Returns:
            Cached outcome or None if not found/expired.
        """

    @abstractmethod
    async def set(self, key: str, outcome: BaseModel, ttl_seconds: int) -> None:
        """Cache ``outcome`` under ``key`` for ``ttl_seconds``."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove all cached outcomes (for testing)."""

    @abstractmethod
    def get_stats(self) -> Dict[str, Any]:
        """Get store statistics."""


class InMemoryOutcomeStore(OutcomeStore):
    """Process-local outcome store with monotonic-clock expiry.

    Only safe for single-instance deployments; use the Redis store when
    several workers consume the same events.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries: Dict[str, Tuple[float, BaseModel]] = {}
        self._lock = Lock()
        self._clock = clock
        self._hits = 0
        self._misses = 0

    async def get(self, key: str) -> Optional[BaseModel]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            expires_at, outcome = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                self._misses += 1
                return None
            self._hits += 1
            return outcome

    async def set(self, key: str, outcome: BaseModel, ttl_seconds: int) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + ttl_seconds, outcome)
            self._evict_expired()

    def _evict_expired(self) -> None:
        now = self._clock()
        expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for k in expired:
            del self._entries[k]

    async def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "backend": "memory",
                "entries": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
            }
