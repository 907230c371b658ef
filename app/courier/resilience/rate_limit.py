"""Per-channel sliding-window rate limiter.

Limits how many notifications one user receives on one channel within a
window, so a misbehaving producer cannot flood someone's phone. Limits are
keyed by channel value; channels without a configured limit are unlimited.

The limiter fails open: if the check itself breaks, the send is allowed.
"""

import threading
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, Optional, Tuple

from courier.configuration import DeliverySettings
from courier.logging import get_module_logger

logger = get_module_logger()


class SlidingWindowRateLimiter:
    """In-memory sliding-window limiter keyed by (channel, subject).

    Args:
        limits: Allowed sends per window, keyed by channel value
        window_seconds: Window length
        enabled: When False every call is allowed
        clock: Monotonic time source (injectable for tests)
    """

    def __init__(
        self,
        limits: Dict[str, int],
        window_seconds: float = 60,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.limits = dict(limits)
        self.window_seconds = window_seconds
        self.enabled = enabled
        self._clock = clock
        self._hits: Dict[Tuple[str, str], Deque[float]] = {}
        self._last_sweep = clock()
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: DeliverySettings) -> "SlidingWindowRateLimiter":
        return cls(
            limits={
                "email": settings.rate_limit_email,
                "sms": settings.rate_limit_sms,
                "whatsapp": settings.rate_limit_whatsapp,
                "push": settings.rate_limit_push,
                "in_app": settings.rate_limit_in_app,
            },
            window_seconds=settings.rate_limit_window_seconds,
            enabled=settings.rate_limit_enabled,
        )

    def allow(self, channel: Any, subject: str) -> bool:
        """Record a send for (channel, subject) if it fits in the window.

        Returns:
            True if the send may proceed, False if the limit is reached.
        """
        if not self.enabled:
            return True
        channel_value = getattr(channel, "value", channel)
        try:
            return self._check(channel_value, subject)
        except Exception as e:
            logger.warning(
                "rate_limiter_check_failed",
                channel=channel_value,
                error=str(e),
            )
            return True

    def _check(self, channel: str, subject: str) -> bool:
        limit = self.limits.get(channel)
        if limit is None:
            return True

        now = self._clock()
        cutoff = now - self.window_seconds
        key = (channel, subject)
        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(cutoff)
                self._last_sweep = now
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if len(hits) >= limit:
                logger.info(
                    "rate_limit_exceeded",
                    channel=channel,
                    limit=limit,
                    window_seconds=self.window_seconds,
                )
                return False
            hits.append(now)
            return True

    def _sweep(self, cutoff: float) -> None:
        # Hits are appended in time order, so the newest one decides expiry
        stale = [key for key, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for key in stale:
            del self._hits[key]

    @property
    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._hits)

    def remaining(self, channel: Any, subject: str) -> Optional[int]:
        """Sends left in the current window, or None when unlimited."""
        channel_value = getattr(channel, "value", channel)
        limit = self.limits.get(channel_value)
        if limit is None or not self.enabled:
            return None
        cutoff = self._clock() - self.window_seconds
        with self._lock:
            hits = self._hits.get((channel_value, subject), deque())
            used = sum(1 for t in hits if t > cutoff)
        return max(0, limit - used)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
