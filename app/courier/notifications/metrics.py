"""Delivery metrics.

Prometheus counters and a latency histogram per channel and notification
type. Each recorder owns its CollectorRegistry, so several recorders (one
per test, for example) never collide on metric names.
"""

import threading
from collections import defaultdict
from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

from courier.notifications.models import NotificationChannel

LATENCY_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0)


class NotificationMetrics:
    """Records delivery outcomes.

    ``get_stats()`` returns a plain snapshot for health endpoints;
    ``render()`` returns the Prometheus text exposition.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()

        self.sent_total = Counter(
            "notifications_sent_total",
            "Notifications accepted by a provider",
            ["channel", "type"],
            registry=self.registry,
        )
        self.failed_total = Counter(
            "notifications_failed_total",
            "Notifications that failed terminally",
            ["channel", "type"],
            registry=self.registry,
        )
        self.skipped_total = Counter(
            "notifications_skipped_total",
            "Notifications skipped before dispatch",
            ["channel", "reason"],
            registry=self.registry,
        )
        self.deduplicated_total = Counter(
            "notifications_deduplicated_total",
            "Deliveries answered from the idempotency store",
            ["channel"],
            registry=self.registry,
        )
        self.dead_lettered_total = Counter(
            "notifications_dead_lettered_total",
            "Deliveries moved to the dead-letter queue",
            ["channel", "reason"],
            registry=self.registry,
        )
        self.status_updates_total = Counter(
            "notification_status_updates_total",
            "Provider status callbacks by outcome",
            ["channel", "status", "result"],
            registry=self.registry,
        )
        self.latency_seconds = Histogram(
            "notification_delivery_latency_seconds",
            "Provider latency of successful deliveries",
            ["channel", "type"],
            buckets=LATENCY_BUCKETS,
            registry=self.registry,
        )

        self._lock = threading.Lock()
        self._stats: Dict[str, Dict[str, float]] = defaultdict(
            lambda: {"sent": 0, "failed": 0, "latency_ms_total": 0, "latency_count": 0}
        )

    def record_sent(self, channel: NotificationChannel, notification_type: str) -> None:
        self.sent_total.labels(channel=channel.value, type=notification_type).inc()
        with self._lock:
            self._stats[channel.value]["sent"] += 1

    def record_failed(self, channel: NotificationChannel, notification_type: str) -> None:
        self.failed_total.labels(channel=channel.value, type=notification_type).inc()
        with self._lock:
            self._stats[channel.value]["failed"] += 1

    def record_latency(
        self, channel: NotificationChannel, notification_type: str, latency_ms: float
    ) -> None:
        self.latency_seconds.labels(channel=channel.value, type=notification_type).observe(
            latency_ms / 1000
        )
        with self._lock:
            self._stats[channel.value]["latency_ms_total"] += latency_ms
            self._stats[channel.value]["latency_count"] += 1

    def record_skipped(self, channel: NotificationChannel, reason: str) -> None:
        self.skipped_total.labels(channel=channel.value, reason=reason).inc()

    def record_deduplicated(self, channel: NotificationChannel) -> None:
        self.deduplicated_total.labels(channel=channel.value).inc()

    def record_dead_lettered(self, channel: NotificationChannel, reason: str) -> None:
        self.dead_lettered_total.labels(channel=channel.value, reason=reason).inc()

    def record_status_update(
        self, channel: NotificationChannel, provider_status: str, result: str
    ) -> None:
        self.status_updates_total.labels(
            channel=channel.value, status=provider_status, result=result
        ).inc()

    def get_stats(self) -> Dict[str, Any]:
        """Per-channel sent/failed counts and average latency."""
        with self._lock:
            snapshot = {}
            for channel, stats in self._stats.items():
                count = stats["latency_count"]
                snapshot[channel] = {
                    "sent": int(stats["sent"]),
                    "failed": int(stats["failed"]),
                    "avg_latency_ms": (stats["latency_ms_total"] / count) if count else None,
                }
            return snapshot

    def render(self) -> bytes:
        return generate_latest(self.registry)
