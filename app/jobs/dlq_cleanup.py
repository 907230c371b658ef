"""Dead-letter retention cleanup.

Purges dead-letter entries and FAILED notification log rows older than the
retention window. Deletion happens in fixed-size batches so writers are
never blocked for the length of a whole purge.
"""

import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from courier.logging import get_module_logger
from courier.notifications import NotificationLogRepository, NotificationLogStatus
from courier.resilience import DeadLetterStore

logger = get_module_logger()

SLOW_RUN_SECONDS = 60


class DeadLetterCleanupJob:
    """Batched retention purge for the dead-letter queue.

    Args:
        store: Dead-letter store to purge
        log_repository: Notification log; FAILED rows past retention are purged too
        retention_days: Age after which entries are deleted
        batch_size: Entries deleted per batch
        health_max_entries: Entry count at which the queue reports unhealthy
        stale_after_hours: Hours without a run after which the job reports unhealthy
    """

    def __init__(
        self,
        store: DeadLetterStore,
        log_repository: Optional[NotificationLogRepository] = None,
        retention_days: int = 90,
        batch_size: int = 500,
        health_max_entries: int = 10000,
        stale_after_hours: int = 25,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.store = store
        self.log_repository = log_repository
        self.retention_days = retention_days
        self.batch_size = batch_size
        self.health_max_entries = health_max_entries
        self.stale_after_hours = stale_after_hours
        self.last_run_at: Optional[datetime] = None
        self.last_run_stats: Optional[Dict[str, int]] = None

    def _cutoff(self) -> datetime:
        return datetime.now(timezone.utc) - timedelta(days=self.retention_days)

    async def run(self) -> Dict[str, int]:
        """Delete everything older than the retention window.

        Returns:
            Dict with ``deleted``, ``log_entries_deleted``, ``batches`` and
            ``duration_ms``.
        """
        started = time.monotonic()
        cutoff = self._cutoff()
        logger.info(
            "dead_letter_cleanup_started",
            cutoff=cutoff.isoformat(),
            batch_size=self.batch_size,
        )

        deleted = 0
        batches = 0
        while True:
            ids = self.store.list_older_than(cutoff, self.batch_size)
            if not ids:
                break
            deleted += self.store.delete_many(ids)
            batches += 1
            if len(ids) < self.batch_size:
                break

        log_entries_deleted = 0
        if self.log_repository is not None:
            while True:
                removed = await self.log_repository.delete_terminal_older_than(
                    cutoff, [NotificationLogStatus.FAILED], self.batch_size
                )
                log_entries_deleted += removed
                if removed < self.batch_size:
                    break

        duration_ms = int((time.monotonic() - started) * 1000)
        self.last_run_at = datetime.now(timezone.utc)
        self.last_run_stats = {
            "deleted": deleted,
            "log_entries_deleted": log_entries_deleted,
            "batches": batches,
            "duration_ms": duration_ms,
        }

        if duration_ms > SLOW_RUN_SECONDS * 1000:
            logger.warning("dead_letter_cleanup_slow", **self.last_run_stats)
        logger.info("dead_letter_cleanup_completed", **self.last_run_stats)
        return self.last_run_stats

    def get_retention_stats(self) -> Dict[str, Any]:
        """Current queue size and how much of it is already past retention."""
        cutoff = self._cutoff()
        oldest = self.store.oldest_created_at()
        # Only counts up to one batch; enough to tell whether a purge is due
        expired = len(self.store.list_older_than(cutoff, self.batch_size))
        return {
            "total_entries": self.store.count(),
            "expired_entries": expired,
            "oldest_entry_at": oldest.isoformat() if oldest else None,
            "retention_days": self.retention_days,
            "cutoff": cutoff.isoformat(),
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_run": self.last_run_stats,
        }

    def get_health_status(self) -> Dict[str, Any]:
        """Unhealthy when the queue is too large or cleanup has not run recently."""
        issues = []
        total = self.store.count()
        if total >= self.health_max_entries:
            issues.append(f"dead-letter queue holds {total} entries")

        if self.last_run_at is None:
            issues.append("cleanup has never run")
        else:
            age = datetime.now(timezone.utc) - self.last_run_at
            if age > timedelta(hours=self.stale_after_hours):
                issues.append(
                    f"last cleanup ran {int(age.total_seconds() // 3600)} hours ago"
                )

        return {
            "healthy": not issues,
            "issues": issues,
            "total_entries": total,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
        }
