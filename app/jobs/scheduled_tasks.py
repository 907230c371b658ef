import asyncio
import threading
import time

import schedule

from courier.logging import get_module_logger
from courier.services import get_dead_letter_store, get_log_repository, get_settings
from jobs.dlq_cleanup import DeadLetterCleanupJob

logger = get_module_logger()


def safe_run(job):
    def wrapper(*args, **kwargs):
        try:
            job(*args, **kwargs)
        except Exception as e:
            logger.error(
                "scheduled_job_failed",
                job=getattr(job, "__name__", "unknown"),
                error=str(e),
            )

    wrapper.__name__ = getattr(job, "__name__", "wrapper")
    return wrapper


def build_cleanup_job() -> DeadLetterCleanupJob:
    dlq_settings = get_settings().dlq
    return DeadLetterCleanupJob(
        store=get_dead_letter_store(),
        log_repository=get_log_repository(),
        retention_days=dlq_settings.retention_days,
        batch_size=dlq_settings.cleanup_batch_size,
        health_max_entries=dlq_settings.health_max_entries,
    )


def init(cleanup_job=None):
    logger.info("scheduled_tasks_initialized")

    job = cleanup_job or build_cleanup_job()
    schedule.every().day.at(get_settings().dlq.cleanup_time).do(
        safe_run(dead_letter_cleanup), job=job
    )
    schedule.every(5).minutes.do(safe_run(scheduler_heartbeat))
    return job


def scheduler_heartbeat():
    logger.info("scheduler_heartbeat", at=time.ctime())


def dead_letter_cleanup(job: DeadLetterCleanupJob):
    # Runs on the scheduler thread, which has no event loop of its own
    return asyncio.run(job.run())


def run_continuously(interval=1):
    """Continuously run, while executing pending jobs at each
    elapsed time interval.
    @return cease_continuous_run: threading. Event which can
    be set to cease continuous run. Missed jobs are not caught up:
    a job due every minute with an interval of one hour runs once
    per interval, not sixty times.
    """
    cease_continuous_run = threading.Event()

    class ScheduleThread(threading.Thread):
        def run(self):
            while not cease_continuous_run.is_set():
                schedule.run_pending()
                time.sleep(interval)

    continuous_thread = ScheduleThread(name="courier-scheduler", daemon=True)
    continuous_thread.start()
    return cease_continuous_run
