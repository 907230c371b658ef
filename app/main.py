import asyncio
import signal

from courier.events import shutdown_event_executor
from courier.logging import configure_logging, get_module_logger
from courier.services import get_notification_service, get_settings

from jobs import scheduled_tasks

logger = get_module_logger()


def list_configs():
    settings = get_settings()
    logger.info(
        "configuration_loaded",
        prefix=settings.PREFIX,
        is_production=settings.is_production,
        idempotency_backend=settings.idempotency.IDEMPOTENCY_BACKEND,
        circuit_breaker_enabled=settings.resilience.circuit_breaker_enabled,
        max_concurrency=settings.delivery.max_concurrency,
        event_types=settings.delivery.subscribed_event_types,
    )


async def main():
    """Run the delivery worker until SIGINT or SIGTERM."""
    configure_logging()
    logger.info("application_startup")
    list_configs()

    settings = get_settings()
    service = get_notification_service()
    service.bind_loop(asyncio.get_running_loop())
    service.subscribe(settings.delivery.subscribed_event_types)

    stop_run_continuously = None
    # Run scheduled tasks if not in dev
    if settings.is_production:
        scheduled_tasks.init()
        stop_run_continuously = scheduled_tasks.run_continuously()

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    await stop.wait()

    logger.info("application_shutdown", pending_dispatches=service.pipeline.pending_tasks)
    if stop_run_continuously is not None:
        stop_run_continuously.set()
    shutdown_event_executor(wait=True)
    await service.drain()


if __name__ == "__main__":
    asyncio.run(main())
