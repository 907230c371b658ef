"""In-process event dispatcher.

Handlers register against an event type with a decorator and are called
synchronously by ``dispatch_event``. ``dispatch_background`` hands the same
work to a small thread pool for fire-and-forget emission.

A failing handler never prevents the remaining handlers from running.
"""

import atexit
from concurrent.futures import ThreadPoolExecutor
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

from courier.events.models import Event
from courier.logging import get_module_logger

logger = get_module_logger()

# event_type -> handlers, in registration order
EVENT_HANDLERS: Dict[str, List[Callable]] = {}

_EXECUTOR: Optional[ThreadPoolExecutor] = None
_executor_lock = Lock()
_executor_shutdown = False


def register_event_handler(event_type: str):
    """Decorator registering ``handler_func`` for ``event_type``.

    Can also be called directly, e.g.
    ``register_event_handler("INVOICE_DUE")(service.handle_event)``.
    """

    def decorator(handler_func: Callable) -> Callable:
        EVENT_HANDLERS.setdefault(event_type, []).append(handler_func)
        logger.debug(
            "registered_event_handler",
            handler=getattr(handler_func, "__name__", "unknown"),
            event_type=event_type,
            total_handlers=len(EVENT_HANDLERS[event_type]),
        )
        return handler_func

    return decorator


def dispatch_event(event: Event) -> List[Any]:
    """Dispatch ``event`` synchronously to every registered handler.

    Returns:
        Return values of the handlers that completed.
    """
    results = []
    handlers = list(EVENT_HANDLERS.get(event.event_type, []))

    logger.debug(
        "dispatching_event",
        event_type=event.event_type,
        handler_count=len(handlers),
        correlation_id=event.correlation_id,
    )

    for handler in handlers:
        try:
            results.append(handler(event))
        except Exception as e:
            logger.error(
                "event_handler_failed",
                handler=getattr(handler, "__name__", "unknown"),
                event_type=event.event_type,
                error=str(e),
                correlation_id=event.correlation_id,
            )

    return results


def _background_worker(evt: Event) -> None:
    try:
        dispatch_event(evt)
    except Exception as e:
        logger.exception(
            "background_event_dispatch_failed",
            event_type=evt.event_type,
            error=str(e),
            correlation_id=evt.correlation_id,
        )


def _get_or_create_executor(max_workers: int = 4) -> Optional[ThreadPoolExecutor]:
    """Lazily create the executor. Returns None once shut down."""
    global _EXECUTOR
    with _executor_lock:
        if _executor_shutdown:
            return None
        if _EXECUTOR is None:
            _EXECUTOR = ThreadPoolExecutor(
                max_workers=max_workers, thread_name_prefix="courier-events"
            )
        return _EXECUTOR


def shutdown_event_executor(wait: bool = True) -> None:
    """Shut down the background executor. Safe to call more than once."""
    global _EXECUTOR, _executor_shutdown
    with _executor_lock:
        _executor_shutdown = True
        if _EXECUTOR is None:
            return
        try:
            _EXECUTOR.shutdown(wait=wait)
        finally:
            _EXECUTOR = None


@atexit.register
def _atexit_shutdown():
    shutdown_event_executor(wait=False)


def dispatch_background(event: Event) -> None:
    """Fire-and-forget dispatch on the internal thread pool."""
    executor = _get_or_create_executor()
    if executor is None:
        logger.error(
            "event_executor_unavailable",
            event_type=event.event_type,
            correlation_id=event.correlation_id,
        )
        return
    executor.submit(_background_worker, event)


def get_handlers_for_event(event_type: str) -> List[Callable]:
    return EVENT_HANDLERS.get(event_type, [])


def clear_handlers() -> None:
    """Clear all registered handlers. Intended for tests."""
    EVENT_HANDLERS.clear()
