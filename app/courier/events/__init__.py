"""In-process event bus used to receive domain events and emit delivery events."""

from courier.events.dispatcher import (
    EVENT_HANDLERS,
    clear_handlers,
    dispatch_background,
    dispatch_event,
    get_handlers_for_event,
    register_event_handler,
    shutdown_event_executor,
)
from courier.events.models import IN_APP_CREATED, PUSH_TOKEN_INVALID, Event

__all__ = [
    "Event",
    "EVENT_HANDLERS",
    "IN_APP_CREATED",
    "PUSH_TOKEN_INVALID",
    "clear_handlers",
    "dispatch_background",
    "dispatch_event",
    "get_handlers_for_event",
    "register_event_handler",
    "shutdown_event_executor",
]
