"""Correlation context binding for structured logging.

Binds notification-scoped context (correlation ID, notification type,
channel) to structlog context vars. Because asyncio tasks copy the current
context when created, context bound by the pipeline before it spawns a
per-channel task is visible in every log line that task emits.

Usage:
    from courier.logging import bind_request_context

    with bind_request_context(correlation_id="evt-123", notification_type="INVOICE_DUE"):
        logger.info("processing_event")
"""

import uuid
from contextlib import contextmanager
from typing import Any, Generator, Optional

import structlog


@contextmanager
def bind_request_context(
    correlation_id: Optional[str] = None,
    user_id: Optional[str] = None,
    **extra_context: Any,
) -> Generator[None, None, None]:
    """Bind context to all logs within the context manager.

    Args:
        correlation_id: Unique event identifier. Auto-generated if not provided.
        user_id: Recipient user ID (if known).
        **extra_context: Additional key-value pairs to include in logs.

    Yields:
        None - context is bound to structlog's context vars.
    """
    context: dict[str, Any] = {}
    context["correlation_id"] = correlation_id or str(uuid.uuid4())

    if user_id is not None:
        context["user_id"] = user_id

    context.update(extra_context)

    structlog.contextvars.bind_contextvars(**context)
    try:
        yield
    finally:
        structlog.contextvars.unbind_contextvars(*context.keys())


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID from the logging context.

    Returns:
        The correlation ID if set, None otherwise.
    """
    ctx = structlog.contextvars.get_contextvars()
    return ctx.get("correlation_id")


def clear_request_context() -> None:
    """Clear all bound context from the logging context."""
    structlog.contextvars.clear_contextvars()
