"""Structured logging infrastructure.

Public API:
    - configure_logging(): Initialize logging for the application
    - get_module_logger(): Get a logger for the calling module
    - bind_request_context(): Context manager for correlation-scoped logging
    - get_correlation_id(): Get current correlation ID from context
    - clear_request_context(): Clear all bound context

Example:
    from courier.logging import get_module_logger, bind_request_context

    logger = get_module_logger()

    with bind_request_context(correlation_id="evt-123"):
        logger.info("notification_event_received")
"""

from courier.logging.setup import configure_logging, get_module_logger
from courier.logging.context import (
    bind_request_context,
    clear_request_context,
    get_correlation_id,
)
from courier.logging.formatters import (
    SENSITIVE_PATTERNS,
    mask_sensitive_data,
    truncate_large_values,
)

__all__ = [
    "configure_logging",
    "get_module_logger",
    "bind_request_context",
    "get_correlation_id",
    "clear_request_context",
    "mask_sensitive_data",
    "truncate_large_values",
    "SENSITIVE_PATTERNS",
]
