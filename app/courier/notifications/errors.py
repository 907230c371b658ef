"""Delivery exception taxonomy.

Adapters convert provider SDK errors into these types, so nothing outside
an adapter needs to know which SDK raised what. The delivery executor only
distinguishes three families:

- NotificationValidationError / ProviderPermanentError: fail now, no retry
- RetryableDeliveryError: back off and try again
- everything else: unexpected, treated as permanent
"""

from typing import Any, Optional

from courier.operations import OperationResult


def _channel_value(channel: Any) -> Optional[str]:
    if channel is None:
        return None
    return getattr(channel, "value", str(channel))


class NotificationError(Exception):
    """Base class for delivery errors."""

    default_code = "NOTIFICATION_ERROR"

    def __init__(
        self,
        message: str,
        channel: Any = None,
        error_code: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.channel = _channel_value(channel)
        self.error_code = error_code or self.default_code


class NotificationValidationError(NotificationError):
    """The payload cannot be sent as-is. Raised before any provider call."""

    default_code = "VALIDATION_ERROR"


class MissingNotificationContent(NotificationValidationError):
    default_code = "MISSING_CONTENT"

    def __init__(self, channel: Any, field: str):
        self.field = field
        super().__init__(
            f"Missing {field} for {_channel_value(channel)} notification",
            channel=channel,
        )


class InvalidRecipientError(NotificationValidationError):
    default_code = "INVALID_RECIPIENT"

    def __init__(self, channel: Any, reason: str):
        self.reason = reason
        super().__init__(
            f"Invalid {_channel_value(channel)} recipient: {reason}",
            channel=channel,
        )


class ProviderNotConfiguredError(NotificationError):
    """Provider credentials are missing. Reported by health checks."""

    default_code = "NOT_CONFIGURED"


class RetryableDeliveryError(NotificationError):
    """A failure another attempt may fix. Counted by circuit breakers."""

    default_code = "RETRYABLE"
    reason = "provider_error"


class NotificationTimeoutError(RetryableDeliveryError):
    default_code = "TIMEOUT"
    reason = "timeout"

    def __init__(self, channel: Any, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(
            f"{_channel_value(channel)} send timed out after {timeout_ms}ms",
            channel=channel,
        )


class ProviderTransientError(RetryableDeliveryError):
    default_code = "PROVIDER_ERROR"

    def __init__(
        self,
        message: str,
        channel: Any = None,
        error_code: Optional[str] = None,
        retry_after: Optional[int] = None,
    ):
        super().__init__(message, channel=channel, error_code=error_code)
        self.retry_after = retry_after


class ProviderPermanentError(NotificationError):
    """The provider rejected the message for good."""

    default_code = "PROVIDER_REJECTED"


class MalformedEventError(NotificationError):
    """The inbound event cannot be dispatched at all."""

    default_code = "MALFORMED_EVENT"


class RateLimitExceededError(NotificationError):
    """The recipient already had their share of this channel for the window."""

    default_code = "RATE_LIMITED"


def error_from_result(channel: Any, result: OperationResult) -> NotificationError:
    """Convert a classified provider failure into a delivery error."""
    if result.is_transient:
        return ProviderTransientError(
            result.message,
            channel=channel,
            error_code=result.error_code,
            retry_after=result.retry_after,
        )
    return ProviderPermanentError(
        result.message, channel=channel, error_code=result.error_code
    )
