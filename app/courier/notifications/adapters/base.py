"""Channel adapter abstract base class.

All channel implementations (email, SMS, WhatsApp, push, in-app) implement
this interface. An adapter owns exactly one provider client and is the only
place that knows that client's exception types.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar, Union

from courier.logging import get_module_logger
from courier.notifications.errors import (
    MissingNotificationContent,
    ProviderNotConfiguredError,
    error_from_result,
)
from courier.notifications.metrics import NotificationMetrics
from courier.notifications.models import NotificationChannel, NotificationPayload
from courier.notifications.timeouts import TimeoutConfig, with_timeout
from courier.operations import OperationResult

logger = get_module_logger()

T = TypeVar("T")


class SkipReason(str, Enum):
    """Why an adapter deliberately returned without sending."""

    PROVIDER_NOT_CONFIGURED = "provider_not_configured"
    INVALID_PUSH_TOKEN = "invalid_push_token"
    PUSH_TOKEN_UNREGISTERED = "push_token_unregistered"


@dataclass(frozen=True)
class SendReceipt:
    """Provider acknowledgement of an accepted message."""

    message_id: Optional[str] = None


SendResult = Union[SendReceipt, SkipReason, None]


class ChannelAdapter(ABC):
    """Abstract base class for channel adapters.

    ``send`` either returns a SendReceipt (the provider accepted the message;
    None is accepted too when the provider has no message id), returns a
    SkipReason (nothing was sent and retrying would not help; the
    adapter already recorded the failure metric), or raises a
    NotificationError subclass.

    Subclasses set ``provider_errors`` to the client's exception types and
    ``classify_error`` to the matching classifier; ``_call_provider`` then
    applies the channel timeout and converts those exceptions.
    """

    channel: NotificationChannel
    provider_errors: Tuple[Type[BaseException], ...] = ()
    classify_error: Callable[[Exception], OperationResult]

    def __init__(
        self,
        client: Any,
        metrics: NotificationMetrics,
        timeout_config: TimeoutConfig,
    ):
        self.client = client
        self.metrics = metrics
        self.timeout_config = timeout_config

    @abstractmethod
    async def send(self, payload: NotificationPayload) -> SendResult:
        """Deliver ``payload`` through the provider.

        Raises:
            NotificationValidationError: Payload is incomplete or malformed
            RetryableDeliveryError: Timeout or transient provider failure
            ProviderPermanentError: Provider rejected the message
        """

    @property
    def is_configured(self) -> bool:
        return bool(getattr(self.client, "is_configured", False))

    def ensure_configured(self) -> None:
        if not self.is_configured:
            raise ProviderNotConfiguredError(
                f"{self.channel.value} provider is not configured",
                channel=self.channel,
            )

    def health_check(self) -> OperationResult:
        """Report whether the provider can be used."""
        try:
            self.ensure_configured()
        except ProviderNotConfiguredError as e:
            return OperationResult.permanent_error(e.message, error_code=e.error_code)
        return OperationResult.success(message=f"{self.channel.value} provider configured")

    def _require(self, value: Any, field: str) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise MissingNotificationContent(self.channel, field)
        return value

    def _skip_not_configured(self, payload: NotificationPayload) -> SkipReason:
        logger.warning(
            f"{self.channel.value}_provider_not_configured",
            notification_type=payload.type,
            user_id=payload.user_id,
        )
        self.metrics.record_failed(self.channel, payload.type)
        return SkipReason.PROVIDER_NOT_CONFIGURED

    async def _call_provider(self, awaitable: Awaitable[T]) -> T:
        """Await a provider call under the channel timeout.

        Raises:
            NotificationTimeoutError: The call exceeded the channel timeout
            ProviderTransientError / ProviderPermanentError: The provider failed
        """
        try:
            return await with_timeout(awaitable, self.channel, self.timeout_config)
        except self.provider_errors as exc:
            result = self.classify_error(exc)
            logger.warning(
                "provider_call_failed",
                channel=self.channel.value,
                error=result.message,
                error_code=result.error_code,
                status=result.status.value,
            )
            raise error_from_result(self.channel, result) from exc
