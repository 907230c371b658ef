"""Idempotency key builder for delivery deduplication."""

import hashlib
from typing import Any


class IdempotencyKeyBuilder:
    """Build deterministic deduplication keys for a single delivery.

    One key identifies one (event, notification type, channel, recipient)
    combination. The recipient is hashed so raw email addresses and phone
    numbers never appear in the store.

    Example:
        >>> builder = IdempotencyKeyBuilder()
        >>> builder.build("evt-1", "INVOICE_DUE", "email", "a@example.com")
        'notification:idempotency:evt-1:INVOICE_DUE:email:2bd806c97f0e00af'
    """

    NAMESPACE = "notification:idempotency"

    def __init__(self, prefix: str = ""):
        """Initialize key builder.

        Args:
            prefix: Environment prefix prepended to every key (e.g. "dev-")
        """
        self.prefix = prefix

    @staticmethod
    def hash_recipient(recipient: str) -> str:
        return hashlib.sha256(recipient.encode()).hexdigest()[:16]

    def build(
        self,
        correlation_id: str,
        notification_type: str,
        channel: Any,
        recipient: str,
    ) -> str:
        """Build the deduplication key.

        Args:
            correlation_id: Correlation ID of the originating event
            notification_type: Notification type (e.g. "INVOICE_DUE")
            channel: NotificationChannel or its string value
            recipient: Channel address (email, E.164 phone, device token, user id)

        Returns:
            Key string
        """
        channel_value = getattr(channel, "value", channel)
        return (
            f"{self.prefix}{self.NAMESPACE}:{correlation_id}:"
            f"{notification_type}:{channel_value}:{self.hash_recipient(recipient)}"
        )

    def build_status_key(self, channel: Any, message_id: str, status: str) -> str:
        """Key for one provider status callback (message id, status)."""
        channel_value = getattr(channel, "value", channel)
        return f"{self.prefix}{self.NAMESPACE}:status:{channel_value}:{message_id}:{status}"
