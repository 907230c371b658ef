"""Per-channel retry policies.

Attempts for a single delivery run strictly one after another inside the
delivery executor; the policy only decides how many there are and how long
to wait between them.
"""

from dataclasses import dataclass
from typing import Dict

from courier.configuration import DeliverySettings

EXPONENTIAL = "exponential"
FIXED = "fixed"


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget and backoff for one channel.

    Attributes:
        max_attempts: Total attempts, including the first one
        base_delay_ms: Delay after the first failed attempt
        backoff: "exponential" (doubling) or "fixed"
        max_delay_ms: Cap applied to every computed delay

    Example:
        policy = RetryPolicy(max_attempts=3, base_delay_ms=1000)
        policy.delay_for(1)  # 1000
        policy.delay_for(2)  # 2000
    """

    max_attempts: int = 3
    base_delay_ms: int = 1000
    backoff: str = EXPONENTIAL
    max_delay_ms: int = 30000

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_ms < 0:
            raise ValueError("base_delay_ms must be >= 0")
        if self.max_delay_ms < self.base_delay_ms:
            raise ValueError("max_delay_ms must be >= base_delay_ms")
        if self.backoff not in (EXPONENTIAL, FIXED):
            raise ValueError(f"backoff must be '{EXPONENTIAL}' or '{FIXED}'")

    def delay_for(self, attempt: int) -> int:
        """Milliseconds to wait after failed attempt number ``attempt`` (1-based)."""
        if attempt < 1:
            raise ValueError("attempt must be at least 1")
        if self.backoff == FIXED:
            return self.base_delay_ms
        return min(self.base_delay_ms * 2 ** (attempt - 1), self.max_delay_ms)


# Keyed by NotificationChannel value
DEFAULT_RETRY_POLICIES: Dict[str, RetryPolicy] = {
    "email": RetryPolicy(max_attempts=3, base_delay_ms=1000),
    "sms": RetryPolicy(max_attempts=2, base_delay_ms=3000),
    "whatsapp": RetryPolicy(max_attempts=2, base_delay_ms=3000),
    "push": RetryPolicy(max_attempts=4, base_delay_ms=1000),
    "in_app": RetryPolicy(max_attempts=3, base_delay_ms=1000, max_delay_ms=10000),
}


def build_retry_policies(settings: DeliverySettings) -> Dict[str, RetryPolicy]:
    """Build the per-channel policies from delivery settings."""
    return {
        "email": RetryPolicy(
            max_attempts=settings.retry_email_max_attempts,
            base_delay_ms=settings.retry_email_base_delay_ms,
            max_delay_ms=max(settings.retry_max_delay_ms, settings.retry_email_base_delay_ms),
        ),
        "sms": RetryPolicy(
            max_attempts=settings.retry_sms_max_attempts,
            base_delay_ms=settings.retry_sms_base_delay_ms,
            max_delay_ms=max(settings.retry_max_delay_ms, settings.retry_sms_base_delay_ms),
        ),
        "whatsapp": RetryPolicy(
            max_attempts=settings.retry_whatsapp_max_attempts,
            base_delay_ms=settings.retry_whatsapp_base_delay_ms,
            max_delay_ms=max(
                settings.retry_max_delay_ms, settings.retry_whatsapp_base_delay_ms
            ),
        ),
        "push": RetryPolicy(
            max_attempts=settings.retry_push_max_attempts,
            base_delay_ms=settings.retry_push_base_delay_ms,
            max_delay_ms=max(settings.retry_max_delay_ms, settings.retry_push_base_delay_ms),
        ),
        # In-app is local; keep its backoff short regardless of the global cap
        "in_app": RetryPolicy(
            max_attempts=settings.retry_in_app_max_attempts,
            base_delay_ms=settings.retry_in_app_base_delay_ms,
            max_delay_ms=max(
                min(settings.retry_max_delay_ms, 10000),
                settings.retry_in_app_base_delay_ms,
            ),
        ),
    }
