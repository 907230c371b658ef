"""Recipient address validation and normalization.

Runs before any provider call so a malformed address fails fast as a
validation error instead of burning retries against the provider.
"""

import re
from typing import Optional

from courier.notifications.errors import InvalidRecipientError
from courier.notifications.models import NotificationChannel

EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)
E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")
_PHONE_NOISE = re.compile(r"[\s\-()]")

MIN_PUSH_TOKEN_LENGTH = 80


def is_valid_email(email: Optional[str]) -> bool:
    if not email or not isinstance(email, str):
        return False
    return bool(EMAIL_PATTERN.match(email.strip()))


def is_valid_e164(phone: Optional[str]) -> bool:
    if not phone or not isinstance(phone, str):
        return False
    return bool(E164_PATTERN.match(phone.strip()))


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """Normalize a phone number to E.164.

    - whitespace, dashes and parentheses are stripped
    - a leading ``00`` becomes ``+``
    - local numbers starting with ``0`` cannot be normalized (no country code)
    - ten bare digits are assumed to be North American (``+1``)

    Returns:
        The E.164 number, or None if it cannot be normalized.
    """
    if not phone or not isinstance(phone, str):
        return None

    normalized = _PHONE_NOISE.sub("", phone)
    if is_valid_e164(normalized):
        return normalized

    if normalized.startswith("00"):
        normalized = "+" + normalized[2:]
        return normalized if is_valid_e164(normalized) else None

    if normalized.startswith("0"):
        return None

    if not normalized.startswith("+") and re.fullmatch(r"\d{10}", normalized):
        normalized = "+1" + normalized
        if is_valid_e164(normalized):
            return normalized

    return None


def looks_like_push_token(token: Optional[str]) -> bool:
    """Cheap plausibility check for FCM registration tokens.

    Catches emails and phone numbers that were stored in the token column;
    real tokens are long and never contain ``@``.
    """
    if not token or not isinstance(token, str):
        return False
    stripped = token.strip()
    return len(stripped) >= MIN_PUSH_TOKEN_LENGTH and "@" not in stripped


def validate_recipient(channel: NotificationChannel, recipient: str) -> None:
    """Check that ``recipient`` has the shape ``channel`` needs.

    Push tokens are not checked here; the push adapter skips implausible
    tokens instead of failing them.

    Raises:
        InvalidRecipientError: If the address does not match the channel.
    """
    if not recipient or not recipient.strip():
        raise InvalidRecipientError(channel, "recipient is empty")

    if channel == NotificationChannel.EMAIL and not is_valid_email(recipient):
        raise InvalidRecipientError(channel, "not a valid email address")

    if channel in (NotificationChannel.SMS, NotificationChannel.WHATSAPP) and not is_valid_e164(
        recipient
    ):
        raise InvalidRecipientError(channel, "phone number is not in E.164 format")
