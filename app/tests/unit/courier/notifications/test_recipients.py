"""Unit tests for recipient validation and normalization."""

import pytest

from courier.notifications import InvalidRecipientError, NotificationChannel
from courier.notifications.recipients import (
    is_valid_e164,
    is_valid_email,
    looks_like_push_token,
    normalize_phone,
    validate_recipient,
)
from tests.factories.notifications import PUSH_TOKEN


@pytest.mark.unit
class TestNormalizePhone:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("+15145550100", "+15145550100"),
            ("+1 (514) 555-0100", "+15145550100"),
            ("0033612345678", "+33612345678"),
            ("5145550100", "+15145550100"),
        ],
    )
    def test_normalizes(self, raw, expected):
        assert normalize_phone(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "0612345678", "12345", "phone"])
    def test_cannot_normalize(self, raw):
        assert normalize_phone(raw) is None


@pytest.mark.unit
class TestValidators:
    def test_email(self):
        assert is_valid_email("parent@example.com")
        assert not is_valid_email("parent@")
        assert not is_valid_email(None)

    def test_e164(self):
        assert is_valid_e164("+15145550100")
        assert not is_valid_e164("15145550100")
        assert not is_valid_e164("+0123")

    def test_push_token_heuristic(self):
        assert looks_like_push_token(PUSH_TOKEN)
        assert not looks_like_push_token("x" * 79)
        assert not looks_like_push_token("a" * 90 + "@example.com")
        assert not looks_like_push_token(None)

    def test_validate_recipient_by_channel(self):
        validate_recipient(NotificationChannel.EMAIL, "parent@example.com")
        validate_recipient(NotificationChannel.SMS, "+15145550100")
        validate_recipient(NotificationChannel.IN_APP, "user-1")

        with pytest.raises(InvalidRecipientError):
            validate_recipient(NotificationChannel.EMAIL, "+15145550100")
        with pytest.raises(InvalidRecipientError):
            validate_recipient(NotificationChannel.WHATSAPP, "parent@example.com")
        with pytest.raises(InvalidRecipientError):
            validate_recipient(NotificationChannel.SMS, "   ")
