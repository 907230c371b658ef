"""Push channel adapter (FCM HTTP v1)."""

import json
from typing import Any, Dict
from uuid import uuid4

import google.auth.exceptions
import httpx

from courier.events import PUSH_TOKEN_INVALID, Event, dispatch_event
from courier.logging import get_module_logger
from courier.notifications.adapters.base import (
    ChannelAdapter,
    SendReceipt,
    SendResult,
    SkipReason,
)
from courier.notifications.errors import NotificationError
from courier.notifications.models import NotificationChannel, NotificationPayload
from courier.notifications.recipients import looks_like_push_token
from courier.operations import (
    OperationResult,
    classify_google_auth_error,
    classify_http_error,
)

logger = get_module_logger()

# FCM v1 error codes and their legacy Admin SDK names
INVALID_TOKEN_CODES = frozenset(
    {
        "UNREGISTERED",
        "INVALID_ARGUMENT",
        "messaging/registration-token-not-registered",
        "messaging/invalid-argument",
    }
)


def _classify_push_error(exc: Exception) -> OperationResult:
    if isinstance(exc, google.auth.exceptions.GoogleAuthError):
        return classify_google_auth_error(exc)
    return classify_http_error(exc)


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def build_fcm_message(payload: NotificationPayload) -> Dict[str, Any]:
    """Build the FCM v1 message for one device token.

    - every data value is sent as a string (FCM requirement)
    - ``sound`` goes to the Android notification and to APNS ``aps.sound``
    - ``click_action``/``deep_link`` sets the Android click action
    - ``ttl`` (seconds) becomes the Android ``ttl``
    """
    data = payload.data
    message: Dict[str, Any] = {
        "token": payload.recipient.strip(),
        "notification": {
            "title": payload.resolved_title(),
            "body": data.get("message", ""),
        },
    }

    string_data = {k: _stringify(v) for k, v in data.items() if v is not None}
    if string_data:
        message["data"] = string_data

    sound = data.get("sound") if isinstance(data.get("sound"), str) else None
    click_action = (
        data.get("click_action")
        or data.get("deep_link")
        or data.get("clickAction")
        or data.get("deepLink")
    )

    android: Dict[str, Any] = {}
    if click_action or sound:
        android["priority"] = "high"
        android_notification: Dict[str, Any] = {}
        if click_action:
            android_notification["click_action"] = _stringify(click_action)
        if sound:
            android_notification["sound"] = sound
        android["notification"] = android_notification

    ttl = data.get("ttl")
    if isinstance(ttl, (int, float)) and not isinstance(ttl, bool) and ttl > 0:
        android["ttl"] = f"{int(ttl)}s"

    if android:
        message["android"] = android
    if sound:
        message["apns"] = {"payload": {"aps": {"sound": sound}}}

    return message


class PushAdapter(ChannelAdapter):
    """Sends one push notification to one device token.

    Values that are obviously not FCM tokens (emails, phone numbers) are
    skipped without calling FCM. Tokens FCM reports as unregistered or
    invalid are not retried; a ``notification.push.token_invalid`` event is
    emitted so the token registry can drop them.
    """

    channel = NotificationChannel.PUSH
    provider_errors = (httpx.HTTPError, google.auth.exceptions.GoogleAuthError)
    classify_error = staticmethod(_classify_push_error)

    async def send(self, payload: NotificationPayload) -> SendResult:
        token = self._require(payload.recipient, "recipient (device token)")
        self._require(payload.resolved_title(), "title")
        self._require(payload.data.get("message"), "data.message")

        if not looks_like_push_token(token):
            logger.warning(
                "push_recipient_not_a_device_token",
                notification_type=payload.type,
                user_id=payload.user_id,
            )
            self.metrics.record_failed(self.channel, payload.type)
            return SkipReason.INVALID_PUSH_TOKEN

        if not self.client.is_configured:
            return self._skip_not_configured(payload)

        try:
            message_id = await self._call_provider(
                self.client.send(build_fcm_message(payload))
            )
        except NotificationError as e:
            if e.error_code not in INVALID_TOKEN_CODES:
                raise
            self.metrics.record_failed(self.channel, payload.type)
            self._emit_token_invalid(payload, token)
            return SkipReason.PUSH_TOKEN_UNREGISTERED

        logger.info(
            "push_sent",
            notification_type=payload.type,
            user_id=payload.user_id,
            message_id=message_id,
        )
        return SendReceipt(message_id=message_id)

    def _emit_token_invalid(self, payload: NotificationPayload, token: str) -> None:
        if not payload.user_id:
            logger.warning("push_token_invalid_without_user", notification_type=payload.type)
            return
        logger.warning(
            "push_token_invalid",
            notification_type=payload.type,
            user_id=payload.user_id,
            token_prefix=token[:20],
        )
        dispatch_event(
            Event(
                event_type=PUSH_TOKEN_INVALID,
                correlation_id=payload.correlation_id or str(uuid4()),
                user_id=payload.user_id,
                metadata={"token": token, "user_id": payload.user_id},
            )
        )
