"""Error classifiers for provider exceptions.

Converts provider-specific exceptions (httpx, aiosmtplib, twilio, redis)
into standardized OperationResult objects. Adapters turn these results into
delivery errors, so no SDK exception type escapes an adapter.

Key Functions:
- classify_http_error(): httpx errors (WhatsApp Cloud API, FCM HTTP v1)
- classify_smtp_error(): aiosmtplib errors
- classify_twilio_error(): twilio REST errors
- classify_redis_error(): redis client errors
- classify_google_auth_error(): google-auth token refresh errors (FCM)

Usage:
    from courier.operations import classify_http_error

    try:
        response = await client.post(url, json=body)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        result = classify_http_error(exc)
"""

from typing import Any, Optional

import aiosmtplib
import google.auth.exceptions
import httpx
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError
from twilio.base.exceptions import TwilioRestException

from courier.operations.result import OperationResult
from courier.operations.status import OperationStatus

# Twilio error codes that mean the destination itself is unusable
# https://www.twilio.com/docs/api/errors
TWILIO_PERMANENT_CODES = frozenset({21211, 21408, 21610, 21614, 21612})


def _extract_provider_error_code(response: httpx.Response) -> Optional[str]:
    """Pull a provider error code out of a JSON error body.

    Understands the Google API shape used by FCM
    (``error.details[].errorCode`` / ``error.status``) and the Graph API
    shape used by WhatsApp (``error.code``).
    """
    try:
        body: Any = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if not isinstance(error, dict):
        return None
    for detail in error.get("details") or []:
        if isinstance(detail, dict) and detail.get("errorCode"):
            return str(detail["errorCode"])
    if error.get("status"):
        return str(error["status"])
    if error.get("code") is not None:
        return str(error["code"])
    return None


def classify_http_error(exc: Exception) -> OperationResult:
    """Classify httpx errors into OperationResult.

    Status Code Mapping:
    - 429: Rate limiting → TRANSIENT_ERROR with retry_after
    - 401/403: Credentials rejected → UNAUTHORIZED
    - 404: Not found → NOT_FOUND
    - 5xx: Server error → TRANSIENT_ERROR
    - Other 4xx: Client error → PERMANENT_ERROR

    Timeouts and transport failures are TRANSIENT_ERROR. The provider's own
    error code (FCM ``UNREGISTERED``, Graph API ``131026``...) is preserved
    in ``error_code`` when the body carries one.

    Args:
        exc: Exception raised by httpx

    Returns:
        OperationResult with appropriate status, message, error_code and
        retry_after (if applicable)
    """
    if isinstance(exc, httpx.TimeoutException):
        return OperationResult.transient_error(
            f"Provider request timed out: {type(exc).__name__}",
            error_code="TIMEOUT",
        )

    if not isinstance(exc, httpx.HTTPStatusError):
        # Connection reset, DNS failure, protocol error...
        return OperationResult.transient_error(
            f"Connection error: {type(exc).__name__}: {str(exc)}",
            error_code="CONNECTION_ERROR",
        )

    response = exc.response
    status_code = response.status_code
    provider_code = _extract_provider_error_code(response)

    if status_code == 429:
        retry_after = 60
        header_value = response.headers.get("retry-after")
        if header_value:
            try:
                retry_after = int(header_value)
            except (ValueError, TypeError):
                pass
        return OperationResult.error(
            OperationStatus.TRANSIENT_ERROR,
            "Provider rate limited",
            error_code=provider_code or "RATE_LIMITED",
            retry_after=retry_after,
        )

    if status_code in (401, 403):
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED,
            f"Provider rejected credentials ({status_code})",
            error_code=provider_code or "UNAUTHORIZED",
        )

    if status_code == 404:
        return OperationResult.error(
            OperationStatus.NOT_FOUND,
            "Provider resource not found",
            error_code=provider_code or "NOT_FOUND",
        )

    if 500 <= status_code < 600:
        return OperationResult.transient_error(
            f"Provider server error ({status_code})",
            error_code=provider_code or "SERVER_ERROR",
        )

    return OperationResult.permanent_error(
        f"Provider client error ({status_code}): {response.text[:200]}",
        error_code=provider_code or "HTTP_ERROR",
    )


def classify_smtp_error(exc: Exception) -> OperationResult:
    """Classify aiosmtplib errors into OperationResult.

    Mapping:
    - Connect/timeout/disconnect errors → TRANSIENT_ERROR
    - Authentication errors → UNAUTHORIZED
    - Recipient/sender refused → PERMANENT_ERROR
    - Other response codes: 4xx → TRANSIENT_ERROR, 5xx → PERMANENT_ERROR

    Args:
        exc: Exception raised by aiosmtplib

    Returns:
        OperationResult describing the failure
    """
    if isinstance(
        exc,
        (
            aiosmtplib.SMTPConnectError,
            aiosmtplib.SMTPTimeoutError,
            aiosmtplib.SMTPServerDisconnected,
        ),
    ):
        return OperationResult.transient_error(
            f"SMTP connection error: {type(exc).__name__}: {str(exc)}",
            error_code="SMTP_CONNECTION_ERROR",
        )

    if isinstance(exc, aiosmtplib.SMTPAuthenticationError):
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED,
            "SMTP authentication failed",
            error_code="SMTP_AUTH_FAILED",
        )

    if isinstance(exc, (aiosmtplib.SMTPRecipientsRefused, aiosmtplib.SMTPSenderRefused)):
        return OperationResult.permanent_error(
            f"SMTP refused address: {str(exc)}",
            error_code="SMTP_ADDRESS_REFUSED",
        )

    if isinstance(exc, aiosmtplib.SMTPResponseException):
        if 400 <= exc.code < 500:
            return OperationResult.transient_error(
                f"SMTP temporary failure ({exc.code}): {exc.message}",
                error_code=f"SMTP_{exc.code}",
            )
        return OperationResult.permanent_error(
            f"SMTP permanent failure ({exc.code}): {exc.message}",
            error_code=f"SMTP_{exc.code}",
        )

    # Plain OSError / unknown SMTPException: the socket likely went away
    return OperationResult.transient_error(
        f"SMTP error: {type(exc).__name__}: {str(exc)}",
        error_code="SMTP_ERROR",
    )


def classify_twilio_error(exc: Exception) -> OperationResult:
    """Classify twilio errors into OperationResult.

    TwilioRestException carries both the HTTP status and a Twilio error
    code. Invalid or unsubscribed destinations are permanent; throttling and
    5xx are transient. Anything else that is not a REST error (network
    failures inside the SDK) is transient.

    Args:
        exc: Exception raised by the twilio SDK

    Returns:
        OperationResult describing the failure
    """
    if not isinstance(exc, TwilioRestException):
        return OperationResult.transient_error(
            f"Twilio connection error: {type(exc).__name__}: {str(exc)}",
            error_code="CONNECTION_ERROR",
        )

    code = f"TWILIO_{exc.code}" if exc.code else f"HTTP_{exc.status}"

    if exc.code in TWILIO_PERMANENT_CODES:
        return OperationResult.permanent_error(
            f"Twilio rejected destination: {exc.msg}",
            error_code=code,
        )

    if exc.status == 429 or (exc.status and exc.status >= 500):
        return OperationResult.transient_error(
            f"Twilio unavailable ({exc.status}): {exc.msg}",
            error_code=code,
        )

    if exc.status in (401, 403):
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED,
            "Twilio rejected credentials",
            error_code=code,
        )

    return OperationResult.permanent_error(
        f"Twilio request failed ({exc.status}): {exc.msg}",
        error_code=code,
    )


def classify_redis_error(exc: Exception) -> OperationResult:
    """Classify redis errors into OperationResult.

    Args:
        exc: Exception raised by the redis client

    Returns:
        OperationResult describing the failure
    """
    if isinstance(exc, (RedisConnectionError, RedisTimeoutError)):
        return OperationResult.transient_error(
            f"Redis connection error: {str(exc)}",
            error_code="CONNECTION_ERROR",
        )
    if isinstance(exc, RedisError):
        return OperationResult.permanent_error(
            f"Redis error: {str(exc)}",
            error_code="REDIS_ERROR",
        )
    return OperationResult.transient_error(
        f"Redis client error: {type(exc).__name__}: {str(exc)}",
        error_code="REDIS_CLIENT_ERROR",
    )


def classify_google_auth_error(exc: Exception) -> OperationResult:
    """Classify google-auth errors raised while refreshing an FCM token.

    Transport failures while reaching the token endpoint are transient; a
    refused refresh means the service account itself is broken.
    """
    if isinstance(exc, google.auth.exceptions.TransportError):
        return OperationResult.transient_error(
            f"Token endpoint unreachable: {str(exc)}",
            error_code="AUTH_TRANSPORT_ERROR",
        )
    if isinstance(exc, google.auth.exceptions.RefreshError):
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED,
            f"Service account token refresh refused: {str(exc)}",
            error_code="AUTH_REFRESH_FAILED",
        )
    return OperationResult.permanent_error(
        f"Google auth error: {type(exc).__name__}: {str(exc)}",
        error_code="AUTH_ERROR",
    )
