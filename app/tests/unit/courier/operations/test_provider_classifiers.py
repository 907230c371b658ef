"""Unit tests for courier.operations.classifiers."""

import aiosmtplib
import google.auth.exceptions
import httpx
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError
from twilio.base.exceptions import TwilioRestException

from courier.operations import (
    OperationResult,
    OperationStatus,
    classify_google_auth_error,
    classify_http_error,
    classify_redis_error,
    classify_smtp_error,
    classify_twilio_error,
)

FCM_URL = "https://fcm.googleapis.com/v1/projects/courier/messages:send"


def http_status_error(status_code, json=None, headers=None):
    request = httpx.Request("POST", FCM_URL)
    response = httpx.Response(status_code, json=json, headers=headers, request=request)
    return httpx.HTTPStatusError("error", request=request, response=response)


@pytest.mark.unit
class TestOperationResult:
    def test_success(self):
        result = OperationResult.success(data={"id": "m-1"})

        assert result.is_success
        assert not result.is_transient
        assert result.data == {"id": "m-1"}

    def test_transient_error(self):
        result = OperationResult.transient_error("busy", error_code="503", retry_after=5)

        assert result.is_transient
        assert result.retry_after == 5

    def test_permanent_error(self):
        result = OperationResult.permanent_error("nope", error_code="400")

        assert result.status == OperationStatus.PERMANENT_ERROR
        assert not result.is_transient


@pytest.mark.unit
class TestClassifyHttpError:
    def test_timeout_is_transient(self):
        result = classify_http_error(httpx.ReadTimeout("slow"))

        assert result.is_transient
        assert result.error_code == "TIMEOUT"

    def test_connection_error_is_transient(self):
        result = classify_http_error(httpx.ConnectError("refused"))

        assert result.is_transient
        assert result.error_code == "CONNECTION_ERROR"

    def test_rate_limited_uses_retry_after_header(self):
        result = classify_http_error(http_status_error(429, headers={"retry-after": "12"}))

        assert result.is_transient
        assert result.retry_after == 12
        assert result.error_code == "RATE_LIMITED"

    def test_rate_limited_defaults_retry_after(self):
        result = classify_http_error(http_status_error(429))

        assert result.retry_after == 60

    def test_server_error_is_transient(self):
        assert classify_http_error(http_status_error(503)).is_transient

    def test_fcm_unregistered_code_preserved(self):
        body = {
            "error": {
                "code": 404,
                "status": "NOT_FOUND",
                "details": [{"errorCode": "UNREGISTERED"}],
            }
        }

        result = classify_http_error(http_status_error(404, json=body))

        assert result.status == OperationStatus.NOT_FOUND
        assert result.error_code == "UNREGISTERED"

    def test_graph_api_code_preserved(self):
        body = {"error": {"message": "Invalid parameter", "code": 100}}

        result = classify_http_error(http_status_error(400, json=body))

        assert result.status == OperationStatus.PERMANENT_ERROR
        assert result.error_code == "100"

    @pytest.mark.parametrize("status_code", [401, 403])
    def test_credentials_rejected(self, status_code):
        result = classify_http_error(http_status_error(status_code))

        assert result.status == OperationStatus.UNAUTHORIZED


@pytest.mark.unit
class TestClassifySmtpError:
    def test_connection_errors_are_transient(self):
        result = classify_smtp_error(aiosmtplib.SMTPConnectError("refused"))

        assert result.is_transient
        assert result.error_code == "SMTP_CONNECTION_ERROR"

    def test_authentication_failure(self):
        result = classify_smtp_error(aiosmtplib.SMTPAuthenticationError(535, "bad creds"))

        assert result.status == OperationStatus.UNAUTHORIZED

    def test_refused_recipient_is_permanent(self):
        result = classify_smtp_error(aiosmtplib.SMTPRecipientsRefused([]))

        assert result.status == OperationStatus.PERMANENT_ERROR
        assert result.error_code == "SMTP_ADDRESS_REFUSED"

    @pytest.mark.parametrize(
        "code, transient", [(421, True), (451, True), (550, False), (554, False)]
    )
    def test_response_codes(self, code, transient):
        result = classify_smtp_error(aiosmtplib.SMTPResponseException(code, "reply"))

        assert result.is_transient is transient
        assert result.error_code == f"SMTP_{code}"


@pytest.mark.unit
class TestClassifyTwilioError:
    def test_invalid_destination_is_permanent(self):
        exc = TwilioRestException(400, "/Messages", msg="Invalid To", code=21211)

        result = classify_twilio_error(exc)

        assert result.status == OperationStatus.PERMANENT_ERROR
        assert result.error_code == "TWILIO_21211"

    @pytest.mark.parametrize("status", [429, 500, 503])
    def test_throttling_and_server_errors_are_transient(self, status):
        exc = TwilioRestException(status, "/Messages", msg="busy")

        result = classify_twilio_error(exc)

        assert result.is_transient
        assert result.error_code == f"HTTP_{status}"

    def test_credentials_rejected(self):
        exc = TwilioRestException(401, "/Messages", msg="auth", code=20003)

        assert classify_twilio_error(exc).status == OperationStatus.UNAUTHORIZED

    def test_network_error_is_transient(self):
        assert classify_twilio_error(OSError("reset")).is_transient


@pytest.mark.unit
class TestClassifyRedisAndAuthErrors:
    def test_redis_connection_is_transient(self):
        assert classify_redis_error(RedisConnectionError("down")).is_transient

    def test_redis_response_error_is_permanent(self):
        result = classify_redis_error(ResponseError("WRONGTYPE"))

        assert result.status == OperationStatus.PERMANENT_ERROR

    def test_token_transport_error_is_transient(self):
        result = classify_google_auth_error(google.auth.exceptions.TransportError("dns"))

        assert result.is_transient

    def test_refresh_refused(self):
        result = classify_google_auth_error(google.auth.exceptions.RefreshError("invalid_grant"))

        assert result.status == OperationStatus.UNAUTHORIZED
