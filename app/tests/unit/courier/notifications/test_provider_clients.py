"""Unit tests for the provider clients."""

import json
from unittest.mock import MagicMock

import httpx
import pytest

from courier.configuration.integrations import (
    FcmSettings,
    SmtpSettings,
    TwilioSettings,
    WhatsAppSettings,
)
from courier.notifications.providers import (
    FcmClient,
    InAppInbox,
    InboxItem,
    SmtpClient,
    TwilioSmsClient,
    WhatsAppCloudClient,
)


def _mock_http(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.unit
class TestSmtpClient:
    def test_is_configured_requires_host(self):
        assert SmtpClient(SmtpSettings(SMTP_HOST="")).is_configured is False
        assert SmtpClient(SmtpSettings(SMTP_HOST="smtp.example.com")).is_configured is True

    def test_build_message(self):
        client = SmtpClient(
            SmtpSettings(
                SMTP_HOST="smtp.example.com",
                SMTP_FROM_ADDRESS="noreply@example.com",
                SMTP_FROM_NAME="School",
            )
        )

        message = client.build_message("parent@example.com", "Invoice due", "<p>Hi</p>")

        assert message["To"] == "parent@example.com"
        assert message["Subject"] == "Invoice due"
        assert message["From"] == "School <noreply@example.com>"
        assert message["Message-ID"]
        assert message.get_content_subtype() == "html"


@pytest.mark.unit
class TestTwilioSmsClient:
    def test_is_configured_requires_all_credentials(self):
        assert TwilioSmsClient(TwilioSettings()).is_configured is False
        settings = TwilioSettings(
            TWILIO_ACCOUNT_SID="AC123", TWILIO_AUTH_TOKEN="secret", TWILIO_FROM_NUMBER="+15005550006"
        )
        assert TwilioSmsClient(settings).is_configured is True

    @pytest.mark.asyncio
    async def test_send_returns_sid(self):
        sdk = MagicMock()
        sdk.messages.create.return_value = MagicMock(sid="SM123")
        settings = TwilioSettings(
            TWILIO_ACCOUNT_SID="AC123", TWILIO_AUTH_TOKEN="secret", TWILIO_FROM_NUMBER="+15005550006"
        )

        sid = await TwilioSmsClient(settings, client=sdk).send("+15145550100", "Hi")

        assert sid == "SM123"
        sdk.messages.create.assert_called_once_with(
            to="+15145550100", from_="+15005550006", body="Hi"
        )


@pytest.mark.unit
class TestWhatsAppCloudClient:
    @pytest.fixture
    def settings(self):
        return WhatsAppSettings(
            WHATSAPP_ACCESS_TOKEN="token", WHATSAPP_PHONE_NUMBER_ID="12345"
        )

    def test_messages_url(self, settings):
        client = WhatsAppCloudClient(settings)
        assert client.messages_url.endswith("/v18.0/12345/messages")

    def test_template_body_strips_plus(self):
        body = WhatsAppCloudClient.build_template_body("+15145550100", "invoice_due", "fr", [1, "a"])

        assert body["to"] == "15145550100"
        assert body["template"]["language"] == {"code": "fr"}
        assert body["template"]["components"][0]["parameters"] == [
            {"type": "text", "text": "1"},
            {"type": "text", "text": "a"},
        ]

    @pytest.mark.asyncio
    async def test_send_template_returns_wamid(self, settings):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"messages": [{"id": "wamid.XYZ"}]})

        client = WhatsAppCloudClient(settings, http_client=_mock_http(handler))

        message_id = await client.send_template("+15145550100", "invoice_due", "fr", [])

        assert message_id == "wamid.XYZ"
        assert seen["auth"] == "Bearer token"
        assert seen["body"]["template"]["name"] == "invoice_due"

    @pytest.mark.asyncio
    async def test_error_status_raises(self, settings):
        client = WhatsAppCloudClient(
            settings,
            http_client=_mock_http(lambda request: httpx.Response(500)),
        )

        with pytest.raises(httpx.HTTPStatusError):
            await client.send_template("+15145550100", "invoice_due", "fr", [])


@pytest.mark.unit
class TestFcmClient:
    @pytest.fixture
    def credentials(self):
        creds = MagicMock()
        creds.valid = True
        creds.token = "access-token"
        return creds

    def test_not_configured_without_credentials(self):
        assert FcmClient(FcmSettings()).is_configured is False

    def test_project_id_from_service_account(self):
        settings = FcmSettings(
            FCM_SERVICE_ACCOUNT_JSON=json.dumps(
                {"project_id": "school-app", "private_key": "line1\\nline2"}
            )
        )

        assert settings.project_id == "school-app"
        assert settings.service_account_info["private_key"] == "line1\nline2"

    @pytest.mark.asyncio
    async def test_send_posts_message(self, credentials):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"name": "projects/school-app/messages/0:42"})

        client = FcmClient(
            FcmSettings(FCM_PROJECT_ID="school-app"),
            http_client=_mock_http(handler),
            credentials=credentials,
        )

        message_id = await client.send({"token": "tok"})

        assert client.is_configured is True
        assert message_id == "0:42"
        assert seen["url"].endswith("/projects/school-app/messages:send")
        assert seen["auth"] == "Bearer access-token"
        assert seen["body"] == {"message": {"token": "tok"}}

    @pytest.mark.asyncio
    async def test_expired_credentials_are_refreshed(self, credentials):
        credentials.valid = False
        client = FcmClient(
            FcmSettings(FCM_PROJECT_ID="school-app"),
            http_client=_mock_http(lambda request: httpx.Response(200, json={"name": "x/1"})),
            credentials=credentials,
        )

        await client.send({"token": "tok"})

        credentials.refresh.assert_called_once()


@pytest.mark.unit
class TestInAppInbox:
    @pytest.mark.asyncio
    async def test_create_list_and_mark_read(self):
        inbox = InAppInbox()
        item = await inbox.create(InboxItem(user_id="u1", type="INVOICE_DUE", message="Hi"))
        await inbox.create(InboxItem(user_id="u2", type="INVOICE_DUE", message="Hi"))

        assert [i.id for i in await inbox.list_for_user("u1")] == [item.id]
        assert await inbox.unread_count("u1") == 1

        assert await inbox.mark_read(item.id) is True
        assert await inbox.unread_count("u1") == 0
        assert await inbox.list_for_user("u1", unread_only=True) == []
