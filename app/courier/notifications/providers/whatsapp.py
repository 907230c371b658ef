"""Meta WhatsApp Cloud API client.

Only template messages are sent: business-initiated conversations must
start from an approved template.
"""

from typing import Any, Dict, List, Optional

import httpx

from courier.configuration.integrations import WhatsAppSettings


class WhatsAppCloudClient:
    """Sends template messages through the Graph API."""

    def __init__(
        self,
        settings: WhatsAppSettings,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings
        self._http_client = http_client

    @property
    def is_configured(self) -> bool:
        return bool(
            self._settings.WHATSAPP_ACCESS_TOKEN and self._settings.WHATSAPP_PHONE_NUMBER_ID
        )

    @property
    def messages_url(self) -> str:
        base = self._settings.WHATSAPP_API_BASE_URL.rstrip("/")
        return (
            f"{base}/{self._settings.WHATSAPP_API_VERSION}/"
            f"{self._settings.WHATSAPP_PHONE_NUMBER_ID}/messages"
        )

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient()
        return self._http_client

    @staticmethod
    def build_template_body(
        to: str,
        template_name: str,
        language: str,
        parameters: List[Any],
    ) -> Dict[str, Any]:
        components = []
        if parameters:
            components.append(
                {
                    "type": "body",
                    "parameters": [{"type": "text", "text": str(p)} for p in parameters],
                }
            )
        return {
            "messaging_product": "whatsapp",
            # Graph API expects the number without the leading +
            "to": to.lstrip("+"),
            "type": "template",
            "template": {
                "name": template_name,
                "language": {"code": language},
                "components": components,
            },
        }

    async def send_template(
        self,
        to: str,
        template_name: str,
        language: str,
        parameters: List[Any],
    ) -> Optional[str]:
        """Send a template message.

        Returns:
            The WhatsApp message id (``wamid...``), if the API returned one

        Raises:
            httpx.HTTPError: On transport failure or non-2xx response
        """
        response = await self._get_http_client().post(
            self.messages_url,
            json=self.build_template_body(to, template_name, language, parameters),
            headers={"Authorization": f"Bearer {self._settings.WHATSAPP_ACCESS_TOKEN}"},
        )
        response.raise_for_status()
        messages = response.json().get("messages") or []
        return messages[0].get("id") if messages else None

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
