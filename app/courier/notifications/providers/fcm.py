"""Firebase Cloud Messaging HTTP v1 client.

Uses google-auth service-account credentials for OAuth2 access tokens and
httpx for the send call. Invalid credentials disable the client instead of
failing startup.
"""

import asyncio
from typing import Any, Dict, Optional

import google.auth.transport.requests
import httpx
from google.oauth2 import service_account

from courier.configuration.integrations import FcmSettings
from courier.logging import get_module_logger

logger = get_module_logger()

FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"
FCM_API_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"


class FcmClient:
    """Sends one message per device token."""

    def __init__(
        self,
        settings: FcmSettings,
        http_client: Optional[httpx.AsyncClient] = None,
        credentials: Optional[Any] = None,
    ):
        self._project_id = settings.project_id
        self._http_client = http_client
        self._credentials = credentials
        if self._credentials is None:
            self._credentials = self._load_credentials(settings)

    @staticmethod
    def _load_credentials(settings: FcmSettings) -> Optional[Any]:
        info = settings.service_account_info
        if info is None:
            if settings.FCM_SERVICE_ACCOUNT_JSON:
                logger.error("fcm_service_account_json_invalid")
            return None
        try:
            return service_account.Credentials.from_service_account_info(
                info, scopes=[FCM_SCOPE]
            )
        except (ValueError, KeyError) as e:
            logger.error("fcm_credentials_invalid", error=str(e))
            return None

    @property
    def is_configured(self) -> bool:
        return self._credentials is not None and bool(self._project_id)

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient()
        return self._http_client

    async def _access_token(self) -> str:
        """Return a valid access token, refreshing it in a worker thread.

        Raises:
            google.auth.exceptions.GoogleAuthError: If the refresh fails
        """
        if not self._credentials.valid:
            await asyncio.to_thread(
                self._credentials.refresh, google.auth.transport.requests.Request()
            )
        return self._credentials.token

    async def send(self, message: Dict[str, Any]) -> Optional[str]:
        """Send a message (must include ``token``).

        Returns:
            The FCM message id

        Raises:
            httpx.HTTPError: On transport failure or non-2xx response
            google.auth.exceptions.GoogleAuthError: If no token can be obtained
        """
        token = await self._access_token()
        response = await self._get_http_client().post(
            FCM_API_URL.format(project_id=self._project_id),
            json={"message": message},
            headers={"Authorization": f"Bearer {token}"},
        )
        response.raise_for_status()
        name = response.json().get("name", "")
        return name.split("/")[-1] or None

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
