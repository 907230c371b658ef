"""Twilio SMS client.

The twilio SDK is synchronous; calls run in a worker thread so a slow
Twilio response never blocks the event loop.
"""

import asyncio
from typing import Optional

from twilio.rest import Client

from courier.configuration.integrations import TwilioSettings


class TwilioSmsClient:
    """Sends SMS through the Twilio Messages API."""

    def __init__(self, settings: TwilioSettings, client: Optional[Client] = None):
        self._settings = settings
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(
            self._settings.TWILIO_ACCOUNT_SID
            and self._settings.TWILIO_AUTH_TOKEN
            and self._settings.TWILIO_FROM_NUMBER
        )

    def _get_client(self) -> Client:
        if self._client is None:
            self._client = Client(
                self._settings.TWILIO_ACCOUNT_SID, self._settings.TWILIO_AUTH_TOKEN
            )
        return self._client

    async def send(self, to: str, body: str) -> str:
        """Send one SMS.

        Returns:
            The Twilio message SID

        Raises:
            TwilioRestException: If Twilio rejects the request
        """
        client = self._get_client()
        message = await asyncio.to_thread(
            client.messages.create,
            to=to,
            from_=self._settings.TWILIO_FROM_NUMBER,
            body=body,
        )
        return message.sid
