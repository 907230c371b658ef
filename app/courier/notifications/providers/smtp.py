"""SMTP client built on aiosmtplib."""

from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import Optional

import aiosmtplib

from courier.configuration.integrations import SmtpSettings
from courier.logging import get_module_logger

logger = get_module_logger()


class SmtpClient:
    """Sends HTML email through the configured SMTP relay.

    A new connection is opened per message; relays drop idle connections
    and email volume does not justify pooling.
    """

    def __init__(self, settings: SmtpSettings):
        self._settings = settings

    @property
    def is_configured(self) -> bool:
        return bool(self._settings.SMTP_HOST)

    def build_message(self, to: str, subject: str, html: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr(
            (self._settings.SMTP_FROM_NAME, self._settings.SMTP_FROM_ADDRESS)
        )
        message["To"] = to
        message["Subject"] = subject
        message["Message-ID"] = make_msgid()
        message.set_content(html, subtype="html")
        return message

    async def send(self, to: str, subject: str, html: str) -> Optional[str]:
        """Send one message.

        Returns:
            The Message-ID header of the sent message

        Raises:
            aiosmtplib.SMTPException: On any SMTP failure
        """
        message = self.build_message(to, subject, html)
        await aiosmtplib.send(
            message,
            hostname=self._settings.SMTP_HOST,
            port=self._settings.SMTP_PORT,
            username=self._settings.SMTP_USERNAME,
            password=self._settings.SMTP_PASSWORD,
            use_tls=self._settings.SMTP_USE_TLS,
        )
        return message["Message-ID"]
