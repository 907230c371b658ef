"""Firebase Cloud Messaging integration settings."""

import json
from typing import Any, Dict, Optional

from pydantic import Field

from courier.configuration.base import IntegrationSettings


class FcmSettings(IntegrationSettings):
    """FCM HTTP v1 configuration for the push channel.

    The service account is supplied as a JSON string. Private keys pasted
    into env files usually carry literal ``\\n`` sequences, which are
    converted back to newlines before use.

    Environment Variables:
        FCM_PROJECT_ID: Firebase project ID (falls back to the service account)
        FCM_SERVICE_ACCOUNT_JSON: Service account credentials as JSON
    """

    FCM_PROJECT_ID: str | None = Field(default=None, alias="FCM_PROJECT_ID")
    FCM_SERVICE_ACCOUNT_JSON: str | None = Field(
        default=None, alias="FCM_SERVICE_ACCOUNT_JSON"
    )

    @property
    def service_account_info(self) -> Optional[Dict[str, Any]]:
        """Parsed service account dict, or None when absent or malformed."""
        if not self.FCM_SERVICE_ACCOUNT_JSON:
            return None
        try:
            info = json.loads(self.FCM_SERVICE_ACCOUNT_JSON)
        except ValueError:
            return None
        if not isinstance(info, dict):
            return None
        private_key = info.get("private_key")
        if isinstance(private_key, str):
            info["private_key"] = private_key.replace("\\n", "\n")
        return info

    @property
    def project_id(self) -> Optional[str]:
        """Explicit project ID, else the one embedded in the service account."""
        if self.FCM_PROJECT_ID:
            return self.FCM_PROJECT_ID
        info = self.service_account_info
        return info.get("project_id") if info else None
