"""ZeptoMail implementation of Notifier.

Sends through ZeptoMail's template endpoint: the template lives in the
ZeptoMail account, so this process only supplies the template key and the
merge data. HTTP goes through the shared async HttpClient.
"""

from __future__ import annotations

from typing import Any

import httpx

from config import EmailSettings
from errors import NotificationFailure
from infrastructure.http_client import HttpClient
from shared.logging import get_logger

log = get_logger(__name__)

_ZEPTO_TEMPLATE_API_URL = "https://api.zeptomail.com/v1.1/email/template"


class ZeptoMailNotifier:
    def __init__(
        self,
        settings: EmailSettings,
        http_client: HttpClient,
        app_name: str = "My App",
        app_url: str = "http://localhost:3000",
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._app_name = app_name
        self._app_url = app_url

        if not self._settings.zepto_api_token:
            log.error(
                "zepto_mail_token_missing", message="ZEPTO_API_TOKEN not configured"
            )

    def _auth_header(self) -> str:
        token = self._settings.zepto_api_token
        if not token.startswith("Zoho-enczapikey "):
            token = f"Zoho-enczapikey {token}"
        return token

    async def send(
        self, to: str, subject: str, template_id: str, data: dict[str, Any]
    ) -> bool:
        """Send one templated email.

        Raises:
            NotificationFailure: when the provider is unconfigured, rejects
                the request, or cannot be reached.
        """
        if not self._settings.zepto_api_token:
            raise NotificationFailure("ZEPTO_API_TOKEN not configured")

        payload = {
            "template_key": self._settings.template_key(template_id),
            "from": {
                "address": self._settings.zepto_from_email,
                "name": self._settings.zepto_from_name,
            },
            "to": [{"email_address": {"address": to, "name": data.get("name") or to}}],
            "subject": subject,
            "merge_info": {
                "app_name": self._app_name,
                "app_url": self._app_url,
                **data,
            },
        }
        headers = {
            "Authorization": self._auth_header(),
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

        try:
            response = await self._http.post(
                _ZEPTO_TEMPLATE_API_URL, json=payload, headers=headers
            )
        except httpx.HTTPError as e:
            raise NotificationFailure(f"{type(e).__name__}: {e}") from e

        if response.status_code not in (200, 201, 202):
            raise NotificationFailure(
                f"ZeptoMail returned {response.status_code}: {response.text[:200]}"
            )

        log.info("email_sent_success", template_id=template_id, subject=subject)
        return True
