"""
app/connectors/resend_mailer.py

Digest email delivery through the Resend HTTP API.
"""

from __future__ import annotations

import logging

import requests

from app.config import EmailSettings, ExternalHTTPSettings
from app.connectors.base import BaseConnector

logger = logging.getLogger(__name__)


class EmailNotConfiguredError(RuntimeError):
    """
    Raised when a send is attempted while delivery is disabled or unkeyed.
    """


class ResendMailer(BaseConnector):
    def __init__(
        self,
        *,
        settings: EmailSettings,
        http_settings: ExternalHTTPSettings,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(source="resend", http_settings=http_settings, session=session)
        self._settings = settings

    @property
    def configured(self) -> bool:
        return self._settings.enabled and bool(self._settings.resend_api_key)

    def send_digest_email(self, to: str, subject: str, body: str) -> str | None:
        """
        Send one plain-text email and return the provider message id.

        Raises EmailNotConfiguredError when delivery is disabled, and
        ConnectorRequestError when the API call fails.
        """

        if not self.configured:
            raise EmailNotConfiguredError("Email delivery is disabled or RESEND_API_KEY is unset.")

        response = self._request_json(
            method="POST",
            url=self._settings.api_url,
            headers={
                "Authorization": f"Bearer {self._settings.resend_api_key}",
                "Content-Type": "application/json",
            },
            json_body={
                "from": self._settings.from_address,
                "to": [to],
                "subject": subject,
                "text": body,
            },
        )
        message_id = response.get("id") if isinstance(response, dict) else None
        logger.info("Digest email accepted by Resend message_id=%s", message_id)
        return message_id
