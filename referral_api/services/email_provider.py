"""
Email Provider (SendGrid)

Transactional email over the SendGrid v3 mail API. send_email() never raises:
delivery problems are logged and reported as False.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Dict, Any

import httpx

from referral_api.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class EmailAttachment:
    content: str  # base64 encoded file content
    filename: str
    type: str = "application/octet-stream"


@dataclass
class SendResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class SendGridProvider:
    """SendGrid email provider."""

    BASE_URL = "https://api.sendgrid.com/v3"

    def __init__(self):
        self.api_key = settings.SENDGRID_API_KEY
        self.from_email = settings.SENDGRID_FROM_EMAIL
        self.from_name = settings.SENDGRID_FROM_NAME
        self.reply_to = settings.SENDGRID_REPLY_TO
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                timeout=30.0,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )
        return self._http_client

    async def close(self):
        """Explicit cleanup method."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    def build_payload(
        self,
        to: str,
        subject: str,
        html: str,
        text: Optional[str] = None,
        attachments: Optional[List[EmailAttachment]] = None,
    ) -> Dict[str, Any]:
        # SendGrid requires text/plain before text/html
        content = []
        if text:
            content.append({"type": "text/plain", "value": text})
        content.append({"type": "text/html", "value": html})

        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self.from_email, "name": self.from_name},
            "subject": subject,
            "content": content,
        }
        if self.reply_to:
            payload["reply_to"] = {"email": self.reply_to}
        if attachments:
            payload["attachments"] = [
                {
                    "content": att.content,
                    "filename": att.filename,
                    "type": att.type,
                    "disposition": "attachment",
                }
                for att in attachments
            ]
        return payload

    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: Optional[str] = None,
        attachments: Optional[List[EmailAttachment]] = None,
    ) -> SendResult:
        """Send a single email and report the outcome."""
        if not self.api_key:
            logger.warning(f"SendGrid API key not configured, email to {to} not sent")
            return SendResult(success=False, error="Email not configured")

        payload = self.build_payload(to, subject, html, text, attachments)

        try:
            http = await self._get_http_client()
            resp = await http.post(f"{self.BASE_URL}/mail/send", json=payload)
        except httpx.HTTPError as e:
            logger.error(f"SendGrid request to {to} failed: {e}")
            return SendResult(success=False, error=str(e))

        if resp.status_code in (200, 202):
            logger.info(f"Email sent to {to}: {subject}")
            return SendResult(success=True, message_id=resp.headers.get("X-Message-Id"))

        logger.error(f"SendGrid rejected email to {to}: {resp.status_code} - {resp.text}")
        return SendResult(success=False, error=resp.text)

    async def send_email(
        self,
        to: str,
        subject: str,
        html: str,
        text: Optional[str] = None,
        attachments: Optional[List[EmailAttachment]] = None,
    ) -> bool:
        """Notification sender contract: True on accepted delivery, never raises."""
        try:
            result = await self.send(to, subject, html, text, attachments)
        except Exception as e:
            logger.error(f"Unexpected error sending email to {to}: {e}")
            return False
        return result.success


_email_provider: Optional[SendGridProvider] = None


def get_email_provider() -> SendGridProvider:
    """Get or create singleton email provider."""
    global _email_provider
    if _email_provider is None:
        _email_provider = SendGridProvider()
    return _email_provider
