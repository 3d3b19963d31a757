"""
Auth Email Service

Welcome, email verification and password reset messages. Every method returns
a bool and never raises, so callers can treat delivery as best-effort.
"""
import logging
from typing import Optional
from urllib.parse import urlencode

from referral_api.core.config import settings
from referral_api.services import email_templates
from referral_api.services.email_provider import get_email_provider

logger = logging.getLogger(__name__)


def display_name_for(email: str, *names: Optional[str]) -> str:
    for name in names:
        if name:
            return name
    return email.split("@")[0]


class AuthEmailService:
    """
    Service for sending authentication-related emails.

    Handles:
    - Welcome emails after registration
    - Email verification links
    - Password reset links
    """

    def __init__(self, provider=None):
        self.provider = provider or get_email_provider()
        self.app_name = settings.APP_NAME
        self.frontend_url = settings.FRONTEND_URL.rstrip("/")
        self.expire_hours = settings.AUTH_TOKEN_TTL_HOURS

    def _link(self, path: str, token: str) -> str:
        return f"{self.frontend_url}{path}?{urlencode({'token': token})}"

    async def send_welcome_email(self, to_email: str, display_name: str) -> bool:
        subject, html, text = email_templates.welcome_email(
            self.app_name, display_name, f"{self.frontend_url}/dashboard"
        )
        sent = await self.provider.send_email(to_email, subject, html, text)
        if not sent:
            logger.warning(f"Welcome email to {to_email} was not delivered")
        return sent

    async def send_email_verification(self, to_email: str, token: str, display_name: str) -> bool:
        subject, html, text = email_templates.verification_email(
            self.app_name, display_name, self._link("/verify-email", token), self.expire_hours
        )
        sent = await self.provider.send_email(to_email, subject, html, text)
        if not sent:
            logger.warning(f"Verification email to {to_email} was not delivered")
        return sent

    async def send_password_reset_email(self, to_email: str, token: str, display_name: str) -> bool:
        subject, html, text = email_templates.password_reset_email(
            self.app_name, display_name, self._link("/reset-password", token), self.expire_hours
        )
        sent = await self.provider.send_email(to_email, subject, html, text)
        if not sent:
            logger.warning(f"Password reset email to {to_email} was not delivered")
        return sent
