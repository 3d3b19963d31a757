"""
Tests for the SendGrid provider and the auth email service.
"""
import json
from unittest.mock import AsyncMock
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from referral_api.services.auth_email_service import AuthEmailService, display_name_for
from referral_api.services.email_provider import EmailAttachment, SendGridProvider


def _provider(handler, api_key="SG.test-key") -> SendGridProvider:
    provider = SendGridProvider()
    provider.api_key = api_key
    provider._http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return provider


class TestSendGridProvider:

    def test_payload_puts_plain_text_first(self):
        provider = SendGridProvider()
        payload = provider.build_payload("a@x.com", "Hi", "<p>Hi</p>", text="Hi")
        assert [c["type"] for c in payload["content"]] == ["text/plain", "text/html"]
        assert payload["personalizations"] == [{"to": [{"email": "a@x.com"}]}]

    def test_payload_attachments(self):
        provider = SendGridProvider()
        payload = provider.build_payload(
            "a@x.com", "Bill", "<p>Bill</p>",
            attachments=[EmailAttachment(content="ZmFrZQ==", filename="bill.pdf", type="application/pdf")],
        )
        assert payload["attachments"] == [{
            "content": "ZmFrZQ==",
            "filename": "bill.pdf",
            "type": "application/pdf",
            "disposition": "attachment",
        }]

    @pytest.mark.asyncio
    async def test_no_api_key_skips_network(self):
        def handler(request):
            raise AssertionError("no request expected")

        provider = _provider(handler, api_key="")
        assert await provider.send_email("a@x.com", "Hi", "<p>Hi</p>") is False

    @pytest.mark.asyncio
    async def test_accepted_delivery(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(202, headers={"X-Message-Id": "msg-1"})

        provider = _provider(handler)
        result = await provider.send("a@x.com", "Hi", "<p>Hi</p>", text="Hi")

        assert result.success
        assert result.message_id == "msg-1"
        assert seen[0].url.path == "/v3/mail/send"
        assert json.loads(seen[0].content)["subject"] == "Hi"

    @pytest.mark.asyncio
    async def test_rejected_delivery_returns_false(self):
        provider = _provider(lambda request: httpx.Response(400, text="bad from address"))
        assert await provider.send_email("a@x.com", "Hi", "<p>Hi</p>") is False

    @pytest.mark.asyncio
    async def test_network_error_returns_false(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        provider = _provider(handler)
        assert await provider.send_email("a@x.com", "Hi", "<p>Hi</p>") is False


class TestAuthEmailService:

    @pytest.fixture
    def provider(self):
        provider = AsyncMock()
        provider.send_email = AsyncMock(return_value=True)
        return provider

    def test_display_name_fallbacks(self):
        assert display_name_for("mario@x.com", "Mario", "alice") == "Mario"
        assert display_name_for("mario@x.com", None, "", "alice") == "alice"
        assert display_name_for("mario@x.com") == "mario"

    @pytest.mark.asyncio
    async def test_verification_link_carries_token(self, provider):
        service = AuthEmailService(provider=provider)
        service.frontend_url = "https://app.example.com"

        assert await service.send_email_verification("a@x.com", "abc123", "Alice")

        to, subject, html, text = provider.send_email.await_args.args
        assert to == "a@x.com"
        link = next(line for line in text.splitlines() if line.startswith("https://"))
        parsed = urlparse(link)
        assert parsed.path == "/verify-email"
        assert parse_qs(parsed.query) == {"token": ["abc123"]}
        assert "24 hours" in text

    @pytest.mark.asyncio
    async def test_reset_email_escapes_display_name(self, provider):
        service = AuthEmailService(provider=provider)

        await service.send_password_reset_email("a@x.com", "tok", "<script>")

        html = provider.send_email.await_args.args[2]
        assert "<script>" not in html
        assert "&lt;script&gt;" in html

    @pytest.mark.asyncio
    async def test_failed_delivery_reported(self, provider):
        provider.send_email.return_value = False
        service = AuthEmailService(provider=provider)
        assert await service.send_welcome_email("a@x.com", "Alice") is False
