"""Tests for the Resend email dispatcher and email templates."""

import json

import httpx

from tests.conftest import make_test_settings
from workradar.core.email import ResendEmailDispatcher
from workradar.core.email_templates import (
    mfa_code_email,
    password_reset_code_email,
    registration_code_email,
    welcome_email,
)


def _dispatcher(handler, api_key: str = "re_test_key") -> ResendEmailDispatcher:
    return ResendEmailDispatcher(
        api_key=api_key,
        from_email="noreply@workradar.app",
        from_name="Workradar",
        transport=httpx.MockTransport(handler),
    )


class TestResendEmailDispatcher:
    """Tests for ResendEmailDispatcher."""

    async def test_posts_to_resend(self):
        """A configured dispatcher posts the message with the API key."""
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"id": "email_123"})

        sent = await _dispatcher(handler).send(
            "alice@example.com", "Subject", "<p>Hi</p>", "Hi"
        )

        assert sent is True
        assert len(captured) == 1
        request = captured[0]
        assert str(request.url) == "https://api.resend.com/emails"
        assert request.headers["Authorization"] == "Bearer re_test_key"
        body = json.loads(request.content)
        assert body == {
            "from": "Workradar <noreply@workradar.app>",
            "to": "alice@example.com",
            "subject": "Subject",
            "html": "<p>Hi</p>",
            "text": "Hi",
        }

    async def test_unconfigured_skips(self):
        """Without an API key nothing is sent."""
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200)

        dispatcher = _dispatcher(handler, api_key="")

        assert dispatcher.is_configured() is False
        assert await dispatcher.send("a@example.com", "s", "<p>h</p>") is False
        assert calls == []

    async def test_http_error_returns_false(self):
        """Error responses are reported as a failed send, not raised."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"message": "boom"})

        assert await _dispatcher(handler).send("a@example.com", "s", "h") is False

    async def test_transport_error_returns_false(self):
        """Network failures are reported as a failed send, not raised."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        assert await _dispatcher(handler).send("a@example.com", "s", "h") is False

    def test_from_settings(self):
        """Configuration follows RESEND_API_KEY."""
        unconfigured = ResendEmailDispatcher.from_settings(make_test_settings())
        configured = ResendEmailDispatcher.from_settings(
            make_test_settings(resend_api_key="re_live_key")
        )

        assert unconfigured.is_configured() is False
        assert configured.is_configured() is True


class TestTemplates:
    """Tests for the email body builders."""

    def test_registration_email_carries_code(self):
        """Both renderings contain the code and its lifetime."""
        content = registration_code_email("REG-482913", 120)

        assert "REG-482913" in content.html
        assert "REG-482913" in content.text
        assert "2 minutes" in content.text
        assert "Verify" in content.subject

    def test_reset_email_carries_code(self):
        """Reset emails carry the PWD code."""
        content = password_reset_code_email("PWD-482913", 120)

        assert "PWD-482913" in content.text
        assert "reset" in content.subject.lower()

    def test_mfa_email_single_minute(self):
        """Short lifetimes read as one minute."""
        content = mfa_code_email("482913", 60)

        assert "482913" in content.text
        assert "1 minute." in content.text

    def test_welcome_email_escapes_handle(self):
        """User-provided text is HTML-escaped."""
        content = welcome_email("<b>mallory</b>")

        assert "<b>mallory</b>" not in content.html
        assert "&lt;b&gt;mallory&lt;/b&gt;" in content.html
