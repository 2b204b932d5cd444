"""Email sending via Resend API.

Simple HTTP POST to Resend. A dispatcher without an API key is
"unconfigured": it skips every send and the auth flows fall back to echoing
codes in responses (development mode).

Delivery is best-effort. send() returns False instead of raising so an
email outage never rolls back the operation that triggered it.
"""

import logging
from typing import Protocol

import httpx

from workradar.core.config import Settings
from workradar.core.errors import DispatchFailure

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"
_RESEND_TIMEOUT = 10.0


class EmailDispatcher(Protocol):
    """Outbound notification channel used by the auth flows."""

    def is_configured(self) -> bool:
        """True when sends actually leave the process."""
        ...

    async def send(
        self, to: str, subject: str, html: str, text: str | None = None
    ) -> bool:
        """Deliver one message. Returns True on success."""
        ...


class ResendEmailDispatcher:
    """EmailDispatcher backed by the Resend HTTP API.

    Args:
        api_key: Resend API key. Empty means unconfigured.
        from_email: Sender address.
        from_name: Sender display name.
        transport: Optional httpx transport (tests inject a MockTransport).
    """

    def __init__(
        self,
        api_key: str,
        from_email: str,
        from_name: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._sender = f"{from_name} <{from_email}>" if from_name else from_email
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "ResendEmailDispatcher":
        """Build a dispatcher from application settings."""
        return cls(
            api_key=settings.resend_api_key.get_secret_value(),
            from_email=settings.email_from,
            from_name=settings.email_from_name,
        )

    def is_configured(self) -> bool:
        """True when a Resend API key is present."""
        return bool(self._api_key)

    async def send(
        self, to: str, subject: str, html: str, text: str | None = None
    ) -> bool:
        """Send one email.

        Args:
            to: Recipient address.
            subject: Subject line.
            html: HTML body.
            text: Optional plain-text alternative.

        Returns:
            True if Resend accepted the message, False if skipped or failed.
        """
        if not self.is_configured():
            logger.warning("Resend API not configured, skipping email send")
            return False

        payload: dict[str, str] = {
            "from": self._sender,
            "to": to,
            "subject": subject,
            "html": html,
        }
        if text:
            payload["text"] = text

        try:
            await self._post(payload)
        except DispatchFailure:
            logger.warning("Failed to send email", exc_info=True)
            return False
        return True

    async def _post(self, payload: dict[str, str]) -> None:
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                resp = await client.post(
                    _RESEND_API_URL,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                    json=payload,
                    timeout=_RESEND_TIMEOUT,
                )
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise DispatchFailure(f"Resend request failed: {exc}") from exc
