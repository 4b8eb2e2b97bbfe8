"""
Email dispatch client for the notification fan-out
Posts `{to, subject, html, text}` to the email microservice's send endpoint
"""

import logging
from typing import Optional

import httpx

from ...config import EMAIL_DISPATCH_TIMEOUT, EMAIL_SERVICE_API_KEY, EMAIL_SERVICE_URL

logger = logging.getLogger(__name__)


class EmailDispatchError(Exception):
    """Raised when the email service rejects or cannot accept a message"""


class EmailDispatcher:
    """Sends one email through the email microservice"""

    def __init__(self, base_url: str = EMAIL_SERVICE_URL, api_key: Optional[str] = EMAIL_SERVICE_API_KEY,
                 timeout: float = EMAIL_DISPATCH_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    async def send(self, to: str, subject: str, html: Optional[str] = None, text: Optional[str] = None) -> dict:
        headers = {"X-Email-Service-Key": self.api_key} if self.api_key else {}
        payload = {"to": to, "subject": subject, "html": html, "text": text}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(f"{self.base_url}/api/email/send", json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise EmailDispatchError(f"Email service unreachable: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400 or not body.get("success"):
            error = body.get("error") or body.get("detail") or f"HTTP {response.status_code}"
            raise EmailDispatchError(str(error))

        logger.info(f"📧 Email dispatched to {to}: {body.get('messageId')}")
        return body


_dispatcher: Optional[EmailDispatcher] = None


def get_email_dispatcher() -> EmailDispatcher:
    """Dependency returning the shared dispatcher"""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = EmailDispatcher()
    return _dispatcher
