"""Outbound email transport for automation rules (Resend over httpx).

Senders never raise for delivery problems; they return a result dict:
{"success": bool, "message_id": str | None, "error": str | None}.
"""

from __future__ import annotations

import asyncio
import html as html_module
import logging
import random
import re
from typing import Awaitable, Callable, Protocol

import httpx

from academy.core.config import settings

logger = logging.getLogger(__name__)

RESEND_SEND_URL = "https://api.resend.com/emails"
RESEND_MAX_ATTEMPTS = 3
RESEND_RETRY_BASE_DELAY = 0.5
RESEND_RETRY_MAX_DELAY = 4.0
RETRY_STATUSES = {429, 500, 502, 503, 504}


class EmailSender(Protocol):
    key: str

    async def send_email(
        self,
        *,
        to_email: str,
        subject: str,
        html: str,
        idempotency_key: str | None = None,
    ) -> dict[str, object]:
        """Send one email and report the outcome."""


def _html_to_text(content: str) -> str:
    """Plain-text alternative for the HTML body (inbox previews)."""
    text = re.sub(r"<(script|style)[^>]*>.*?</\1>", "", content, flags=re.DOTALL | re.I)
    text = re.sub(r"<br\s*/?>|</p>", "\n", text, flags=re.I)
    text = re.sub(r"<[^>]+>", " ", text)
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\s*\n\s*", "\n", text).strip()
    return html_module.unescape(text)


def _retry_delay(attempt: int) -> float:
    delay = min(RESEND_RETRY_MAX_DELAY, RESEND_RETRY_BASE_DELAY * (2**attempt))
    return delay + random.uniform(0, delay / 2)


async def _post_with_retries(
    request_fn: Callable[[], Awaitable[httpx.Response]],
    max_attempts: int = RESEND_MAX_ATTEMPTS,
) -> httpx.Response:
    """Exponential backoff on transport errors and retryable statuses."""
    for attempt in range(max_attempts):
        try:
            response = await request_fn()
        except httpx.RequestError as exc:
            if attempt >= max_attempts - 1:
                raise
            logger.warning("Email request failed, retrying", exc_info=exc)
            await asyncio.sleep(_retry_delay(attempt))
            continue

        if response.status_code in RETRY_STATUSES and attempt < max_attempts - 1:
            logger.warning("Email provider returned %s, retrying", response.status_code)
            await asyncio.sleep(_retry_delay(attempt))
            continue

        return response

    return response


def _message_id(response: httpx.Response) -> str | None:
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict):
        mid = data.get("id")
        if isinstance(mid, str) and mid:
            return mid
    return None


class ResendEmailSender:
    """Sends automation emails through the Resend API."""

    key = "resend"

    def __init__(
        self,
        api_key: str | None = None,
        from_email: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.RESEND_API_KEY
        self.from_email = from_email if from_email is not None else settings.EMAIL_FROM
        self.timeout = timeout if timeout is not None else settings.EMAIL_SEND_TIMEOUT_SECONDS

    def is_configured(self) -> bool:
        return bool(self.api_key and self.from_email)

    async def send_email(
        self,
        *,
        to_email: str,
        subject: str,
        html: str,
        idempotency_key: str | None = None,
    ) -> dict[str, object]:
        if not self.api_key:
            return {"success": False, "error": "Email sender not configured (missing RESEND_API_KEY)"}
        if not self.from_email:
            return {"success": False, "error": "Email sender not configured (missing EMAIL_FROM)"}

        payload: dict[str, object] = {
            "from": self.from_email,
            "to": [to_email],
            "subject": subject,
            "html": html,
        }
        text = _html_to_text(html)
        if text:
            payload["text"] = text

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:

                async def request_fn() -> httpx.Response:
                    return await client.post(RESEND_SEND_URL, headers=headers, json=payload)

                response = await _post_with_retries(request_fn)
        except httpx.TimeoutException:
            logger.warning("Email provider timeout")
            return {"success": False, "error": "Connection timeout"}
        except httpx.HTTPError as exc:
            logger.warning("Email provider connection error: %s", exc.__class__.__name__)
            return {"success": False, "error": f"Connection error: {exc.__class__.__name__}"}

        if 200 <= response.status_code < 300:
            message_id = _message_id(response)
            if message_id:
                return {"success": True, "message_id": message_id}
            return {"success": False, "error": "Email provider returned success without message id"}

        # 409 = idempotency conflict: the provider already accepted this exact send
        if response.status_code == 409:
            return {"success": True, "message_id": _message_id(response)}

        return {"success": False, "error": f"Email provider returned {response.status_code}"}


def get_email_sender() -> EmailSender | None:
    """The configured sender, or None when outbound email is not set up."""
    sender = ResendEmailSender()
    if not sender.is_configured():
        return None
    return sender
