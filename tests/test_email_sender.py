import httpx
import pytest

from academy.services import email_sender
from academy.services.email_sender import ResendEmailSender


def _patch_post(monkeypatch, handler):
    """Replace httpx.AsyncClient.post; handler(url, headers, payload) returns a Response."""

    async def fake_post(self, url, headers=None, json=None, **_kwargs):
        return handler(url, headers or {}, json)

    monkeypatch.setattr(httpx.AsyncClient, "post", fake_post)
    monkeypatch.setattr(email_sender, "_retry_delay", lambda _attempt: 0)


@pytest.mark.asyncio
async def test_send_email_posts_to_resend_with_idempotency_key(monkeypatch):
    captured = {}

    def handler(url, headers, payload):
        captured.update(url=url, headers=headers, payload=payload)
        return httpx.Response(200, json={"id": "re_123"})

    _patch_post(monkeypatch, handler)
    sender = ResendEmailSender(api_key="re_key", from_email="Academy <hi@example.com>")

    result = await sender.send_email(
        to_email="dana@example.com",
        subject="You finished Intro",
        html="<p>Well done <b>Dana</b></p>",
        idempotency_key="automation-rule/r/m",
    )

    assert result == {"success": True, "message_id": "re_123"}
    assert captured["url"] == email_sender.RESEND_SEND_URL
    assert captured["headers"]["Authorization"] == "Bearer re_key"
    assert captured["headers"]["Idempotency-Key"] == "automation-rule/r/m"
    assert captured["payload"]["to"] == ["dana@example.com"]
    assert captured["payload"]["from"] == "Academy <hi@example.com>"
    assert captured["payload"]["text"] == "Well done Dana"


@pytest.mark.asyncio
async def test_send_email_retries_server_errors(monkeypatch):
    calls = {"count": 0}

    def handler(url, headers, payload):
        calls["count"] += 1
        if calls["count"] < 3:
            return httpx.Response(503)
        return httpx.Response(200, json={"id": "re_456"})

    _patch_post(monkeypatch, handler)
    sender = ResendEmailSender(api_key="re_key", from_email="hi@example.com")

    result = await sender.send_email(to_email="a@example.com", subject="s", html="<p>b</p>")

    assert result["success"] is True
    assert calls["count"] == 3


@pytest.mark.asyncio
async def test_send_email_reports_client_errors(monkeypatch):
    _patch_post(monkeypatch, lambda *_args: httpx.Response(422, json={"message": "bad"}))
    sender = ResendEmailSender(api_key="re_key", from_email="hi@example.com")

    result = await sender.send_email(to_email="a@example.com", subject="s", html="<p>b</p>")

    assert result == {"success": False, "error": "Email provider returned 422"}


@pytest.mark.asyncio
async def test_send_email_success_without_id_is_failure(monkeypatch):
    _patch_post(monkeypatch, lambda *_args: httpx.Response(200, json={}))
    sender = ResendEmailSender(api_key="re_key", from_email="hi@example.com")

    result = await sender.send_email(to_email="a@example.com", subject="s", html="<p>b</p>")

    assert result["success"] is False


@pytest.mark.asyncio
async def test_send_email_treats_idempotency_conflict_as_sent(monkeypatch):
    _patch_post(monkeypatch, lambda *_args: httpx.Response(409, json={"id": "re_dup"}))
    sender = ResendEmailSender(api_key="re_key", from_email="hi@example.com")

    result = await sender.send_email(
        to_email="a@example.com", subject="s", html="<p>b</p>", idempotency_key="k"
    )

    assert result == {"success": True, "message_id": "re_dup"}


@pytest.mark.asyncio
async def test_send_email_connection_error_is_reported(monkeypatch):
    calls = {"count": 0}

    def handler(url, headers, payload):
        calls["count"] += 1
        raise httpx.ConnectError("refused")

    _patch_post(monkeypatch, handler)
    sender = ResendEmailSender(api_key="re_key", from_email="hi@example.com")

    result = await sender.send_email(to_email="a@example.com", subject="s", html="<p>b</p>")

    assert result == {"success": False, "error": "Connection error: ConnectError"}
    assert calls["count"] == email_sender.RESEND_MAX_ATTEMPTS


@pytest.mark.asyncio
async def test_unconfigured_sender_does_not_call_provider(monkeypatch):
    def handler(*_args):
        pytest.fail("provider should not be called")

    _patch_post(monkeypatch, handler)
    sender = ResendEmailSender(api_key="", from_email="hi@example.com")

    result = await sender.send_email(to_email="a@example.com", subject="s", html="<p>b</p>")

    assert result["success"] is False
    assert "RESEND_API_KEY" in result["error"]


def test_get_email_sender_requires_configuration(monkeypatch):
    from academy.core.config import settings

    monkeypatch.setattr(settings, "RESEND_API_KEY", "")
    assert email_sender.get_email_sender() is None

    monkeypatch.setattr(settings, "RESEND_API_KEY", "re_key")
    monkeypatch.setattr(settings, "EMAIL_FROM", "hi@example.com")
    sender = email_sender.get_email_sender()
    assert sender is not None
    assert sender.key == "resend"
