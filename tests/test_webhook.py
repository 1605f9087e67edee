from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from site_monitor.webhook import (
    Notification,
    WebhookConfig,
    build_alert_message,
    format_timestamp,
    notify_status_change,
    redact_webhook_url,
    send_webhook_message,
)


WEBHOOK = "https://hooks.example.test/services/T000/B000/SECRET"
FIXED_NOW = datetime(2024, 5, 1, 12, 30, 15, 123456, tzinfo=timezone.utc)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_format_timestamp_is_iso8601_utc_millis() -> None:
    assert format_timestamp(FIXED_NOW) == "2024-05-01T12:30:15.123Z"
    plus_two = FIXED_NOW.astimezone(timezone(timedelta(hours=2)))
    assert format_timestamp(plus_two) == "2024-05-01T12:30:15.123Z"
    assert format_timestamp(datetime(2024, 5, 1)) == "2024-05-01T00:00:00.000Z"


def test_build_alert_message_down_and_back_up() -> None:
    assert build_alert_message("https://a.test", is_down=True, at=FIXED_NOW) == (
        "Site Status Alert\nSite: https://a.test\nStatus: DOWN\nTime: 2024-05-01T12:30:15.123Z"
    )
    assert "Status: BACK UP\n" in build_alert_message("https://a.test", is_down=False, at=FIXED_NOW)


def test_notification_text_matches_builder() -> None:
    n = Notification(site="https://a.test", is_down=False, timestamp=FIXED_NOW)
    assert n.status_text == "BACK UP"
    assert n.text == build_alert_message("https://a.test", is_down=False, at=FIXED_NOW)


def test_redact_webhook_url() -> None:
    cfg = WebhookConfig(url=WEBHOOK)
    assert redact_webhook_url(f"ConnectError for url {WEBHOOK}", cfg) == "ConnectError for url <webhook>"


@pytest.mark.asyncio
async def test_send_webhook_message_posts_json_text() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="ok")

    async with _client(handler) as client:
        result = await send_webhook_message(client, WebhookConfig(url=WEBHOOK), "hello")

    assert result.ok is True
    assert result.status_code == 200
    assert len(seen) == 1
    req = seen[0]
    assert req.method == "POST"
    assert str(req.url) == WEBHOOK
    assert req.headers["content-type"] == "application/json"
    assert json.loads(req.content) == {"text": "hello"}


@pytest.mark.asyncio
async def test_send_webhook_message_non_success_is_failure() -> None:
    async with _client(lambda request: httpx.Response(403, text="invalid_token")) as client:
        result = await send_webhook_message(client, WebhookConfig(url=WEBHOOK), "hello")
    assert result.ok is False
    assert result.status_code == 403
    assert result.error == "http_status: 403"


@pytest.mark.asyncio
async def test_send_webhook_message_transport_error_is_redacted() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError(f"cannot reach {WEBHOOK}", request=request)

    async with _client(handler) as client:
        result = await send_webhook_message(client, WebhookConfig(url=WEBHOOK), "hello")
    assert result.ok is False
    assert result.status_code is None
    assert result.error is not None
    assert result.error.startswith("ConnectError")
    assert "SECRET" not in result.error


@pytest.mark.asyncio
async def test_send_webhook_message_unexpected_error_is_returned() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise RuntimeError(f"bug while posting to {WEBHOOK}")

    async with _client(handler) as client:
        result = await send_webhook_message(client, WebhookConfig(url=WEBHOOK), "hello")
    assert result.ok is False
    assert result.error == "RuntimeError: bug while posting to <webhook>"


@pytest.mark.asyncio
async def test_send_webhook_message_uses_configured_timeout() -> None:
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.extensions["timeout"])
        return httpx.Response(200)

    async with _client(handler) as client:
        await send_webhook_message(client, WebhookConfig(url=WEBHOOK, timeout_seconds=3.5), "hello")
    assert seen[0]["read"] == 3.5


@pytest.mark.asyncio
async def test_notify_status_change_never_raises(caplog: pytest.LogCaptureFixture) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    async with _client(handler) as client:
        result = await notify_status_change(
            client,
            WebhookConfig(url=WEBHOOK),
            "https://a.test",
            is_down=True,
            clock=lambda: FIXED_NOW,
        )
    assert result.ok is False
    assert "ReadTimeout" in (result.error or "")
    assert any("Failed to send notification" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_notify_status_change_uses_clock() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200)

    async with _client(handler) as client:
        result = await notify_status_change(
            client,
            WebhookConfig(url=WEBHOOK),
            "https://a.test",
            is_down=False,
            clock=lambda: FIXED_NOW,
        )
    assert result.ok is True
    assert bodies == [{"text": build_alert_message("https://a.test", is_down=False, at=FIXED_NOW)}]


@pytest.mark.asyncio
async def test_notify_status_change_logs_site_without_query(caplog: pytest.LogCaptureFixture) -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(500)

    site = "https://a.test/health?token=hunter2"
    async with _client(handler) as client:
        await notify_status_change(client, WebhookConfig(url=WEBHOOK), site, is_down=True, clock=lambda: FIXED_NOW)

    messages = [r.getMessage() for r in caplog.records if r.name == "site-monitor"]
    assert any("site=https://a.test/health " in m for m in messages)
    assert all("hunter2" not in m for m in messages)
    assert f"Site: {site}\n" in bodies[0]["text"]
