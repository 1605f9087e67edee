from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

import httpx

from site_monitor.probe import safe_url


LOGGER = logging.getLogger("site-monitor")

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class WebhookConfig:
    url: str
    timeout_seconds: float = 15.0


@dataclass(frozen=True)
class Notification:
    site: str
    is_down: bool
    timestamp: datetime

    @property
    def status_text(self) -> str:
        return "DOWN" if self.is_down else "BACK UP"

    @property
    def text(self) -> str:
        return build_alert_message(self.site, is_down=self.is_down, at=self.timestamp)


@dataclass(frozen=True)
class NotifyResult:
    ok: bool
    status_code: int | None = None
    error: str | None = None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(at: datetime) -> str:
    # 2024-05-01T12:00:00.000Z
    if at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    return at.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_alert_message(site: str, *, is_down: bool, at: datetime) -> str:
    status = "DOWN" if is_down else "BACK UP"
    return f"Site Status Alert\nSite: {site}\nStatus: {status}\nTime: {format_timestamp(at)}"


def redact_webhook_url(text: str, config: WebhookConfig) -> str:
    if config.url:
        return text.replace(config.url, "<webhook>")
    return text


async def send_webhook_message(client: httpx.AsyncClient, config: WebhookConfig, text: str) -> NotifyResult:
    payload = {"text": text}
    try:
        resp = await client.post(
            config.url,
            json=payload,
            headers={"Content-Type": "application/json"},
            timeout=config.timeout_seconds,
        )
    except Exception as e:
        msg = redact_webhook_url(f"{type(e).__name__}: {e}", config)
        return NotifyResult(ok=False, error=msg)

    if not resp.is_success:
        return NotifyResult(ok=False, status_code=resp.status_code, error=f"http_status: {resp.status_code}")
    return NotifyResult(ok=True, status_code=resp.status_code)


async def notify_status_change(
    client: httpx.AsyncClient,
    config: WebhookConfig,
    site: str,
    *,
    is_down: bool,
    clock: Clock = utc_now,
) -> NotifyResult:
    """Send one alert for a status change. Failures are logged and returned, never raised."""
    notification = Notification(site=site, is_down=is_down, timestamp=clock())
    result = await send_webhook_message(client, config, notification.text)
    if result.ok:
        LOGGER.info("Sent notification site=%s status=%s", safe_url(site), notification.status_text)
    else:
        LOGGER.error(
            "Failed to send notification site=%s status=%s status_code=%s error=%s",
            safe_url(site),
            notification.status_text,
            result.status_code,
            result.error,
        )
    return result
