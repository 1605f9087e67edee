from __future__ import annotations

import time
from dataclasses import dataclass
from urllib.parse import urlsplit, urlunsplit

import httpx


PROBE_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class ProbeResult:
    url: str
    ok: bool
    status_code: int | None = None
    error: str | None = None
    elapsed_ms: float | None = None


def safe_url(url: str) -> str:
    """
    Strip query and fragment so tokens in monitored URLs stay out of logs.
    """
    s = (url or "").strip()
    if not s:
        return s
    try:
        parts = urlsplit(s)
        return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
    except ValueError:
        return s[:500]


async def probe_site(
    client: httpx.AsyncClient,
    url: str,
    *,
    timeout_seconds: float = PROBE_TIMEOUT_SECONDS,
) -> ProbeResult:
    started = time.perf_counter()
    try:
        resp = await client.get(url, follow_redirects=True, timeout=timeout_seconds)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        return ProbeResult(
            url=url,
            ok=False,
            error=f"{type(e).__name__}: {e}",
            elapsed_ms=round(elapsed_ms, 3),
        )

    elapsed_ms = (time.perf_counter() - started) * 1000.0
    return ProbeResult(
        url=url,
        ok=resp.status_code == 200,
        status_code=resp.status_code,
        elapsed_ms=round(elapsed_ms, 3),
    )
