from __future__ import annotations

import argparse
import asyncio
import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path

import httpx

from site_monitor.config import ConfigError, MonitorConfig, load_config
from site_monitor.probe import ProbeResult, probe_site, safe_url
from site_monitor.scheduler import AsyncioTicker, Ticker
from site_monitor.status import StatusRegistry, Transition, status_label
from site_monitor.webhook import Clock, NotifyResult, WebhookConfig, notify_status_change, utc_now


LOGGER = logging.getLogger("site-monitor")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2


@dataclass
class MonitorState:
    """Everything one monitor process owns: its settings and the per-site registry."""

    config: MonitorConfig
    registry: StatusRegistry = field(init=False)
    webhook: WebhookConfig = field(init=False)
    clock: Clock = utc_now
    cycles_completed: int = 0

    def __post_init__(self) -> None:
        self.registry = StatusRegistry(self.config.sites)
        self.webhook = WebhookConfig(
            url=self.config.webhook_url,
            timeout_seconds=self.config.notify_timeout_seconds,
        )


@dataclass(frozen=True)
class SiteCheckOutcome:
    site: str
    probe: ProbeResult
    transition: Transition
    notify: NotifyResult | None = None


async def _safe_probe(client: httpx.AsyncClient, site: str) -> ProbeResult:
    try:
        return await probe_site(client, site)
    except Exception as exc:
        err = f"{type(exc).__name__}: {exc}"
        LOGGER.exception("Probe crashed site=%s error=%s", safe_url(site), err)
        return ProbeResult(url=site, ok=False, error=err)


async def check_one_site(state: MonitorState, client: httpx.AsyncClient, site: str) -> SiteCheckOutcome:
    LOGGER.info("Checking status site=%s", safe_url(site))
    result = await _safe_probe(client, site)
    transition = state.registry.check_transition(site, result.ok)
    LOGGER.info(
        "Finished checking site=%s current=%s previous=%s status_code=%s elapsed_ms=%s error=%s",
        safe_url(site),
        status_label(transition.current),
        status_label(transition.previous),
        result.status_code,
        result.elapsed_ms,
        result.error,
    )

    if not transition.changed:
        LOGGER.info("Status unchanged site=%s; not sending notification", safe_url(site))
        return SiteCheckOutcome(site=site, probe=result, transition=transition)

    LOGGER.info("Status changed site=%s; sending notification", safe_url(site))
    notify = await notify_status_change(
        client,
        state.webhook,
        site,
        is_down=transition.is_down,
        clock=state.clock,
    )
    # Committed even when the notification failed: no resend on the next cycle.
    state.registry.commit(site, transition.current)

    if transition.current:
        LOGGER.info("Site is back up site=%s", safe_url(site))
    else:
        LOGGER.warning("Site is down site=%s", safe_url(site))
    return SiteCheckOutcome(site=site, probe=result, transition=transition, notify=notify)


async def run_cycle(state: MonitorState, client: httpx.AsyncClient) -> list[SiteCheckOutcome]:
    outcomes: list[SiteCheckOutcome] = []
    for site in state.config.sites:
        outcomes.append(await check_one_site(state, client, site))
    state.cycles_completed += 1
    return outcomes


async def run_loop(
    config: MonitorConfig,
    *,
    client: httpx.AsyncClient | None = None,
    ticker: Ticker | None = None,
    clock: Clock = utc_now,
    max_cycles: int | None = None,
) -> MonitorState:
    """
    Probe every site, notify on changes, sleep, repeat.

    Runs forever unless ``max_cycles`` is given; there is no sleep after the last
    bounded cycle. Unexpected errors propagate to the caller.
    """
    state = MonitorState(config=config, clock=clock)
    ticker = ticker or AsyncioTicker()

    LOGGER.info(
        "Starting site monitoring sites=%s interval_seconds=%s",
        [safe_url(s) for s in config.sites],
        config.check_interval_seconds,
    )

    if client is None:
        async with httpx.AsyncClient(headers={"User-Agent": "site-monitor"}) as http_client:
            await _loop(state, http_client, ticker, max_cycles)
    else:
        await _loop(state, client, ticker, max_cycles)
    return state


async def _loop(state: MonitorState, client: httpx.AsyncClient, ticker: Ticker, max_cycles: int | None) -> None:
    interval_seconds = state.config.check_interval_ms / 1000.0
    while max_cycles is None or state.cycles_completed < max_cycles:
        cycle_started = time.perf_counter()
        outcomes = await run_cycle(state, client)
        elapsed = time.perf_counter() - cycle_started
        changed = sum(1 for o in outcomes if o.transition.changed)
        LOGGER.info(
            "Cycle complete cycle=%s changed=%s elapsed_seconds=%s",
            state.cycles_completed,
            changed,
            round(elapsed, 3),
        )
        if max_cycles is not None and state.cycles_completed >= max_cycles:
            break
        LOGGER.info("Waiting before next check sleep_seconds=%s", interval_seconds)
        await ticker.sleep(interval_seconds)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Site availability monitor with webhook alerts")
    parser.add_argument("--config", default=None, help="Optional path to YAML config")
    parser.add_argument("--once", action="store_true", help="Run one check cycle and exit")
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (INFO, WARNING, ...)",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    # The webhook URL is a credential; httpx logs every request URL at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    try:
        config = load_config(Path(args.config) if args.config else None)
    except ConfigError as exc:
        LOGGER.error("Configuration error: %s", exc)
        return EXIT_CONFIG_ERROR

    try:
        asyncio.run(run_loop(config, max_cycles=1 if args.once else None))
    except KeyboardInterrupt:
        LOGGER.info("Shutting down site monitoring")
        return EXIT_OK
    except Exception as exc:
        LOGGER.exception("Monitoring error: %s", exc)
        return EXIT_FAILURE
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
