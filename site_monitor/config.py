"""Configuration loading for the site monitor."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator


DEFAULT_CHECK_INTERVAL_SECONDS = 300
DEFAULT_NOTIFY_TIMEOUT_SECONDS = 15.0

CONFIG_PATH_ENV = "SITE_MONITOR_CONFIG"

# env var -> MonitorConfig field
ENV_OVERRIDES: dict[str, str] = {
    "SLACK_WEBHOOK_URL": "webhook_url",
    "SITES_TO_MONITOR": "sites",
    "CHECK_INTERVAL_IN_SECONDS": "check_interval_seconds",
    "NOTIFY_TIMEOUT_IN_SECONDS": "notify_timeout_seconds",
}


class ConfigError(ValueError):
    """Raised when the monitor cannot start because its settings are missing or invalid."""


def _is_http_url(value: str) -> bool:
    return value.startswith(("http://", "https://")) and len(value) > len("https://")


def _split_csv(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


class MonitorConfig(BaseModel):
    """Validated settings for one monitor process."""

    webhook_url: str = Field(description="Webhook that receives every status alert")
    sites: list[str] = Field(description="Endpoints to probe, in check order")
    check_interval_seconds: int = Field(
        default=DEFAULT_CHECK_INTERVAL_SECONDS, ge=1, description="Sleep between check cycles"
    )
    notify_timeout_seconds: float = Field(
        default=DEFAULT_NOTIFY_TIMEOUT_SECONDS, gt=0, description="Timeout for one webhook POST"
    )

    @field_validator("webhook_url", mode="before")
    @classmethod
    def _check_webhook_url(cls, value: Any) -> str:
        s = str(value or "").strip()
        if not s:
            raise ValueError("webhook URL is required")
        if not _is_http_url(s):
            raise ValueError(f"webhook URL must be http(s), got {s[:40]!r}")
        return s

    @field_validator("sites", mode="before")
    @classmethod
    def _check_sites(cls, value: Any) -> list[str]:
        if value is None:
            raw: list[str] = []
        elif isinstance(value, str):
            raw = _split_csv(value)
        elif isinstance(value, (list, tuple)):
            raw = [str(item or "").strip() for item in value]
            raw = [item for item in raw if item]
        else:
            raise ValueError("sites must be a list or a comma-separated string")

        if not raw:
            raise ValueError("at least one site is required")

        sites: list[str] = []
        for site in raw:
            if not _is_http_url(site):
                raise ValueError(f"site must be an http(s) URL, got {site!r}")
            if site not in sites:
                sites.append(site)
        return sites

    @property
    def check_interval_ms(self) -> int:
        return self.check_interval_seconds * 1000


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as exc:
        raise ConfigError(f"Cannot read config file path={path} error={exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in config file path={path} error={exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError("Config YAML must be a mapping")
    return data


def _format_validation_error(exc: ValidationError) -> str:
    problems = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "config"
        problems.append(f"{loc}: {err.get('msg')}")
    return "; ".join(problems)


def load_config(
    config_path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> MonitorConfig:
    """Build the monitor settings from an optional YAML file plus environment overrides.

    When ``environ`` is omitted, a ``.env`` file in the working directory is loaded
    into ``os.environ`` first (already-set variables are left alone).
    """
    if environ is None:
        load_dotenv(find_dotenv(usecwd=True))
        environ = os.environ

    if config_path is None:
        raw_path = str(environ.get(CONFIG_PATH_ENV) or "").strip()
        config_path = Path(raw_path) if raw_path else None

    config_data: dict[str, Any] = {}
    if config_path is not None:
        config_data.update(_read_yaml(config_path))

    for env_name, field_name in ENV_OVERRIDES.items():
        raw = str(environ.get(env_name) or "").strip()
        if not raw:
            continue
        if field_name == "sites":
            sites = _split_csv(raw)
            if sites:
                config_data[field_name] = sites
            continue
        config_data[field_name] = raw

    missing = [name for name in ("webhook_url", "sites") if not config_data.get(name)]
    if missing:
        env_names = [env for env, field in ENV_OVERRIDES.items() if field in missing]
        raise ConfigError(f"Missing required settings: {', '.join(env_names)}")

    try:
        return MonitorConfig(**config_data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {_format_validation_error(exc)}") from exc
