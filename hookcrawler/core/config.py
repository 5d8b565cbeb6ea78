"""Process configuration read from ``HOOKCRAWLER_*`` environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from hookcrawler.core.logging import LOG_FORMATS

ENV_PREFIX = "HOOKCRAWLER_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


class ConfigError(Exception):
    """Raised when the environment holds a missing or malformed setting."""


def join_webhook_url(public_address: str, endpoint: str) -> str:
    """Join the public base address and the webhook path with one ``/``.

    Returns ``""`` when no public address is configured, which switches
    webhook reconciliation off.
    """
    if not public_address:
        return ""
    if not endpoint:
        return public_address
    return public_address.rstrip("/") + "/" + endpoint.lstrip("/")


@dataclass(frozen=True)
class GitHubSettings:
    token: str
    api_url: str = "https://api.github.com"
    public_address: str = ""
    endpoint: str = "/webhook"
    pr_page_size: int = 50
    pr_max_pages: int = 0
    webhook_page_size: int = 0
    timeout: float = 30.0

    @property
    def webhook_url(self) -> str:
        return join_webhook_url(self.public_address, self.endpoint)


@dataclass(frozen=True)
class ElasticSettings:
    addresses: tuple[str, ...] = ("http://localhost:9200",)
    username: str = "github-hook"
    password: str = ""
    cacert: str = ""  # base64-encoded PEM
    index: str = "application-github-webhook-test"


@dataclass(frozen=True)
class Settings:
    github: GitHubSettings
    elastic: ElasticSettings = field(default_factory=ElasticSettings)
    port: int = 8080
    log_level: str = "INFO"
    log_format: str = "console"
    metrics_enabled: bool = True
    metrics_endpoint: str = "/metrics"
    crawl_interval: float = 600.0

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from *environ* (defaults to ``os.environ``)."""
        env = _Env(os.environ if environ is None else environ)

        token = env.get("GITHUB_TOKEN", "")
        if not token:
            raise ConfigError(f"{ENV_PREFIX}GITHUB_TOKEN is required")

        github = GitHubSettings(
            token=token,
            api_url=env.get("GITHUB_API_URL", "https://api.github.com").rstrip("/"),
            public_address=env.get("GITHUB_PUBLIC_ADDRESS", ""),
            endpoint=env.get("GITHUB_ENDPOINT", "/webhook"),
            pr_page_size=env.get_int("GITHUB_PR_PAGE_SIZE", 50),
            pr_max_pages=env.get_int("GITHUB_PR_MAX_PAGES", 0),
            webhook_page_size=env.get_int("GITHUB_WEBHOOK_PAGE_SIZE", 0),
            timeout=env.get_float("GITHUB_TIMEOUT", 30.0),
        )
        addresses = tuple(
            a.strip()
            for a in env.get("ELASTIC_ADDRESSES", "http://localhost:9200").split(",")
            if a.strip()
        )
        if not addresses:
            raise ConfigError(f"{ENV_PREFIX}ELASTIC_ADDRESSES must name at least one address")
        elastic = ElasticSettings(
            addresses=addresses,
            username=env.get("ELASTIC_USERNAME", "github-hook"),
            password=env.get("ELASTIC_PASSWORD", ""),
            cacert=env.get("ELASTIC_CACERT", ""),
            index=env.get("ELASTIC_INDEX", "application-github-webhook-test"),
        )
        log_format = env.get("LOG_FORMAT", "console").lower()
        if log_format not in LOG_FORMATS:
            raise ConfigError(
                f"{ENV_PREFIX}LOG_FORMAT must be one of {', '.join(LOG_FORMATS)}, got {log_format!r}"
            )
        return cls(
            github=github,
            elastic=elastic,
            port=env.get_int("PORT", 8080),
            log_level=env.get("LOG_LEVEL", "INFO"),
            log_format=log_format,
            metrics_enabled=env.get_bool("METRICS_ENABLED", True),
            metrics_endpoint=env.get("METRICS_ENDPOINT", "/metrics"),
            crawl_interval=env.get_float("CRAWL_INTERVAL", 600.0),
        )


class _Env:
    """Typed lookups of prefixed environment variables."""

    def __init__(self, environ: Mapping[str, str]) -> None:
        self._environ = environ

    def get(self, key: str, default: str) -> str:
        return self._environ.get(ENV_PREFIX + key, default)

    def get_int(self, key: str, default: int) -> int:
        raw = self._environ.get(ENV_PREFIX + key)
        if raw is None or raw == "":
            return default
        try:
            return int(raw)
        except ValueError:
            raise ConfigError(f"{ENV_PREFIX}{key} must be an integer, got {raw!r}") from None

    def get_float(self, key: str, default: float) -> float:
        raw = self._environ.get(ENV_PREFIX + key)
        if raw is None or raw == "":
            return default
        try:
            return float(raw)
        except ValueError:
            raise ConfigError(f"{ENV_PREFIX}{key} must be a number, got {raw!r}") from None

    def get_bool(self, key: str, default: bool) -> bool:
        raw = self._environ.get(ENV_PREFIX + key)
        if raw is None or raw == "":
            return default
        value = raw.strip().lower()
        if value in _TRUE:
            return True
        if value in _FALSE:
            return False
        raise ConfigError(f"{ENV_PREFIX}{key} must be a boolean, got {raw!r}")
