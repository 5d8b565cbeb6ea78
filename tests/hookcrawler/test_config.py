"""Tests for environment configuration."""

from __future__ import annotations

import pytest

from hookcrawler.core.config import ConfigError, Settings, join_webhook_url


def _env(**values: str) -> dict[str, str]:
    env = {"HOOKCRAWLER_GITHUB_TOKEN": "ghp_test"}
    env.update({f"HOOKCRAWLER_{k}": v for k, v in values.items()})
    return env


class TestDefaults:
    def test_defaults(self):
        settings = Settings.from_env(_env())

        assert settings.port == 8080
        assert settings.crawl_interval == 600.0
        assert settings.metrics_enabled is True
        assert settings.metrics_endpoint == "/metrics"
        assert settings.github.token == "ghp_test"
        assert settings.github.api_url == "https://api.github.com"
        assert settings.github.endpoint == "/webhook"
        assert settings.github.pr_page_size == 50
        assert settings.github.pr_max_pages == 0
        assert settings.github.webhook_page_size == 0
        assert settings.github.webhook_url == ""
        assert settings.elastic.index == "application-github-webhook-test"
        assert settings.elastic.username == "github-hook"
        assert settings.elastic.addresses == ("http://localhost:9200",)

    def test_overrides(self):
        settings = Settings.from_env(
            _env(
                PORT="9090",
                CRAWL_INTERVAL="30",
                METRICS_ENABLED="false",
                GITHUB_API_URL="https://ghe.example.com/api/v3/",
                GITHUB_PUBLIC_ADDRESS="https://hooks.example.com",
                GITHUB_PR_PAGE_SIZE="100",
                ELASTIC_INDEX="prs",
            )
        )

        assert settings.port == 9090
        assert settings.crawl_interval == 30.0
        assert settings.metrics_enabled is False
        assert settings.github.api_url == "https://ghe.example.com/api/v3"
        assert settings.github.webhook_url == "https://hooks.example.com/webhook"
        assert settings.github.pr_page_size == 100
        assert settings.elastic.index == "prs"

    def test_addresses_are_split_and_trimmed(self):
        settings = Settings.from_env(_env(ELASTIC_ADDRESSES=" http://a:9200, http://b:9200 ,"))
        assert settings.elastic.addresses == ("http://a:9200", "http://b:9200")


class TestErrors:
    def test_missing_token(self):
        with pytest.raises(ConfigError, match="GITHUB_TOKEN"):
            Settings.from_env({})

    def test_bad_integer(self):
        with pytest.raises(ConfigError, match="HOOKCRAWLER_PORT"):
            Settings.from_env(_env(PORT="eighty"))

    def test_bad_boolean(self):
        with pytest.raises(ConfigError, match="METRICS_ENABLED"):
            Settings.from_env(_env(METRICS_ENABLED="maybe"))

    def test_no_addresses(self):
        with pytest.raises(ConfigError):
            Settings.from_env(_env(ELASTIC_ADDRESSES=" , "))


@pytest.mark.parametrize(
    ("address", "endpoint", "expected"),
    [
        ("https://h.example.com", "/webhook", "https://h.example.com/webhook"),
        ("https://h.example.com/", "/webhook", "https://h.example.com/webhook"),
        ("https://h.example.com", "webhook", "https://h.example.com/webhook"),
        ("https://h.example.com/", "webhook", "https://h.example.com/webhook"),
        ("", "/webhook", ""),
    ],
)
def test_join_webhook_url(address, endpoint, expected):
    assert join_webhook_url(address, endpoint) == expected


def test_main_exits_2_on_config_error(monkeypatch, capsys):
    from hookcrawler.__main__ import main

    monkeypatch.delenv("HOOKCRAWLER_GITHUB_TOKEN", raising=False)
    assert main() == 2
    assert "GITHUB_TOKEN" in capsys.readouterr().err


def test_unknown_log_format():
    with pytest.raises(ConfigError, match="LOG_FORMAT"):
        Settings.from_env(_env(LOG_FORMAT="xml"))


def test_setup_logging_rejects_unknown_format():
    from hookcrawler.core.logging import setup_logging

    with pytest.raises(ValueError):
        setup_logging("INFO", "xml")
