"""Tests for rate-limit header parsing and the quota tracker."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import httpx
from prometheus_client import REGISTRY

from hookcrawler.engines.crawler.ratelimit import (
    RateLimitSnapshot,
    RateLimitTracker,
    parse_header_int,
    parse_rate_limit,
)

NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def _headers(**values: str) -> httpx.Headers:
    names = {
        "used": "X-RateLimit-Used",
        "remaining": "X-RateLimit-Remaining",
        "limit": "X-RateLimit-Limit",
        "reset": "X-RateLimit-Reset",
    }
    return httpx.Headers({names[k]: v for k, v in values.items()})


class TestParseHeaderInt:
    def test_valid(self):
        assert parse_header_int({"X": "42"}, "X") == 42

    def test_missing_is_none(self):
        assert parse_header_int({}, "X") is None

    def test_garbage_is_none_not_zero(self):
        assert parse_header_int({"X": "garbage"}, "X") is None


class TestParseRateLimit:
    def test_all_fields(self):
        reset = int(NOW.timestamp())
        snap = parse_rate_limit(
            _headers(used="10", remaining="4990", limit="5000", reset=str(reset))
        )
        assert snap == RateLimitSnapshot(used=10, remaining=4990, total=5000, reset=NOW)

    def test_header_names_case_insensitive(self):
        headers = httpx.Headers({"x-ratelimit-remaining": "7"})
        assert parse_rate_limit(headers).remaining == 7

    def test_bad_field_only_drops_that_field(self):
        snap = parse_rate_limit(
            _headers(used="oops", remaining="4990", limit="5000", reset="not-a-time")
        )
        assert snap.used is None
        assert snap.reset is None
        assert snap.remaining == 4990
        assert snap.total == 5000

    def test_seconds_until_reset(self):
        snap = RateLimitSnapshot(reset=NOW + timedelta(seconds=90))
        assert snap.seconds_until_reset(NOW) == 90
        assert RateLimitSnapshot().seconds_until_reset(NOW) is None


class TestTracker:
    def test_keeps_only_latest(self):
        tracker = RateLimitTracker()
        tracker.observe(_headers(remaining="3000", limit="5000"))
        tracker.observe(_headers(remaining="2999"))
        assert tracker.remaining == 2999
        assert tracker.snapshot.total is None

    def test_headers_without_rate_limit_keep_snapshot(self):
        tracker = RateLimitTracker()
        tracker.observe(_headers(remaining="3000"))
        tracker.observe(httpx.Headers({"Content-Type": "application/json"}))
        assert tracker.remaining == 3000

    def test_sets_gauges(self):
        tracker = RateLimitTracker()
        tracker.observe(_headers(remaining="1234", limit="5000"))
        assert REGISTRY.get_sample_value("ratelimit_remaining") == 1234
        assert REGISTRY.get_sample_value("ratelimit_total") == 5000

    def test_unknown_is_not_low(self):
        assert RateLimitTracker().is_low(NOW) is False

    def test_threshold(self):
        reset = str(int((NOW + timedelta(hours=1)).timestamp()))
        tracker = RateLimitTracker()
        tracker.observe(_headers(remaining="1999", reset=reset))
        assert tracker.is_low(NOW) is True
        tracker.observe(_headers(remaining="2000", reset=reset))
        assert tracker.is_low(NOW) is False

    def test_low_quota_expires_after_reset(self):
        reset = NOW + timedelta(minutes=5)
        tracker = RateLimitTracker()
        tracker.observe(_headers(remaining="10", reset=str(int(reset.timestamp()))))
        assert tracker.is_low(NOW) is True
        assert tracker.is_low(reset + timedelta(seconds=1)) is False
