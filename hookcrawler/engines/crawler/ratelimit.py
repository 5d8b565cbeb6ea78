"""GitHub rate-limit tracking from ``X-RateLimit-*`` response headers."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog
from prometheus_client import Gauge

log = structlog.get_logger("hookcrawler.ratelimit")

LOW_QUOTA_THRESHOLD = 2000

_HEADERS = (
    "X-RateLimit-Used",
    "X-RateLimit-Remaining",
    "X-RateLimit-Limit",
    "X-RateLimit-Reset",
)

RATELIMIT_USED = Gauge("ratelimit_used", "Ratelimit Used Statistics")
RATELIMIT_REMAINING = Gauge("ratelimit_remaining", "Ratelimit Remaining Statistics")
RATELIMIT_TOTAL = Gauge("ratelimit_total", "Ratelimit Total Statistics")
RATELIMIT_RESET = Gauge("ratelimit_reset", "Ratelimit Seconds Till Reset")


@dataclass(frozen=True)
class RateLimitSnapshot:
    """Quota counters from one response. ``None`` means "unknown", never zero."""

    used: int | None = None
    remaining: int | None = None
    total: int | None = None
    reset: datetime | None = None

    def seconds_until_reset(self, now: datetime | None = None) -> int | None:
        if self.reset is None:
            return None
        now = now or datetime.now(timezone.utc)
        return int((self.reset - now).total_seconds())


def parse_header_int(headers: Mapping[str, str], name: str) -> int | None:
    """Read header *name* as an integer.

    A missing or unparseable value yields ``None`` and is logged; it does
    not make the whole extraction fail.
    """
    value = headers.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except (ValueError, TypeError):
        log.warning("ratelimit.bad_header", header=name, value=value)
        return None


def parse_rate_limit(headers: Mapping[str, str]) -> RateLimitSnapshot:
    """Extract a :class:`RateLimitSnapshot` from response headers.

    *headers* should be case-insensitive (``httpx.Headers``) or use
    GitHub's canonical ``X-RateLimit-*`` casing.
    """
    reset_ts = parse_header_int(headers, "X-RateLimit-Reset")
    reset = None
    if reset_ts is not None:
        try:
            reset = datetime.fromtimestamp(reset_ts, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            log.warning("ratelimit.bad_header", header="X-RateLimit-Reset", value=reset_ts)
    return RateLimitSnapshot(
        used=parse_header_int(headers, "X-RateLimit-Used"),
        remaining=parse_header_int(headers, "X-RateLimit-Remaining"),
        total=parse_header_int(headers, "X-RateLimit-Limit"),
        reset=reset,
    )


class RateLimitTracker:
    """Holds the latest observed snapshot and mirrors it into gauges."""

    def __init__(self, threshold: int = LOW_QUOTA_THRESHOLD) -> None:
        self.threshold = threshold
        self.snapshot = RateLimitSnapshot()

    @property
    def remaining(self) -> int | None:
        return self.snapshot.remaining

    def observe(self, headers: Mapping[str, str]) -> RateLimitSnapshot:
        """Replace the snapshot with the one carried by *headers*.

        Responses without any rate-limit header leave the snapshot as is.
        """
        if not any(name in headers for name in _HEADERS):
            return self.snapshot
        snapshot = parse_rate_limit(headers)
        self.snapshot = snapshot
        self._set_gauges(snapshot)
        log.debug(
            "ratelimit.observed",
            used=snapshot.used,
            remaining=snapshot.remaining,
            total=snapshot.total,
            reset=snapshot.reset.isoformat() if snapshot.reset else None,
        )
        return snapshot

    def is_low(self, now: datetime | None = None) -> bool:
        """Whether polling should pause.

        Unknown remaining quota is not low. Once the reset time has passed
        the stored counters are stale and the quota counts as replenished.
        """
        remaining = self.snapshot.remaining
        if remaining is None or remaining >= self.threshold:
            return False
        reset = self.snapshot.reset
        if reset is not None and (now or datetime.now(timezone.utc)) >= reset:
            return False
        return True

    @staticmethod
    def _set_gauges(snapshot: RateLimitSnapshot) -> None:
        if snapshot.used is not None:
            RATELIMIT_USED.set(snapshot.used)
        if snapshot.remaining is not None:
            RATELIMIT_REMAINING.set(snapshot.remaining)
        if snapshot.total is not None:
            RATELIMIT_TOTAL.set(snapshot.total)
        seconds = snapshot.seconds_until_reset()
        if seconds is not None:
            RATELIMIT_RESET.set(seconds)
