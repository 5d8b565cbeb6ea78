"""Crawler engine: GitHub polling, normalization and webhook reconciliation."""

from hookcrawler.engines.crawler.crawler import Crawler, is_retained
from hookcrawler.engines.crawler.github_client import (
    DecodeError,
    GitHubClient,
    GitHubError,
    StatusNotAcceptedError,
    UnauthorizedError,
)
from hookcrawler.engines.crawler.models import (
    PullRequest,
    PullRequestEvent,
    Repository,
    TickResult,
    Webhook,
    WebhookOutcome,
)
from hookcrawler.engines.crawler.normalizer import (
    NormalizeError,
    event_id,
    generate_event_id,
    serialize_event,
    to_event,
)
from hookcrawler.engines.crawler.ratelimit import RateLimitSnapshot, RateLimitTracker
from hookcrawler.engines.crawler.webhooks import WebhookReconciler

__all__ = [
    "Crawler",
    "DecodeError",
    "GitHubClient",
    "GitHubError",
    "NormalizeError",
    "PullRequest",
    "PullRequestEvent",
    "RateLimitSnapshot",
    "RateLimitTracker",
    "Repository",
    "StatusNotAcceptedError",
    "TickResult",
    "UnauthorizedError",
    "Webhook",
    "WebhookOutcome",
    "WebhookReconciler",
    "event_id",
    "generate_event_id",
    "is_retained",
    "serialize_event",
    "to_event",
]
