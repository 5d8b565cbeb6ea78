"""Pull request → canonical event conversion and deterministic document IDs."""

from __future__ import annotations

import hashlib
import uuid
from datetime import datetime, timezone
from typing import Any

from hookcrawler.engines.crawler.models import PullRequest, PullRequestEvent

# Distinguishes crawled events from ones a webhook delivery would carry.
PERIODIC_ACTION = "periodic_pull"

# Dropped from documents when None; the *_EMPTY ones also when an empty list.
_EVENT_OMIT = ("assignee",)
_PR_OMIT_ABSENT = ("assignee", "assignees", "requested_teams")
_PR_OMIT_EMPTY = ("requested_reviewers", "labels")


class NormalizeError(Exception):
    """The pull request lacks data required for a canonical event."""


def generate_event_id(repo_full_name: str, pr_id: int, number: int, state: str) -> str:
    """Return a UUID-shaped ID derived from the four identifying fields.

    The MD5 digest of the concatenated fields is used verbatim as the UUID's
    16 bytes. A state change (open → closed) yields a new ID, so every state
    a pull request passes through is kept as its own document.
    """
    digest = hashlib.md5(
        f"{repo_full_name}{pr_id}{number}{state}".encode(), usedforsecurity=False
    ).digest()
    return str(uuid.UUID(bytes=digest))


def event_id(pr: PullRequest) -> str:
    """Deterministic document ID for *pr*, keyed on its base repository."""
    if pr.base.repo is None:
        raise NormalizeError(f"pull request #{pr.number} has no base repository")
    return generate_event_id(pr.base.repo.full_name, pr.id, pr.number, pr.state)


def to_event(pr: PullRequest) -> PullRequestEvent:
    """Build the canonical event for *pr*.

    The timestamp starts as the PR's creation time; :func:`serialize_event`
    replaces it with the indexing time.
    """
    if pr.base.repo is None:
        raise NormalizeError(f"pull request #{pr.number} has no base repository")
    return PullRequestEvent(
        timestamp=pr.created_at,
        action=PERIODIC_ACTION,
        number=pr.number,
        pull_request=pr,
        repository=pr.base.repo,
        sender=pr.head.user,
        assignee=pr.assignee,
    )


def _omitted(model: object, absent: tuple[str, ...], empty: tuple[str, ...]) -> set[str]:
    names = {name for name in absent if getattr(model, name) is None}
    names.update(name for name in empty if not getattr(model, name))
    return names


def serialize_event(event: PullRequestEvent, now: datetime | None = None) -> bytes:
    """Stamp *event* with the current time and return its JSON document.

    Unknown values are written as ``null``, except for the optional
    assignment fields in ``_EVENT_OMIT`` and ``_PR_OMIT_*``, which are left
    out of the document when unset.
    """
    event.timestamp = now or datetime.now(timezone.utc)
    exclude: dict[str, Any] = dict.fromkeys(_omitted(event, _EVENT_OMIT, ()), True)
    pr_exclude = _omitted(event.pull_request, _PR_OMIT_ABSENT, _PR_OMIT_EMPTY)
    if pr_exclude:
        exclude["pull_request"] = pr_exclude
    return event.model_dump_json(exclude=exclude or None).encode()
