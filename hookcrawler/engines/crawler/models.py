"""GitHub payload models and crawler result types.

Remote payloads are pydantic models: fields GitHub may omit or send as
``null`` are ``Optional`` with an explicit ``None`` default, so an absent
value is never confused with an empty string or zero.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class User(_Payload):
    login: str
    id: int
    node_id: str | None = None
    avatar_url: str | None = None
    gravatar_id: str | None = None
    type: str | None = None
    site_admin: bool = False


class Label(_Payload):
    id: int
    node_id: str | None = None
    url: str | None = None
    name: str
    description: str | None = None
    color: str | None = None
    default: bool = False


class Team(_Payload):
    id: int
    node_id: str | None = None
    name: str
    slug: str | None = None
    description: str | None = None
    privacy: str | None = None
    url: str | None = None
    permission: str | None = None


class Repository(_Payload):
    id: int
    node_id: str | None = None
    name: str
    full_name: str
    owner: User
    private: bool = False
    html_url: str | None = None
    description: str | None = None
    fork: bool = False
    created_at: datetime
    updated_at: datetime | None = None
    pushed_at: datetime | None = None
    homepage: str | None = None
    size: int | None = None
    stargazers_count: int | None = None
    watchers_count: int | None = None
    language: str | None = None
    forks_count: int | None = None
    open_issues_count: int | None = None
    archived: bool = False
    disabled: bool = False
    is_template: bool = False
    topics: list[str] = Field(default_factory=list)
    visibility: str | None = None
    default_branch: str | None = None


class Reference(_Payload):
    label: str | None = None
    ref: str
    sha: str
    user: User | None = None
    # The repository of a deleted fork comes back as null.
    repo: Repository | None = None


class PullRequest(_Payload):
    url: str
    id: int
    node_id: str | None = None
    html_url: str | None = None
    number: int
    state: str
    locked: bool = False
    title: str
    user: User | None = None
    body: str | None = None
    created_at: datetime
    updated_at: datetime | None = None
    closed_at: datetime | None = None
    merged_at: datetime | None = None
    merge_commit_sha: str | None = None
    assignee: User | None = None
    assignees: list[User] | None = None
    requested_reviewers: list[User] | None = None
    requested_teams: list[Team] | None = None
    labels: list[Label] = Field(default_factory=list)
    draft: bool = False
    head: Reference
    base: Reference
    author_association: str | None = None
    # Only present on the single-PR endpoint, not on the list endpoint.
    merged: bool | None = None
    mergeable: bool | None = None
    rebaseable: bool | None = None
    mergeable_state: str | None = None
    merged_by: User | None = None
    comments: int | None = None
    review_comments: int | None = None
    maintainer_can_modify: bool | None = None
    commits: int | None = None
    additions: int | None = None
    deletions: int | None = None
    changed_files: int | None = None


class PullRequestEvent(_Payload):
    """Canonical event indexed for every retained pull request."""

    timestamp: datetime
    action: str
    number: int
    pull_request: PullRequest
    repository: Repository
    sender: User | None = None
    assignee: User | None = None


class WebhookConfig(_Payload):
    url: str | None = None
    content_type: str | None = None
    insecure_ssl: str | None = None


class WebhookLastResponse(_Payload):
    code: int | None = None
    status: str | None = None
    message: str | None = None


class Webhook(_Payload):
    type: str | None = None
    id: int | None = None
    name: str = "web"
    active: bool = True
    events: list[str] = Field(default_factory=list)
    config: WebhookConfig = Field(default_factory=WebhookConfig)
    updated_at: datetime | None = None
    created_at: datetime | None = None
    url: str | None = None
    test_url: str | None = None
    ping_url: str | None = None
    deliveries_url: str | None = None
    last_response: WebhookLastResponse | None = None

    def __str__(self) -> str:
        code = self.last_response.code if self.last_response else None
        return f"ID: {self.id}, URL: {self.config.url}, LastResponseCode: {code}"


# ── crawler results ───────────────────────────────────────────────────────


class WebhookOutcome(str, enum.Enum):
    DISABLED = "disabled"
    EXISTS = "exists"
    CREATED = "created"
    FAILED = "failed"


@dataclass
class TickResult:
    """Summary of a single crawler tick."""

    repository: str | None = None
    listed: int | None = None  # set when the tick refreshed the repository list
    quota_low: bool = False
    fetched: int = 0
    indexed: int = 0
    existing: int = 0
    retention_skipped: int = 0
    failed: int = 0
    webhook: WebhookOutcome | None = None
    errors: list[str] = field(default_factory=list)
