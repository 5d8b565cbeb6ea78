"""Shared fixtures for hookcrawler tests. No network access required.

GitHub is faked with ``httpx.MockTransport``: routes are registered per
(method, path) and every request is recorded so tests can count calls.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from hookcrawler.engines.crawler.github_client import GitHubClient
from hookcrawler.engines.crawler.ratelimit import RateLimitTracker

API = "https://api.github.com"


@pytest.fixture
def anyio_backend():
    return "asyncio"


# ── payload factories ─────────────────────────────────────────────────────


def user_payload(login: str = "octocat", user_id: int = 1) -> dict[str, Any]:
    return {
        "login": login,
        "id": user_id,
        "node_id": f"U_{user_id}",
        "avatar_url": f"https://avatars.githubusercontent.com/u/{user_id}",
        "type": "User",
        "site_admin": False,
    }


def repo_payload(
    full_name: str = "octo/alpha",
    *,
    repo_id: int = 100,
    created_at: str = "2024-01-01T00:00:00Z",
) -> dict[str, Any]:
    owner, name = full_name.split("/", 1)
    return {
        "id": repo_id,
        "node_id": f"R_{repo_id}",
        "name": name,
        "full_name": full_name,
        "owner": user_payload(owner, 1),
        "private": False,
        "html_url": f"https://github.com/{full_name}",
        "description": None,
        "fork": False,
        "created_at": created_at,
        "updated_at": created_at,
        "pushed_at": created_at,
        "homepage": None,
        "language": "Python",
        "topics": [],
        "visibility": "public",
        "default_branch": "main",
    }


def pr_payload(
    number: int = 1,
    *,
    repo: str = "octo/alpha",
    state: str = "open",
    pr_id: int | None = None,
    title: str | None = None,
    created_at: str = "2024-02-01T10:00:00Z",
    closed_at: str | None = None,
    assignee: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "url": f"{API}/repos/{repo}/pulls/{number}",
        "id": pr_id if pr_id is not None else 1000 + number,
        "node_id": f"PR_{number}",
        "html_url": f"https://github.com/{repo}/pull/{number}",
        "number": number,
        "state": state,
        "locked": False,
        "title": title or f"Change number {number}",
        "user": user_payload("dev", 2),
        "body": None,
        "created_at": created_at,
        "updated_at": created_at,
        "closed_at": closed_at,
        "merged_at": None,
        "merge_commit_sha": None,
        "assignee": assignee,
        "assignees": [assignee] if assignee else [],
        "requested_reviewers": [],
        "requested_teams": [],
        "labels": [],
        "draft": False,
        "head": {
            "label": "dev:feature",
            "ref": "feature",
            "sha": "a" * 40,
            "user": user_payload("dev", 2),
            "repo": repo_payload(repo),
        },
        "base": {
            "label": "octo:main",
            "ref": "main",
            "sha": "b" * 40,
            "user": user_payload("octo", 1),
            "repo": repo_payload(repo),
        },
        "author_association": "CONTRIBUTOR",
    }


def hook_payload(url: str, hook_id: int = 1) -> dict[str, Any]:
    return {
        "type": "Repository",
        "id": hook_id,
        "name": "web",
        "active": True,
        "events": ["pull_request"],
        "config": {"url": url, "content_type": "json", "insecure_ssl": "0"},
        "last_response": {"code": 200, "status": "active", "message": "OK"},
    }


# ── fake GitHub ───────────────────────────────────────────────────────────


Handler = Callable[[httpx.Request], httpx.Response]


class FakeGitHub:
    """In-memory GitHub API served through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Handler] = {}
        self.requests: list[httpx.Request] = []
        self.remaining = 4500
        self.reset = int(time.time()) + 3600

    def rate_headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": "5000",
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Used": str(5000 - self.remaining),
            "X-RateLimit-Reset": str(self.reset),
        }

    def route(
        self,
        method: str,
        path: str,
        payload: Any,
        *,
        status: int = 200,
        headers: dict[str, str] | None = None,
    ) -> None:
        def _respond(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                status, json=payload, headers={**self.rate_headers(), **(headers or {})}
            )

        self.routes[(method, path)] = _respond

    def pages(self, path: str, pages: list[list[dict[str, Any]]]) -> None:
        """Serve *pages* for GET *path*, linking each page to the next."""

        def _respond(request: httpx.Request) -> httpx.Response:
            page = int(request.url.params.get("page", "1"))
            headers = self.rate_headers()
            if page < len(pages):
                headers["Link"] = (
                    f'<{API}{path}?page={page + 1}>; rel="next", '
                    f'<{API}{path}?page={len(pages)}>; rel="last"'
                )
            return httpx.Response(200, json=pages[page - 1], headers=headers)

        self.routes[("GET", path)] = _respond

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(
                404, json={"message": "Not Found"}, headers=self.rate_headers()
            )
        return route(request)

    def client(self, tracker: RateLimitTracker | None = None) -> GitHubClient:
        return GitHubClient(
            "test-token", tracker=tracker, transport=httpx.MockTransport(self.handler)
        )

    def calls(self, method: str | None = None, prefix: str = "") -> list[str]:
        return [
            r.url.path
            for r in self.requests
            if (method is None or r.method == method) and r.url.path.startswith(prefix)
        ]


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def make_repo():
    return repo_payload


@pytest.fixture
def make_pr():
    return pr_payload


@pytest.fixture
def make_hook():
    return hook_payload
