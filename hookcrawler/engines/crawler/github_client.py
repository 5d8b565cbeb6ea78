"""Async GitHub REST client: typed pages, Link pagination, rate-limit capture."""

from __future__ import annotations

import re
from typing import Any, TypeVar

import httpx
import pydantic
import structlog
from pydantic import BaseModel, TypeAdapter

from hookcrawler.engines.crawler.ratelimit import RateLimitTracker

log = structlog.get_logger("hookcrawler.github")

M = TypeVar("M", bound=BaseModel)

_NEXT_LINK_RE = re.compile(r'<([^>]+)>;\s*rel="next"')

API_VERSION = "2022-11-28"


class GitHubError(Exception):
    """Base class for GitHub API failures."""


class UnauthorizedError(GitHubError):
    """GitHub answered 401: the configured credential is not accepted."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"not authorized: {url}")


class StatusNotAcceptedError(GitHubError):
    """GitHub answered with a status outside the accepted set."""

    def __init__(self, status_code: int, url: str) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(f"status {status_code} not accepted: {url}")


class DecodeError(GitHubError):
    """The response body does not match the expected shape."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        super().__init__(f"cannot decode response from {url}: {reason}")


class GitHubClient:
    """Thin async wrapper around the GitHub REST API.

    Every response that carries rate-limit headers updates *tracker*,
    including error responses. No request is retried.
    """

    def __init__(
        self,
        token: str,
        *,
        api_url: str = "https://api.github.com",
        tracker: RateLimitTracker | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.tracker = tracker or RateLimitTracker()
        self._client = httpx.AsyncClient(
            base_url=api_url,
            headers={
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
                "Authorization": f"Bearer {token}",
            },
            timeout=timeout,
            transport=transport,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def get_page(self, url: str, model: type[M]) -> tuple[list[M], str]:
        """GET one page and decode it as a list of *model*.

        Returns ``(items, next_url)``; *next_url* is ``""`` when the
        ``Link`` header has no ``rel="next"`` entry.
        """
        response = await self._send("GET", url, accepted=(200,))
        items = _decode(TypeAdapter(list[model]), response, url)
        next_url = self._parse_next_link(response.headers.get("Link", "")) or ""
        log.debug("github.page", url=url, size=len(items), has_next=bool(next_url))
        return items, next_url

    async def get_all(self, url: str, model: type[M], *, max_pages: int = 0) -> list[M]:
        """Follow ``next`` links from *url*, concatenating pages in order.

        *max_pages* of 0 means no bound.
        """
        results: list[M] = []
        next_url = url
        pages = 0
        while next_url:
            page, next_url = await self.get_page(next_url, model)
            results.extend(page)
            pages += 1
            if max_pages and pages >= max_pages:
                if next_url:
                    log.info("github.max_pages", url=url, pages=pages)
                break
        return results

    async def post(self, url: str, payload: dict[str, Any], model: type[M]) -> M:
        """POST *payload* as JSON and decode the single-object response."""
        # Creation endpoints answer 201; 200 is accepted as well.
        response = await self._send("POST", url, json=payload, accepted=(200, 201))
        return _decode(TypeAdapter(model), response, url)

    # ── internal ───────────────────────────────────────────────────────────

    async def _send(
        self,
        method: str,
        url: str,
        *,
        json: dict[str, Any] | None = None,
        accepted: tuple[int, ...],
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, url, json=json)
        except httpx.HTTPError as exc:
            raise GitHubError(f"{method} {url} failed: {type(exc).__name__}: {exc}") from exc

        self.tracker.observe(response.headers)

        if response.status_code == 401:
            raise UnauthorizedError(url)
        if response.status_code not in accepted:
            log.debug(
                "github.status_error",
                method=method,
                url=url,
                status=response.status_code,
                body=response.text[:500],
            )
            raise StatusNotAcceptedError(response.status_code, url)
        return response

    @staticmethod
    def _parse_next_link(link_header: str) -> str | None:
        """Extract the ``next`` URL from a GitHub ``Link`` header."""
        match = _NEXT_LINK_RE.search(link_header)
        return match.group(1) if match else None


def _decode(adapter: TypeAdapter[Any], response: httpx.Response, url: str) -> Any:
    try:
        return adapter.validate_json(response.content)
    except pydantic.ValidationError as exc:
        log.error("github.decode_failed", url=url, body=response.text[:500])
        raise DecodeError(url, f"{exc.error_count()} validation error(s)") from exc
