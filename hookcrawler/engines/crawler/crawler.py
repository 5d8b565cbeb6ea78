"""Round-robin crawl state machine: one repository per tick.

Each tick runs in one of three states:

* **list empty**: the repository list is fetched again (every page) and the
  cursor reset to the first entry. An unauthorized answer is fatal and
  propagates; any other failure abandons the tick.
* **quota low**: the remaining GitHub quota is below the threshold; the
  condition is logged once on entry and no repository is processed.
* **processing**: the repository under the cursor has its pull requests
  fetched, filtered, normalized and indexed, then its webhook reconciled.
  The cursor moves on; past the last repository the list is dropped so the
  next tick lists again.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import structlog

from hookcrawler.engines.crawler.github_client import (
    GitHubClient,
    GitHubError,
    UnauthorizedError,
)
from hookcrawler.engines.crawler.models import (
    PullRequest,
    Repository,
    TickResult,
    WebhookOutcome,
)
from hookcrawler.engines.crawler.normalizer import (
    NormalizeError,
    event_id,
    serialize_event,
    to_event,
)
from hookcrawler.engines.crawler.webhooks import WebhookReconciler
from hookcrawler.engines.indexer.writer import IndexOutcome, IndexWriter

log = structlog.get_logger("hookcrawler.crawler")

RETENTION = timedelta(hours=48)
REPOSITORIES_URL = "/user/repos"


def is_retained(pr: PullRequest, now: datetime, retention: timedelta = RETENTION) -> bool:
    """Whether *pr* should be indexed.

    Open pull requests always are; closed ones only when they were closed
    no more than *retention* ago.
    """
    if pr.state != "closed":
        return True
    if pr.closed_at is None:
        return False
    return now - pr.closed_at <= retention


class Crawler:
    """Owns the crawl cursor: repository list, position and quota notice."""

    def __init__(
        self,
        client: GitHubClient,
        writer: IndexWriter,
        reconciler: WebhookReconciler,
        *,
        pr_page_size: int = 50,
        pr_max_pages: int = 0,
        retention: timedelta = RETENTION,
    ) -> None:
        self._client = client
        self._writer = writer
        self._reconciler = reconciler
        self.pr_page_size = pr_page_size
        self.pr_max_pages = pr_max_pages
        self.retention = retention

        self.repositories: list[Repository] = []
        self.cursor = 0
        self.low_quota_notified = False

    # ── public ─────────────────────────────────────────────────────────────

    async def tick(self, now: datetime | None = None) -> TickResult:
        """Run one step of the state machine.

        Raises :class:`UnauthorizedError` when the repository listing is
        refused; every other failure is logged and reported in the result.
        """
        now = now or datetime.now(timezone.utc)
        result = TickResult()

        if not self.repositories:
            try:
                repositories = await self.list_repositories()
            except UnauthorizedError:
                log.critical("crawler.unauthorized", url=REPOSITORIES_URL)
                raise
            except GitHubError as exc:
                log.error("crawler.list_failed", url=REPOSITORIES_URL, error=str(exc))
                result.errors.append(str(exc))
                return result
            self._reset(repositories, now)
            result.listed = len(repositories)
            if not repositories:
                return result

        tracker = self._client.tracker
        if tracker.is_low(now):
            if not self.low_quota_notified:
                log.info("crawler.quota_low", remaining=tracker.remaining)
                self.low_quota_notified = True
            result.quota_low = True
            return result
        self.low_quota_notified = False

        repository = self.repositories[self.cursor]
        result.repository = repository.full_name
        try:
            await self._process(repository, result, now)
        finally:
            self._advance()

        log.info(
            "crawler.tick",
            repository=repository.full_name,
            fetched=result.fetched,
            indexed=result.indexed,
            existing=result.existing,
            retention_skipped=result.retention_skipped,
            failed=result.failed,
            webhook=result.webhook.value if result.webhook else None,
        )
        return result

    async def list_repositories(self) -> list[Repository]:
        """All repositories the credential has explicit access to."""
        return await self._client.get_all(REPOSITORIES_URL, Repository)

    def pulls_url(self, repo_full_name: str) -> str:
        url = f"/repos/{repo_full_name}/pulls?state=all"
        if self.pr_page_size > 0:
            url += f"&per_page={self.pr_page_size}"
        return url

    # ── internal ───────────────────────────────────────────────────────────

    def _reset(self, repositories: list[Repository], now: datetime) -> None:
        self.repositories = repositories
        self.cursor = 0
        new_repos = 0
        for idx, repo in enumerate(repositories):
            age = now - repo.created_at
            if age < self.retention:
                new_repos += 1
            log.debug("crawler.listed", idx=idx, repository=repo.full_name, age=str(age))
        log.info("crawler.list_refreshed", size=len(repositories), new=new_repos)

    def _advance(self) -> None:
        if self.cursor + 1 >= len(self.repositories):
            self.repositories = []
            self.cursor = 0
        else:
            self.cursor += 1

    async def _process(self, repository: Repository, result: TickResult, now: datetime) -> None:
        url = self.pulls_url(repository.full_name)
        try:
            pulls = await self._client.get_all(url, PullRequest, max_pages=self.pr_max_pages)
        except GitHubError as exc:
            log.error(
                "crawler.pulls_failed",
                repository=repository.full_name,
                url=url,
                error=str(exc),
            )
            result.errors.append(str(exc))
            return

        result.fetched = len(pulls)
        for pr in pulls:
            if not is_retained(pr, now, self.retention):
                log.debug(
                    "crawler.old_closed_pr",
                    repository=repository.full_name,
                    number=pr.number,
                    title=pr.title,
                )
                result.retention_skipped += 1
                continue

            outcome = await self._index(repository, pr)
            if outcome is IndexOutcome.CREATED:
                result.indexed += 1
            elif outcome is IndexOutcome.EXISTS:
                result.existing += 1
            else:
                result.failed += 1

        try:
            result.webhook = await self._reconciler.reconcile(repository.full_name)
        except GitHubError as exc:
            log.error(
                "crawler.webhook_failed",
                repository=repository.full_name,
                error=str(exc),
            )
            result.errors.append(str(exc))
            result.webhook = WebhookOutcome.FAILED

    async def _index(self, repository: Repository, pr: PullRequest) -> IndexOutcome:
        try:
            document_id = event_id(pr)
            body = serialize_event(to_event(pr))
        except (NormalizeError, ValueError) as exc:
            log.error(
                "crawler.normalize_failed",
                repository=repository.full_name,
                number=pr.number,
                title=pr.title,
                error=str(exc),
            )
            return IndexOutcome.FAILED

        outcome = await self._writer.create(document_id, body)
        if outcome is IndexOutcome.CREATED:
            log.info(
                "crawler.pushed",
                repository=repository.full_name,
                number=pr.number,
                title=pr.title,
                state=pr.state,
                document_id=document_id,
            )
        elif outcome is IndexOutcome.FAILED:
            log.error(
                "crawler.push_failed",
                repository=repository.full_name,
                number=pr.number,
                title=pr.title,
                document_id=document_id,
            )
        return outcome
