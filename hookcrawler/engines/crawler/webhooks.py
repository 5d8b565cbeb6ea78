"""Ensure each crawled repository has the pull-request webhook registered."""

from __future__ import annotations

import structlog

from hookcrawler.engines.crawler.github_client import GitHubClient
from hookcrawler.engines.crawler.models import Webhook, WebhookOutcome

log = structlog.get_logger("hookcrawler.webhooks")

WEBHOOK_EVENTS = ["pull_request"]


class WebhookReconciler:
    """Creates the expected webhook on a repository when it is missing.

    A repository is considered configured as soon as any of its hooks
    targets the expected URL; content type, active flag and subscribed
    events of an existing hook are left untouched. Only the first page of
    hooks is inspected.
    """

    def __init__(self, client: GitHubClient, webhook_url: str, *, page_size: int = 0) -> None:
        self._client = client
        self.webhook_url = webhook_url
        self.page_size = page_size

    def desired_hook(self) -> dict:
        return {
            "name": "web",
            "active": True,
            "events": list(WEBHOOK_EVENTS),
            "config": {"url": self.webhook_url, "content_type": "json"},
        }

    async def reconcile(self, repo_full_name: str) -> WebhookOutcome:
        """Look up the hooks of *repo_full_name* and create ours if absent.

        GitHub errors propagate to the caller.
        """
        if not self.webhook_url:
            return WebhookOutcome.DISABLED

        hooks_url = f"/repos/{repo_full_name}/hooks"
        list_url = hooks_url
        if self.page_size > 0:
            list_url = f"{hooks_url}?per_page={self.page_size}"

        hooks, _ = await self._client.get_page(list_url, Webhook)
        if any(hook.config.url == self.webhook_url for hook in hooks):
            log.debug("webhook.exists", repository=repo_full_name, url=self.webhook_url)
            return WebhookOutcome.EXISTS

        created = await self._client.post(hooks_url, self.desired_hook(), Webhook)
        log.info("webhook.created", repository=repo_full_name, webhook=str(created))
        return WebhookOutcome.CREATED
