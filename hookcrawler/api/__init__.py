"""hookcrawler HTTP surface: FastAPI application factory.

Serves health and Prometheus metrics endpoints; the crawler itself is
started and stopped by the application lifespan.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from hookcrawler.core.config import Settings
from hookcrawler.core.logging import setup_logging
from hookcrawler.engines.crawler.crawler import Crawler
from hookcrawler.engines.crawler.github_client import GitHubClient
from hookcrawler.engines.crawler.ratelimit import RateLimitTracker
from hookcrawler.engines.crawler.webhooks import WebhookReconciler
from hookcrawler.engines.indexer.writer import IndexWriter
from hookcrawler.scheduler import Scheduler, create_scheduler

logger = structlog.get_logger(__name__)

FatalHandler = Callable[[BaseException], None]


async def _watch(scheduler: Scheduler, on_fatal: FatalHandler | None) -> None:
    """Report a loop that died on a fatal error to *on_fatal*."""
    try:
        await scheduler.wait()
    except Exception as exc:
        logger.critical("scheduler.fatal", error=str(exc))
        if on_fatal is not None:
            on_fatal(exc)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: check the index, start crawling. Shutdown: stop and close clients."""
    settings: Settings = app.state.settings
    github = settings.github

    client = GitHubClient(
        github.token,
        api_url=github.api_url,
        tracker=RateLimitTracker(),
        timeout=github.timeout,
        transport=app.state.github_transport,
    )
    writer = IndexWriter.from_settings(settings.elastic, transport=app.state.elastic_transport)
    try:
        await writer.ensure_index()

        reconciler = WebhookReconciler(
            client, github.webhook_url, page_size=github.webhook_page_size
        )
        if not github.webhook_url:
            logger.info("webhook.reconciliation_disabled")
        crawler = Crawler(
            client,
            writer,
            reconciler,
            pr_page_size=github.pr_page_size,
            pr_max_pages=github.pr_max_pages,
        )
        scheduler = create_scheduler(crawler, interval=settings.crawl_interval)
        app.state.crawler = crawler
        app.state.scheduler = scheduler

        await scheduler.start()
        watcher = asyncio.create_task(_watch(scheduler, app.state.on_fatal))
        try:
            yield
        finally:
            watcher.cancel()
            await asyncio.gather(watcher, return_exceptions=True)
            await scheduler.stop()
    finally:
        await client.close()
        await writer.close()


def create_app(
    settings: Settings,
    *,
    on_fatal: FatalHandler | None = None,
    github_transport: httpx.AsyncBaseTransport | None = None,
    elastic_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build and return the FastAPI application.

    *on_fatal* is called when the crawler stops on an unrecoverable error
    (the GitHub credential was refused), so the host can shut down. The
    transports replace the network for GitHub and the search engine.
    """
    setup_logging(settings.log_level, settings.log_format)

    app = FastAPI(title="hookcrawler", lifespan=_lifespan)
    app.state.settings = settings
    app.state.on_fatal = on_fatal
    app.state.github_transport = github_transport
    app.state.elastic_transport = elastic_transport

    @app.get("/health", tags=["ops"])
    async def health() -> JSONResponse:
        return JSONResponse({"status": "UP"})

    @app.get("/", include_in_schema=False)
    async def root() -> PlainTextResponse:
        return PlainTextResponse(
            f"hookcrawler: GitHub pull request crawler, webhook path {settings.github.endpoint}"
        )

    if settings.metrics_enabled:

        @app.get(settings.metrics_endpoint, tags=["ops"])
        async def metrics() -> Response:
            return Response(generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)

    return app
