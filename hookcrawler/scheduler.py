"""Scheduler that drives the crawler on a fixed interval with start/stop control."""

from __future__ import annotations

import asyncio
import dataclasses
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import structlog

from hookcrawler.engines.crawler.crawler import Crawler
from hookcrawler.engines.crawler.github_client import UnauthorizedError

logger = structlog.get_logger(__name__)


class EngineLoop:
    """Single engine loop waking on trigger or interval timeout.

    Runs never overlap: the next wait only starts once the previous run has
    returned. A mapping returned by *run_fn* is added to the cycle log line.
    Exceptions listed in *fatal* end the loop and propagate;
    anything else is logged and the loop carries on.
    """

    def __init__(
        self,
        name: str,
        run_fn: Callable[[], Awaitable[Mapping[str, Any] | None]],
        interval: float,
        *,
        fatal: tuple[type[BaseException], ...] = (),
    ) -> None:
        self.name = name
        self.run_fn = run_fn
        self.interval = interval
        self.fatal = fatal
        self.trigger = asyncio.Event()
        self.cycles = 0

    async def _wait(self) -> str:
        try:
            await asyncio.wait_for(self.trigger.wait(), timeout=self.interval)
        except asyncio.TimeoutError:
            return "interval"
        self.trigger.clear()
        return "trigger"

    async def loop(self) -> None:
        """Wait, run once, log the cycle; repeat until cancelled or fatal."""
        while True:
            woke_by = await self._wait()
            self.cycles += 1
            started = time.monotonic()
            try:
                summary = await self.run_fn()
            except self.fatal:
                logger.critical("engine.fatal", engine=self.name, cycle=self.cycles, exc_info=True)
                raise
            except Exception:
                logger.exception("engine.error", engine=self.name, cycle=self.cycles)
                continue
            logger.info(
                "engine.cycle",
                engine=self.name,
                cycle=self.cycles,
                woke_by=woke_by,
                elapsed=round(time.monotonic() - started, 3),
                **(summary or {}),
            )


class Scheduler:
    """Manages the lifecycle of EngineLoop tasks."""

    def __init__(self, loops: list[EngineLoop]) -> None:
        self._loops = loops
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def start(self) -> None:
        """Start all loops as asyncio tasks and run each one right away."""
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(loop.loop(), name=f"engine-{loop.name}") for loop in self._loops
        ]
        for loop in self._loops:
            loop.trigger.set()
        logger.info("scheduler.started", engines=[loop.name for loop in self._loops])

    async def wait(self) -> None:
        """Block until a loop ends; re-raises the fatal error that ended it."""
        if not self._tasks:
            return
        done, _ = await asyncio.wait(self._tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                raise task.exception()  # type: ignore[misc]

    async def stop(self) -> None:
        """Cancel all loops and wait for them to exit."""
        if not self._tasks:
            return
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("scheduler.stopped")


def create_scheduler(crawler: Crawler, *, interval: float = 600) -> Scheduler:
    """Build a Scheduler ticking *crawler* every *interval* seconds."""

    async def _tick() -> dict[str, Any]:
        result = await crawler.tick()
        summary = dataclasses.asdict(result)
        summary["errors"] = len(result.errors)
        if result.webhook is not None:
            summary["webhook"] = result.webhook.value
        return summary

    crawl_loop = EngineLoop("crawler", _tick, interval, fatal=(UnauthorizedError,))
    return Scheduler([crawl_loop])
