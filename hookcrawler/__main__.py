"""Entry point: ``python -m hookcrawler``."""

from __future__ import annotations

import sys

import structlog
import uvicorn

from hookcrawler.api import create_app
from hookcrawler.core.config import ConfigError, Settings

logger = structlog.get_logger("hookcrawler")


def main() -> int:
    try:
        settings = Settings.from_env()
    except ConfigError as exc:
        print(f"configuration error: {exc}", file=sys.stderr)
        return 2

    fatal: list[BaseException] = []

    def _on_fatal(exc: BaseException) -> None:
        fatal.append(exc)
        server.should_exit = True

    app = create_app(settings, on_fatal=_on_fatal)
    server = uvicorn.Server(
        uvicorn.Config(app, host="0.0.0.0", port=settings.port, log_config=None)
    )
    logger.info("server.listening", port=settings.port)
    server.run()

    # A failed startup (missing index, refused credentials) never sets started.
    if fatal or not server.started:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
