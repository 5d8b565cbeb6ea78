"""structlog on top of stdlib logging, so uvicorn and httpx records share one output."""

from __future__ import annotations

import logging
import logging.config

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

import hookcrawler

LOG_FORMATS = ("console", "json")


def _stamp_service(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", "hookcrawler")
    event_dict.setdefault("version", hookcrawler.__version__)
    return event_dict


def _chain(fmt: str) -> tuple[list[Processor], Processor]:
    """Pre-chain shared by structlog and foreign records, plus the final renderer."""
    chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if fmt == "json":
        chain += [_stamp_service, structlog.processors.dict_tracebacks]
        return chain, structlog.processors.JSONRenderer()
    chain.append(structlog.processors.StackInfoRenderer())
    return chain, structlog.dev.ConsoleRenderer()


def setup_logging(level: str = "INFO", fmt: str = "console") -> None:
    """Route structlog and stdlib records through one handler on stdout.

    *fmt* picks the renderer: ``console`` for humans, ``json`` for log
    shippers (adds ``service``/``version`` and structured tracebacks).
    """
    log_level = level.upper()
    log_format = fmt.lower()
    if log_format not in LOG_FORMATS:
        raise ValueError(f"unknown log format {fmt!r}, expected one of {LOG_FORMATS}")

    pre_chain, renderer = _chain(log_format)

    structlog.configure(
        processors=pre_chain + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Client libraries stay at WARNING unless debugging the crawler itself.
    library_level = "DEBUG" if log_level == "DEBUG" else "WARNING"
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "hookcrawler": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": pre_chain,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        renderer,
                    ],
                },
            },
            "handlers": {
                "stdout": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stdout",
                    "formatter": "hookcrawler",
                },
            },
            "root": {"handlers": ["stdout"], "level": log_level},
            "loggers": {
                "hookcrawler": {"level": log_level},
                "uvicorn.error": {"level": "INFO"},
                "uvicorn.access": {"level": library_level},
                "httpx": {"level": library_level},
                "httpcore": {"level": library_level},
            },
        }
    )

    structlog.get_logger("hookcrawler").info(
        "logging.started", level=log_level, format=log_format
    )
