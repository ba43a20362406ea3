"""Structured logging setup using structlog.

One shared processor chain (context vars, log level, stack info, ISO
timestamps) feeds either a coloured console renderer for local work or a
JSON renderer for production.  ``APP_ENV=production`` switches to JSON
automatically; ``json_output=True`` forces it.

Standard-library ``logging`` is routed through the same chain so that
uvicorn, httpx and chromadb records look like our own events.
"""

from __future__ import annotations

import logging
import os
import sys

import structlog

# Third-party loggers that are chatty at INFO and only useful when debugging.
_QUIET_LOGGERS = ("httpx", "httpcore", "chromadb", "openai")


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def _select_renderer(json_output: bool) -> structlog.types.Processor:
    use_json = json_output or os.environ.get("APP_ENV", "development") == "production"
    if use_json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=True)


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> structlog.BoundLogger:
    """Configure structlog and bridge the stdlib root logger into it.

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR).
        json_output: Force JSON output regardless of ``APP_ENV``.

    Returns:
        A configured structlog BoundLogger.
    """
    level = log_level.upper()
    shared = _shared_processors()
    renderer = _select_renderer(json_output)

    structlog.configure(
        processors=[*shared, renderer],
        # Filtering bound loggers drop below-threshold events before any
        # processor runs.
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *shared,
            renderer,
        ],
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    if level != "DEBUG":
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a structlog logger bound with *name*.

    Configures logging with defaults on first use so modules imported
    outside the application factory (tests, scripts) still log sensibly.
    """
    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(logger_name=name)
