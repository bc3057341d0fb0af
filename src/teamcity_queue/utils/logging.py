from __future__ import annotations

import logging
import sys
from typing import IO, cast

import structlog

PACKAGE_LOGGER = "teamcity_queue"


class _PackageHandler(logging.StreamHandler):
    """Stream handler installed by :func:`configure_logging`."""


def configure_logging(
    level: str = "INFO",
    json: bool = True,
    *,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Send teamcity-queue's structlog events to a handler of its own.

    Only the ``teamcity_queue`` stdlib logger is touched: it gets a single
    handler (replacing one installed by an earlier call), *level*, and stops
    propagating to the root logger. Handlers of the host pipeline stay as
    they are. Levels are checked per stdlib logger, so loggers outside the
    package keep the level the host gave them.

    Args:
        level: Standard logging level string, e.g. "DEBUG", "INFO", "WARNING".
        json: If True, render JSON lines for CI log collectors; otherwise use
            the console renderer.
        stream: Where to write; defaults to ``sys.stderr``.

    Returns:
        The configured package logger.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    structlog.configure(
        processors=[structlog.stdlib.filter_by_level]
        + shared_processors
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer()
    )
    handler = _PackageHandler(stream or sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
            foreign_pre_chain=shared_processors,
        )
    )

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for existing in [h for h in package_logger.handlers if isinstance(h, _PackageHandler)]:
        package_logger.removeHandler(existing)
    package_logger.addHandler(handler)
    package_logger.setLevel(log_level)
    package_logger.propagate = False
    return package_logger


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger below the ``teamcity_queue`` namespace.

    Names outside the namespace are prefixed, so events from host plugins
    end up on the package handler too.
    """
    if name != PACKAGE_LOGGER and not name.startswith(f"{PACKAGE_LOGGER}."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
