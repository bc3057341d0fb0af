"""Log sinks for non-fatal diagnostics of a queue operation."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import structlog

logger = structlog.get_logger(__name__)


@runtime_checkable
class LogSink(Protocol):
    """Host-provided destination for human-readable progress messages."""

    def info(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...


class StructlogLogSink:
    """Default sink: forwards messages to structlog under ``teamcity.build``."""

    def __init__(self, event: str = "teamcity.build") -> None:
        self._event = event

    def info(self, message: str) -> None:
        logger.info(self._event, message=message)

    def warning(self, message: str) -> None:
        logger.warning(self._event, message=message)
