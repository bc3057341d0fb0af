from __future__ import annotations

from enum import StrEnum


class BuildState(StrEnum):
    QUEUED = "queued"
    RUNNING = "running"
    FINISHED = "finished"
    UNKNOWN = "unknown"  # transient: malformed or missing status read


class BuildOutcome(StrEnum):
    SUCCESS = "success"
    FAILURE = "failure"
    ERROR = "error"
    CANCELLED = "cancelled"


# TeamCity ``status`` field on a finished build record.
TEAMCITY_STATUS_OUTCOMES: dict[str, BuildOutcome] = {
    "SUCCESS": BuildOutcome.SUCCESS,
    "FAILURE": BuildOutcome.FAILURE,
    "ERROR": BuildOutcome.ERROR,
    "UNKNOWN": BuildOutcome.CANCELLED,
}

DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_MAX_UNKNOWN_RETRIES = 3
