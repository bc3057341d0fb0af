"""teamcity-queue — queue TeamCity builds and wait for them from Python."""

from teamcity_queue.__version__ import __version__

from teamcity_queue.client.base import RemoteClient
from teamcity_queue.client.mock import MockTeamCityClient
from teamcity_queue.client.teamcity import TeamCityClient
from teamcity_queue.core.config import PollerConfig, QueueBuildConfig, TeamCityConfig
from teamcity_queue.core.constants import BuildOutcome, BuildState
from teamcity_queue.core.exceptions import (
    AmbiguousTargetError,
    AuthenticationError,
    CancelledError,
    NotFoundError,
    RemoteRejectedError,
    TeamCityError,
    TransportError,
    ValidationError,
)
from teamcity_queue.core.types import (
    BuildHandle,
    BuildStatus,
    BuildTarget,
    BuildType,
    FinalStatus,
    ProgressSnapshot,
    Project,
    QueueRequest,
    QueueResult,
)
from teamcity_queue.trigger.orchestrator import BuildQueuer, queue_build, queue_build_sync
from teamcity_queue.trigger.poller import CompletionPoller
from teamcity_queue.trigger.resolver import TargetResolver
from teamcity_queue.trigger.sinks import LogSink, StructlogLogSink
from teamcity_queue.trigger.submitter import BuildSubmitter
from teamcity_queue.utils.logging import configure_logging, get_logger

__all__ = [
    "__version__",
    # Entry points
    "BuildQueuer",
    "queue_build",
    "queue_build_sync",
    # Components
    "TargetResolver",
    "BuildSubmitter",
    "CompletionPoller",
    # Clients
    "RemoteClient",
    "TeamCityClient",
    "MockTeamCityClient",
    # Config
    "TeamCityConfig",
    "QueueBuildConfig",
    "PollerConfig",
    # Types
    "BuildState",
    "BuildOutcome",
    "BuildTarget",
    "BuildType",
    "Project",
    "QueueRequest",
    "BuildHandle",
    "BuildStatus",
    "ProgressSnapshot",
    "FinalStatus",
    "QueueResult",
    # Sinks
    "LogSink",
    "StructlogLogSink",
    # Exceptions
    "TeamCityError",
    "ValidationError",
    "NotFoundError",
    "AmbiguousTargetError",
    "RemoteRejectedError",
    "TransportError",
    "AuthenticationError",
    "CancelledError",
    # Logging
    "configure_logging",
    "get_logger",
]
