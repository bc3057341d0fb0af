"""Queue-and-wait pipeline: resolver, submitter, poller and orchestrator."""

from __future__ import annotations

from teamcity_queue.trigger.orchestrator import BuildQueuer, queue_build, queue_build_sync
from teamcity_queue.trigger.poller import CompletionPoller
from teamcity_queue.trigger.resolver import TargetResolver
from teamcity_queue.trigger.sinks import LogSink, StructlogLogSink
from teamcity_queue.trigger.submitter import BuildSubmitter, parse_additional_parameters

__all__ = [
    "BuildQueuer",
    "queue_build",
    "queue_build_sync",
    "TargetResolver",
    "BuildSubmitter",
    "parse_additional_parameters",
    "CompletionPoller",
    "LogSink",
    "StructlogLogSink",
]
