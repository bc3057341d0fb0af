"""BuildQueuer — resolve, queue and optionally wait for a TeamCity build."""

from __future__ import annotations

import asyncio
import inspect

import structlog

from teamcity_queue.client.base import RemoteClient
from teamcity_queue.client.teamcity import TeamCityClient
from teamcity_queue.core.config import PollerConfig, QueueBuildConfig, TeamCityConfig
from teamcity_queue.core.constants import BuildState
from teamcity_queue.core.exceptions import CancelledError
from teamcity_queue.core.types import BuildTarget, ProgressSnapshot, QueueResult
from teamcity_queue.trigger.poller import CompletionPoller, DelayFn, ProgressCallback
from teamcity_queue.trigger.resolver import TargetResolver
from teamcity_queue.trigger.sinks import LogSink, StructlogLogSink
from teamcity_queue.trigger.submitter import BuildSubmitter
from teamcity_queue.utils.async_helpers import run_sync, wait_or_cancel

logger = structlog.get_logger(__name__)

INITIAL_PROGRESS = ProgressSnapshot(percent_complete=None, message="Queued, no progress yet")


class BuildQueuer:
    """Queues a TeamCity build and, optionally, waits for it to finish.

    This is the single entry point for host pipelines. Each stage's first
    failure propagates unchanged, so callers can tell bad input
    (``ValidationError``/``NotFoundError``) from a server refusal
    (``RemoteRejectedError``), an outage (``TransportError``) or their own
    cancel request (``CancelledError``).

    Example::

        async with TeamCityClient(TeamCityConfig.from_env()) as tc:
            queuer = BuildQueuer(tc)
            result = await queuer.run(
                BuildTarget(project_name="Demo", build_configuration_name="CI"),
                branch_name="release/1.0",
            )
            print(result.number, result.outcome)

    :meth:`get_progress` may be called from other tasks while :meth:`run`
    is polling.
    """

    def __init__(
        self,
        client: RemoteClient,
        log_sink: LogSink | None = None,
        poller_config: PollerConfig | None = None,
        delay: DelayFn = asyncio.sleep,
        *,
        log_progress: bool = False,
    ) -> None:
        self._log_sink = log_sink or StructlogLogSink()
        self._resolver = TargetResolver(client)
        self._submitter = BuildSubmitter(client)
        self._poller = CompletionPoller(client, self._log_sink, poller_config, delay)
        self._log_progress = log_progress
        self._progress = INITIAL_PROGRESS

    def get_progress(self) -> ProgressSnapshot:
        """Return the most recent progress snapshot."""
        return self._progress

    async def run(
        self,
        target: BuildTarget,
        *,
        branch_name: str | None = None,
        additional_parameters: str | None = None,
        wait_for_completion: bool = True,
        cancel_event: asyncio.Event | None = None,
        on_progress: ProgressCallback | None = None,
        log_progress: bool | None = None,
    ) -> QueueResult:
        """Resolve *target*, queue a build and optionally wait for it.

        Args:
            target: Build configuration id, or project and configuration names.
            branch_name: Branch to build; empty means the default branch.
            additional_parameters: Extra TeamCity API parameters as a raw
                query string.
            wait_for_completion: When ``False`` return right after queueing,
                without ever asking TeamCity for the build status.
            cancel_event: Set it to stop waiting. The build stays queued or
                running on the server.
            on_progress: Optional callback receiving every new snapshot.
            log_progress: Also write every snapshot message to the log
                sink; defaults to the value given at construction.

        Returns:
            The build id and number; outcome and details when waited for.
        """
        self._progress = INITIAL_PROGRESS
        if log_progress is None:
            log_progress = self._log_progress
        self._raise_if_cancelled(cancel_event)

        build_configuration_id = await wait_or_cancel(
            self._resolver.resolve(target), cancel_event
        )
        self._raise_if_cancelled(cancel_event)

        handle = await self._submitter.submit(
            build_configuration_id,
            branch_name=branch_name,
            additional_parameters=additional_parameters,
        )
        self._log_sink.info(
            f"Build of {build_configuration_id} queued (id {handle.id})."
        )
        logger.info(
            "queuer.submitted",
            build_configuration_id=build_configuration_id,
            build_id=handle.id,
            wait_for_completion=wait_for_completion,
        )

        if not wait_for_completion:
            return QueueResult(
                build_id=handle.id,
                number=handle.number or "",
                state=BuildState.QUEUED,
                web_url=handle.web_url,
            )

        async def _record(snapshot: ProgressSnapshot) -> None:
            self._progress = snapshot
            if log_progress:
                self._log_sink.info(snapshot.message)
            if on_progress is not None:
                result = on_progress(snapshot)
                if inspect.isawaitable(result):
                    await result

        final = await self._poller.poll_until_done(
            handle, cancel_event=cancel_event, on_progress=_record
        )
        self._log_sink.info(f"Build #{final.number} finished: {final.outcome}.")
        return QueueResult(
            build_id=final.build_id,
            number=final.number,
            state=BuildState.FINISHED,
            outcome=final.outcome,
            details=final.details,
            web_url=final.web_url,
        )

    async def run_config(
        self,
        config: QueueBuildConfig,
        *,
        cancel_event: asyncio.Event | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> QueueResult:
        """Run with the inputs of a :class:`QueueBuildConfig`."""
        return await self.run(
            config.to_target(),
            branch_name=config.branch_name,
            additional_parameters=config.additional_parameters,
            wait_for_completion=config.wait_for_completion,
            cancel_event=cancel_event,
            on_progress=on_progress,
            log_progress=self._log_progress or config.log_progress,
        )

    @staticmethod
    def _raise_if_cancelled(cancel_event: asyncio.Event | None) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise CancelledError("Operation cancelled by caller.", code="cancelled")


async def queue_build(
    connection: TeamCityConfig,
    config: QueueBuildConfig,
    *,
    cancel_event: asyncio.Event | None = None,
    on_progress: ProgressCallback | None = None,
    log_sink: LogSink | None = None,
    poller_config: PollerConfig | None = None,
) -> QueueResult:
    """Open a :class:`TeamCityClient` for *connection* and queue one build.

    Usage::

        result = await queue_build(
            TeamCityConfig.from_env(),
            QueueBuildConfig(project_name="Demo", build_configuration_name="CI"),
        )
    """
    async with TeamCityClient(connection) as client:
        queuer = BuildQueuer(client, log_sink=log_sink, poller_config=poller_config)
        return await queuer.run_config(
            config, cancel_event=cancel_event, on_progress=on_progress
        )


def queue_build_sync(
    connection: TeamCityConfig,
    config: QueueBuildConfig,
    *,
    log_sink: LogSink | None = None,
    poller_config: PollerConfig | None = None,
) -> QueueResult:
    """Blocking variant of :func:`queue_build` for synchronous pipelines."""
    return run_sync(
        queue_build(
            connection, config, log_sink=log_sink, poller_config=poller_config
        )
    )
