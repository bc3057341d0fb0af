"""Completion poller — follows a queued build until it finishes."""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable

import structlog

from teamcity_queue.client.base import RemoteClient
from teamcity_queue.core.config import PollerConfig
from teamcity_queue.core.constants import BuildState
from teamcity_queue.core.exceptions import CancelledError, TransportError
from teamcity_queue.core.types import BuildHandle, BuildStatus, FinalStatus, ProgressSnapshot
from teamcity_queue.trigger.sinks import LogSink, StructlogLogSink
from teamcity_queue.utils.async_helpers import wait_or_cancel

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[ProgressSnapshot], Any]
DelayFn = Callable[[float], Awaitable[Any]]


def snapshot_for(
    status: BuildStatus | None,
    number: str | None,
    previous: ProgressSnapshot | None = None,
) -> ProgressSnapshot:
    """Derive the progress snapshot shown after a poll.

    *status* is ``None`` (or ``UNKNOWN``) when the read failed; the last
    known percentage is kept in that case.
    """
    label = f"Build #{number}" if number else "Build"
    if status is None or status.state == BuildState.UNKNOWN:
        return ProgressSnapshot(
            percent_complete=previous.percent_complete if previous else None,
            message=f"{label}: status unavailable, retrying",
        )
    if status.state == BuildState.QUEUED:
        message = f"{label} is queued"
        if status.wait_reason:
            message += f" ({status.wait_reason})"
        return ProgressSnapshot(percent_complete=None, message=message)
    if status.state == BuildState.RUNNING:
        percent = status.percent_complete
        if percent is not None:
            percent = max(0, min(100, percent))
        message = f"{label} is running"
        if status.status_text:
            message += f": {status.status_text}"
        return ProgressSnapshot(percent_complete=percent, message=message)
    return ProgressSnapshot(
        percent_complete=100,
        message=f"{label} finished: {status.outcome}",
    )


class CompletionPoller:
    """Polls TeamCity for a build until it reaches a terminal state.

    The delay between polls and the fetch itself both race *cancel_event*,
    so a cancel request is honoured within one poll interval. Unreadable
    responses are retried up to ``config.max_unknown_retries`` times in a
    row before a :class:`TransportError` is raised.

    Example::

        poller = CompletionPoller(client, config=PollerConfig(poll_interval=5))
        final = await poller.poll_until_done(handle, cancel_event=stop)
    """

    def __init__(
        self,
        client: RemoteClient,
        log_sink: LogSink | None = None,
        config: PollerConfig | None = None,
        delay: DelayFn = asyncio.sleep,
    ) -> None:
        self._client = client
        self._log_sink = log_sink or StructlogLogSink()
        self._config = config or PollerConfig()
        self._delay = delay

    async def poll_until_done(
        self,
        handle: BuildHandle,
        *,
        cancel_event: asyncio.Event | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> FinalStatus:
        """Poll *handle* until TeamCity reports it finished.

        Args:
            handle: The build returned by the submitter.
            cancel_event: Set it to stop polling; the remote build keeps
                running.
            on_progress: Called with a fresh snapshot after every poll.
                May be sync or async; exceptions it raises are logged and
                otherwise ignored. An async callback still in progress
                is abandoned when *cancel_event* is set.

        Returns:
            The final number and outcome of the build.

        Raises:
            CancelledError: *cancel_event* was set.
            TransportError: Too many consecutive unreadable status reads.
            AuthenticationError: Credentials stopped working mid-poll.
            RemoteRejectedError: TeamCity no longer knows the build.
        """
        number = handle.number
        snapshot: ProgressSnapshot | None = None
        failures = 0
        max_failures = self._config.max_unknown_retries

        while True:
            last_error: TransportError | None = None
            try:
                status: BuildStatus | None = await wait_or_cancel(
                    self._client.get_build(handle.id), cancel_event
                )
            except TransportError as exc:
                if not exc.is_retryable:
                    raise
                status = None
                last_error = exc

            if status is None or status.state == BuildState.UNKNOWN:
                failures += 1
                if failures > max_failures:
                    logger.error(
                        "poller.gave_up",
                        build_id=handle.id,
                        failures=failures,
                    )
                    raise TransportError(
                        f"Could not read the status of build {handle.id} after "
                        f"{failures} attempt(s).",
                        code="status_unavailable",
                        details={"build_id": handle.id, "failures": failures},
                    ) from last_error
                reason = str(last_error) if last_error else "unrecognised response"
                self._log_sink.warning(
                    f"Status of build {handle.id} unavailable ({reason}); "
                    f"retry {failures}/{max_failures}."
                )
            else:
                failures = 0
                if not number and status.number:
                    number = status.number

            snapshot = snapshot_for(status, number, snapshot)
            await self._notify(on_progress, snapshot, cancel_event)

            if status is not None and status.is_finished:
                assert status.outcome is not None  # noqa: S101
                logger.info(
                    "build.finished",
                    build_id=handle.id,
                    number=number,
                    outcome=str(status.outcome),
                )
                return FinalStatus(
                    build_id=handle.id,
                    number=number or "",
                    outcome=status.outcome,
                    details=status.status_text,
                    web_url=status.web_url or handle.web_url,
                )

            await wait_or_cancel(self._delay(self._config.poll_interval), cancel_event)

    async def _notify(
        self,
        on_progress: ProgressCallback | None,
        snapshot: ProgressSnapshot,
        cancel_event: asyncio.Event | None,
    ) -> None:
        if on_progress is None:
            return
        try:
            result = on_progress(snapshot)
            if inspect.isawaitable(result):
                await wait_or_cancel(result, cancel_event)
        except CancelledError:
            raise
        except Exception as exc:
            logger.warning("poller.progress_callback_failed", error=str(exc))
