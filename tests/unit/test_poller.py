"""Tests for trigger/poller.py — CompletionPoller and snapshot derivation."""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

import pytest

from teamcity_queue.client.mock import MockTeamCityClient
from teamcity_queue.core.config import PollerConfig
from teamcity_queue.core.constants import BuildOutcome, BuildState
from teamcity_queue.core.exceptions import (
    AuthenticationError,
    CancelledError,
    RemoteRejectedError,
    TransportError,
)
from teamcity_queue.core.types import BuildHandle, BuildStatus, ProgressSnapshot
from teamcity_queue.trigger.poller import CompletionPoller, snapshot_for

Delay = Callable[[float], Awaitable[None]]


def _queued(number: str | None = None, wait_reason: str | None = None) -> BuildStatus:
    return BuildStatus(id="101", number=number, state=BuildState.QUEUED, wait_reason=wait_reason)


def _running(percent: int | None, number: str | None = "42") -> BuildStatus:
    return BuildStatus(id="101", number=number, state=BuildState.RUNNING, percent_complete=percent)


def _finished(outcome: BuildOutcome = BuildOutcome.SUCCESS, number: str | None = "42") -> BuildStatus:
    return BuildStatus(
        id="101", number=number, state=BuildState.FINISHED, outcome=outcome, status_text="done"
    )


def _unknown() -> BuildStatus:
    return BuildStatus(id="101", state=BuildState.UNKNOWN)


def _poller(client: MockTeamCityClient, delay: Delay, sink: Any = None, **config: Any) -> CompletionPoller:
    return CompletionPoller(client, sink, PollerConfig(**config), delay)


HANDLE = BuildHandle(id="101")


# ---------------------------------------------------------------------------
# snapshot_for
# ---------------------------------------------------------------------------


class TestSnapshotFor:
    def test_queued_is_indeterminate(self) -> None:
        snap = snapshot_for(_queued(wait_reason="No agents"), None)
        assert snap.percent_complete is None
        assert snap.message == "Build is queued (No agents)"

    def test_running_uses_server_percentage(self) -> None:
        snap = snapshot_for(_running(40), "42")
        assert snap.percent_complete == 40
        assert snap.message.startswith("Build #42 is running")

    def test_running_percentage_is_clamped(self) -> None:
        assert snapshot_for(_running(140), "42").percent_complete == 100
        assert snapshot_for(_running(-5), "42").percent_complete == 0

    def test_finished_is_complete(self) -> None:
        snap = snapshot_for(_finished(BuildOutcome.FAILURE), "42")
        assert snap.percent_complete == 100
        assert snap.message == "Build #42 finished: failure"

    def test_unknown_keeps_previous_percentage(self) -> None:
        previous = ProgressSnapshot(percent_complete=60, message="running")
        assert snapshot_for(None, "42", previous).percent_complete == 60
        assert snapshot_for(_unknown(), "42", previous).percent_complete == 60
        assert snapshot_for(_unknown(), "42").percent_complete is None


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


async def test_queued_running_finished_in_order(no_delay: Delay) -> None:
    mock = MockTeamCityClient()
    mock.script_build("101", [_queued(), _running(10), _running(60), _finished()])
    snapshots: list[ProgressSnapshot] = []

    final = await _poller(mock, no_delay).poll_until_done(HANDLE, on_progress=snapshots.append)

    assert final.outcome == BuildOutcome.SUCCESS
    assert final.number == "42"
    assert final.details == "done"
    assert [s.percent_complete for s in snapshots] == [None, 10, 60, 100]
    assert mock.call_count("get_build") == 4


async def test_progress_is_non_decreasing_when_server_reports_increasing(no_delay: Delay) -> None:
    mock = MockTeamCityClient()
    mock.script_build("101", [_running(5), _running(25), _running(25), _running(90), _finished()])
    snapshots: list[ProgressSnapshot] = []

    await _poller(mock, no_delay).poll_until_done(HANDLE, on_progress=snapshots.append)

    percents = [s.percent_complete for s in snapshots]
    assert percents == sorted(percents)
    assert len(snapshots) == mock.call_count("get_build")


@pytest.mark.parametrize(
    "outcome",
    [BuildOutcome.SUCCESS, BuildOutcome.FAILURE, BuildOutcome.ERROR, BuildOutcome.CANCELLED],
)
async def test_every_outcome_is_terminal(no_delay: Delay, outcome: BuildOutcome) -> None:
    mock = MockTeamCityClient()
    mock.script_build("101", [_finished(outcome)])
    final = await _poller(mock, no_delay).poll_until_done(HANDLE)
    assert final.outcome == outcome
    assert mock.call_count("get_build") == 1


async def test_number_is_recorded_once_assigned(no_delay: Delay) -> None:
    mock = MockTeamCityClient()
    mock.script_build("101", [_queued(), _running(50, number="7"), _finished(number=None)])
    final = await _poller(mock, no_delay).poll_until_done(BuildHandle(id="101"))
    assert final.number == "7"


async def test_handle_number_is_kept(no_delay: Delay) -> None:
    mock = MockTeamCityClient()
    mock.script_build("101", [_finished(number=None)])
    final = await _poller(mock, no_delay).poll_until_done(BuildHandle(id="101", number="3"))
    assert final.number == "3"


async def test_waits_poll_interval_between_polls() -> None:
    waits: list[float] = []

    async def _record(seconds: float) -> None:
        waits.append(seconds)

    mock = MockTeamCityClient()
    mock.script_build("101", [_queued(), _running(50), _finished()])
    await _poller(mock, _record, poll_interval=5.0).poll_until_done(HANDLE)
    assert waits == [5.0, 5.0]


# ---------------------------------------------------------------------------
# Unknown responses and transport errors
# ---------------------------------------------------------------------------


async def test_unknown_below_bound_recovers(no_delay: Delay, sink: Any) -> None:
    mock = MockTeamCityClient()
    mock.script_build("101", [_unknown(), _unknown(), _unknown(), _running(50), _finished()])

    final = await _poller(mock, no_delay, sink, max_unknown_retries=3).poll_until_done(HANDLE)

    assert final.outcome == BuildOutcome.SUCCESS
    assert len(sink.warnings) == 3
    assert "retry 1/3" in sink.warnings[0]


async def test_unknown_beyond_bound_raises_transport_error(no_delay: Delay, sink: Any) -> None:
    mock = MockTeamCityClient()
    mock.script_build("101", [_unknown()])

    with pytest.raises(TransportError) as exc_info:
        await _poller(mock, no_delay, sink, max_unknown_retries=3).poll_until_done(HANDLE)

    assert exc_info.value.code == "status_unavailable"
    assert mock.call_count("get_build") == 4


async def test_failure_count_resets_after_good_read(no_delay: Delay) -> None:
    mock = MockTeamCityClient()
    mock.script_build(
        "101",
        [_unknown(), _unknown(), _running(10), _unknown(), _unknown(), _finished()],
    )
    final = await _poller(mock, no_delay, max_unknown_retries=2).poll_until_done(HANDLE)
    assert final.outcome == BuildOutcome.SUCCESS


async def test_zero_retries_fails_on_first_unknown(no_delay: Delay) -> None:
    mock = MockTeamCityClient()
    mock.script_build("101", [_unknown(), _finished()])
    with pytest.raises(TransportError):
        await _poller(mock, no_delay, max_unknown_retries=0).poll_until_done(HANDLE)


async def test_transient_transport_error_is_retried(no_delay: Delay) -> None:
    mock = MockTeamCityClient()
    mock.script_build("101", [TransportError("503"), _finished()])
    final = await _poller(mock, no_delay).poll_until_done(HANDLE)
    assert final.outcome == BuildOutcome.SUCCESS


async def test_persistent_transport_error_chains_cause(no_delay: Delay) -> None:
    mock = MockTeamCityClient()
    mock.script_build("101", [TransportError("connection refused")])
    with pytest.raises(TransportError) as exc_info:
        await _poller(mock, no_delay, max_unknown_retries=1).poll_until_done(HANDLE)
    assert str(exc_info.value.__cause__) == "connection refused"


@pytest.mark.parametrize(
    "error",
    [AuthenticationError("token expired"), RemoteRejectedError("build not found")],
)
async def test_non_retryable_errors_propagate_immediately(no_delay: Delay, error: Exception) -> None:
    mock = MockTeamCityClient()
    mock.script_build("101", [error, _finished()])
    with pytest.raises(type(error)):
        await _poller(mock, no_delay).poll_until_done(HANDLE)
    assert mock.call_count("get_build") == 1


# ---------------------------------------------------------------------------
# Progress callback
# ---------------------------------------------------------------------------


async def test_failing_callback_does_not_abort_polling(no_delay: Delay) -> None:
    mock = MockTeamCityClient()
    mock.script_build("101", [_running(10), _finished()])

    def _explode(snapshot: ProgressSnapshot) -> None:
        raise RuntimeError("UI went away")

    final = await _poller(mock, no_delay).poll_until_done(HANDLE, on_progress=_explode)
    assert final.outcome == BuildOutcome.SUCCESS
    assert mock.call_count("get_build") == 2


async def test_async_callback_is_awaited(no_delay: Delay) -> None:
    mock = MockTeamCityClient()
    mock.script_build("101", [_running(10), _finished()])
    seen: list[int | None] = []

    async def _collect(snapshot: ProgressSnapshot) -> None:
        seen.append(snapshot.percent_complete)

    await _poller(mock, no_delay).poll_until_done(HANDLE, on_progress=_collect)
    assert seen == [10, 100]


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


async def test_cancel_during_delay_stops_promptly() -> None:
    mock = MockTeamCityClient()
    mock.script_build("101", [_running(10)])
    cancel = asyncio.Event()
    polled = asyncio.Event()

    poller = CompletionPoller(mock, config=PollerConfig(poll_interval=30.0))
    task = asyncio.create_task(
        poller.poll_until_done(HANDLE, cancel_event=cancel, on_progress=lambda s: polled.set())
    )
    await asyncio.wait_for(polled.wait(), timeout=1.0)
    cancel.set()

    with pytest.raises(CancelledError):
        await asyncio.wait_for(task, timeout=1.0)
    assert mock.call_count("get_build") == 1


async def test_cancel_during_fetch_abandons_request() -> None:
    mock = MockTeamCityClient()
    mock.script_build("101", [_running(10)])
    mock.get_build_latency = 30.0
    cancel = asyncio.Event()

    poller = CompletionPoller(mock, config=PollerConfig(poll_interval=0.0))
    task = asyncio.create_task(poller.poll_until_done(HANDLE, cancel_event=cancel))
    await asyncio.sleep(0.01)
    cancel.set()

    with pytest.raises(CancelledError):
        await asyncio.wait_for(task, timeout=1.0)
    assert mock.call_count("get_build") == 1


async def test_already_cancelled_never_fetches(no_delay: Delay) -> None:
    mock = MockTeamCityClient()
    mock.script_build("101", [_finished()])
    cancel = asyncio.Event()
    cancel.set()

    with pytest.raises(CancelledError):
        await _poller(mock, no_delay).poll_until_done(HANDLE, cancel_event=cancel)
    assert mock.call_count("get_build") == 0


async def test_cancel_abandons_slow_async_callback() -> None:
    mock = MockTeamCityClient()
    mock.script_build("101", [_running(10)])
    cancel = asyncio.Event()
    entered = asyncio.Event()
    completed: list[ProgressSnapshot] = []

    async def _slow_callback(snapshot: ProgressSnapshot) -> None:
        entered.set()
        await asyncio.sleep(5)
        completed.append(snapshot)

    poller = CompletionPoller(mock, config=PollerConfig(poll_interval=0.01))
    task = asyncio.create_task(
        poller.poll_until_done(HANDLE, cancel_event=cancel, on_progress=_slow_callback)
    )
    await asyncio.wait_for(entered.wait(), timeout=1.0)
    cancel.set()

    with pytest.raises(CancelledError):
        await asyncio.wait_for(task, timeout=0.5)
    assert completed == []
    assert mock.call_count("get_build") == 1
