from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from teamcity_queue.core.constants import (
    TEAMCITY_STATUS_OUTCOMES,
    BuildOutcome,
    BuildState,
)


class Project(BaseModel):
    id: str
    name: str
    parent_project_id: str | None = None

    @classmethod
    def from_teamcity(cls, payload: dict[str, Any]) -> Project:
        return cls(
            id=str(payload["id"]),
            name=str(payload.get("name", "")),
            parent_project_id=payload.get("parentProjectId"),
        )


class BuildType(BaseModel):
    """A TeamCity build configuration (``buildType`` in the REST API)."""

    id: str
    name: str
    project_id: str = ""
    project_name: str = ""
    paused: bool = False

    @classmethod
    def from_teamcity(cls, payload: dict[str, Any]) -> BuildType:
        return cls(
            id=str(payload["id"]),
            name=str(payload.get("name", "")),
            project_id=str(payload.get("projectId", "")),
            project_name=str(payload.get("projectName", "")),
            paused=bool(payload.get("paused", False)),
        )


class BuildTarget(BaseModel):
    """What to build: a configuration id, or a project/configuration name pair.

    When ``build_configuration_id`` is non-empty it wins and the names are
    ignored.
    """

    project_name: str | None = None
    build_configuration_name: str | None = None
    build_configuration_id: str | None = None


class QueueRequest(BaseModel):
    """Payload asking TeamCity to schedule a new build.

    ``additional_parameters`` keeps caller order and the raw query-string
    text of each segment. A value of ``None`` marks a segment without ``=``.
    """

    build_configuration_id: str
    branch_name: str | None = None
    additional_parameters: list[tuple[str, str | None]] = Field(default_factory=list)

    def to_teamcity(self) -> dict[str, Any]:
        """Serialize to the ``POST /app/rest/buildQueue`` JSON body."""
        body: dict[str, Any] = {"buildType": {"id": self.build_configuration_id}}
        if self.branch_name:
            body["branchName"] = self.branch_name
        return body


class BuildHandle(BaseModel):
    """Identity of a queued build. ``number`` is often assigned later."""

    id: str
    number: str | None = None
    state: BuildState = BuildState.QUEUED
    web_url: str | None = None


class BuildStatus(BaseModel):
    """A single status read of a build."""

    id: str
    number: str | None = None
    state: BuildState = BuildState.UNKNOWN
    outcome: BuildOutcome | None = None
    percent_complete: int | None = None
    status_text: str | None = None
    wait_reason: str | None = None
    web_url: str | None = None

    @property
    def is_finished(self) -> bool:
        return self.state == BuildState.FINISHED and self.outcome is not None

    @classmethod
    def from_teamcity(cls, build_id: str, payload: Any) -> BuildStatus:
        """Parse a TeamCity build record.

        Anything that cannot be interpreted as a queued, running or
        finished build comes back with ``state=UNKNOWN`` instead of
        raising, so the poller can decide whether to retry.

        Args:
            build_id: The id the caller asked for; used when the payload
                does not carry one.
            payload: Decoded JSON body of ``GET /app/rest/builds/id:<id>``.
        """
        if not isinstance(payload, dict):
            return cls(id=build_id)

        raw_state = payload.get("state")
        try:
            state = BuildState(raw_state) if isinstance(raw_state, str) else BuildState.UNKNOWN
        except ValueError:
            state = BuildState.UNKNOWN

        outcome: BuildOutcome | None = None
        if state == BuildState.FINISHED:
            if payload.get("canceledInfo"):
                outcome = BuildOutcome.CANCELLED
            else:
                outcome = TEAMCITY_STATUS_OUTCOMES.get(str(payload.get("status", "")).upper())
            if outcome is None:
                state = BuildState.UNKNOWN

        percent = payload.get("percentageComplete")
        if percent is None and isinstance(payload.get("running-info"), dict):
            percent = payload["running-info"].get("percentageComplete")
        try:
            percent_complete = int(percent) if percent is not None else None
        except (TypeError, ValueError):
            percent_complete = None

        number = payload.get("number")
        return cls(
            id=str(payload.get("id", build_id)),
            number=str(number) if number not in (None, "") else None,
            state=state,
            outcome=outcome,
            percent_complete=percent_complete,
            status_text=payload.get("statusText"),
            wait_reason=payload.get("waitReason"),
            web_url=payload.get("webUrl"),
        )


class ProgressSnapshot(BaseModel):
    """Latest progress of a build, for display.

    ``percent_complete`` is ``None`` while progress is indeterminate.
    Instances are immutable; the poller replaces the current snapshot on
    every tick.
    """

    model_config = {"frozen": True}

    percent_complete: int | None = Field(default=None, ge=0, le=100)
    message: str = ""


class FinalStatus(BaseModel):
    build_id: str
    number: str = ""
    outcome: BuildOutcome
    details: str | None = None
    web_url: str | None = None


class QueueResult(BaseModel):
    """What a queue operation hands back to the host pipeline.

    ``number`` is empty when the call did not wait and TeamCity had not
    assigned a build number yet.
    """

    build_id: str
    number: str = ""
    state: BuildState
    outcome: BuildOutcome | None = None
    details: str | None = None
    web_url: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == BuildOutcome.SUCCESS
