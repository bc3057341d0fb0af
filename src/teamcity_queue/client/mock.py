from __future__ import annotations

import asyncio
from typing import Any, Callable

from teamcity_queue.core.constants import BuildState
from teamcity_queue.core.types import (
    BuildHandle,
    BuildStatus,
    BuildType,
    Project,
    QueueRequest,
)

StatusStep = BuildStatus | Exception


class MockTeamCityClient:
    """In-memory TeamCity for testing.

    Usage::

        mock = MockTeamCityClient()
        mock.add_build_type("Demo_CI", "CI", project_name="Demo")
        mock.script_build("101", [
            BuildStatus(id="101", state=BuildState.RUNNING, percent_complete=50),
            BuildStatus(id="101", state=BuildState.FINISHED, outcome=BuildOutcome.SUCCESS),
        ])

        queuer = BuildQueuer(mock, delay=no_delay)
        result = await queuer.run(BuildTarget(build_configuration_id="Demo_CI"))

    Scripted statuses are returned in order; the last one repeats once the
    script is exhausted. An ``Exception`` in a script is raised instead of
    returned.
    """

    def __init__(self) -> None:
        self._projects: dict[str, Project] = {}
        self._build_types: list[BuildType] = []
        self._scripts: dict[str, list[StatusStep]] = {}
        self._queue_response: BuildHandle | Exception | Callable[[QueueRequest], BuildHandle] | None = None
        self._next_build_id = 100
        self.get_build_latency: float = 0.0
        self.calls: list[tuple[str, Any]] = []

    # ------------------------------------------------------------------ #
    # Catalog and script helpers
    # ------------------------------------------------------------------ #

    def add_project(self, project_id: str, name: str) -> Project:
        project = Project(id=project_id, name=name)
        self._projects[project_id] = project
        return project

    def add_build_type(
        self,
        build_type_id: str,
        name: str,
        *,
        project_name: str,
        project_id: str | None = None,
        paused: bool = False,
    ) -> BuildType:
        pid = project_id or project_name.replace(" ", "")
        if pid not in self._projects:
            self.add_project(pid, project_name)
        build_type = BuildType(
            id=build_type_id,
            name=name,
            project_id=pid,
            project_name=project_name,
            paused=paused,
        )
        self._build_types.append(build_type)
        return build_type

    def register_queue_response(
        self,
        response: BuildHandle | Exception | Callable[[QueueRequest], BuildHandle],
    ) -> None:
        """Set what :meth:`queue_build` returns (or raises) from now on."""
        self._queue_response = response

    def script_build(self, build_id: str, steps: list[StatusStep]) -> None:
        """Queue up the responses :meth:`get_build` gives for *build_id*."""
        self._scripts[build_id] = list(steps)

    # ------------------------------------------------------------------ #
    # RemoteClient implementation
    # ------------------------------------------------------------------ #

    async def list_projects(self) -> list[Project]:
        self.calls.append(("list_projects", None))
        return list(self._projects.values())

    async def list_build_types(
        self, project_name: str | None = None
    ) -> list[BuildType]:
        self.calls.append(("list_build_types", project_name))
        if project_name is None:
            return list(self._build_types)
        # Mimic the server's case-insensitive locator match.
        wanted = project_name.lower()
        return [b for b in self._build_types if b.project_name.lower() == wanted]

    async def queue_build(self, request: QueueRequest) -> BuildHandle:
        self.calls.append(("queue_build", request))
        response = self._queue_response
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(request)
        if response is not None:
            return response
        self._next_build_id += 1
        return BuildHandle(id=str(self._next_build_id), state=BuildState.QUEUED)

    async def get_build(self, build_id: str) -> BuildStatus:
        self.calls.append(("get_build", build_id))
        if self.get_build_latency:
            await asyncio.sleep(self.get_build_latency)
        script = self._scripts.get(build_id)
        if not script:
            raise KeyError(f"MockTeamCityClient: no status scripted for build '{build_id}'")
        step = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(step, Exception):
            raise step
        return step

    # ------------------------------------------------------------------ #
    # Test helpers
    # ------------------------------------------------------------------ #

    def call_count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def assert_called(self, method: str) -> None:
        methods = [c[0] for c in self.calls]
        assert method in methods, f"Expected call to '{method}', got: {methods}"

    def assert_not_called(self, method: str) -> None:
        methods = [c[0] for c in self.calls]
        assert method not in methods, f"Unexpected call to '{method}': {methods}"

    @property
    def queued_requests(self) -> list[QueueRequest]:
        return [arg for name, arg in self.calls if name == "queue_build"]
