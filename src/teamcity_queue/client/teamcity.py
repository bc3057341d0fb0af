"""TeamCity client — projects, build configurations, and the build queue."""

from __future__ import annotations

import base64
import re
from typing import Any

import httpx
import structlog

from teamcity_queue.client.base import Connector
from teamcity_queue.core.config import TeamCityConfig
from teamcity_queue.core.constants import BuildState
from teamcity_queue.core.exceptions import (
    AuthenticationError,
    RemoteRejectedError,
    TransportError,
)
from teamcity_queue.core.types import (
    BuildHandle,
    BuildStatus,
    BuildType,
    Project,
    QueueRequest,
)

logger = structlog.get_logger(__name__)

# Characters with a meaning inside a TeamCity locator.
_LOCATOR_SPECIAL = re.compile(r"[,():]")


class TeamCityClient(Connector):
    """Client for the TeamCity REST API (``/app/rest``, JSON).

    Authentication uses a bearer access token when ``token`` is set,
    otherwise Basic auth with ``username`` / ``password``.

    Usage::

        config = TeamCityConfig(base_url="https://ci.example.com", token="eyJ...")
        async with TeamCityClient(config) as tc:
            build_types = await tc.list_build_types(project_name="Demo")
            handle = await tc.queue_build(QueueRequest(build_configuration_id="Demo_CI"))
    """

    def __init__(self, config: TeamCityConfig) -> None:
        super().__init__(config)

    def _build_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            **self._config.extra_headers,
        }
        if self._config.token:
            headers["Authorization"] = f"Bearer {self._config.token}"
        elif self._config.username and self._config.password:
            creds = f"{self._config.username}:{self._config.password}"
            b64 = base64.b64encode(creds.encode()).decode("ascii")
            headers["Authorization"] = f"Basic {b64}"
        return headers

    async def list_projects(self) -> list[Project]:
        """List all projects visible to the authenticated user."""
        resp = await self._request(
            "GET",
            "/app/rest/projects",
            params={"fields": "project(id,name,parentProjectId)"},
        )
        data = self._decode(resp)
        return [Project.from_teamcity(p) for p in data.get("project", [])]

    async def list_build_types(
        self, project_name: str | None = None
    ) -> list[BuildType]:
        """List build configurations, optionally narrowed to one project.

        TeamCity matches locator names loosely, so callers still have to
        compare ``project_name`` themselves. A project locator that matches
        nothing is answered with HTTP 404 by the server; that yields an
        empty list.

        Args:
            project_name: If provided, ask the server for build
                configurations of this project and its subprojects only.
        """
        params: dict[str, str] = {
            "fields": "buildType(id,name,projectId,projectName,paused)",
        }
        if project_name and not _LOCATOR_SPECIAL.search(project_name):
            params["locator"] = f"affectedProject:(name:{project_name})"
        try:
            resp = await self._request("GET", "/app/rest/buildTypes", params=params)
        except RemoteRejectedError as exc:
            if "locator" not in params or exc.status_code != 404:
                raise
            logger.debug("client.project_locator_unmatched", project_name=project_name)
            return []
        data = self._decode(resp)
        return [BuildType.from_teamcity(b) for b in data.get("buildType", [])]

    async def queue_build(self, request: QueueRequest) -> BuildHandle:
        """Add a build to the queue.

        ``request.additional_parameters`` become the query string in
        order, each segment written back as the caller gave it (no
        re-encoding; a name without a value stays without ``=``).

        Returns:
            Handle of the queued build; ``number`` is usually still empty.
        """
        query = "&".join(
            name if value is None else f"{name}={value}"
            for name, value in request.additional_parameters
        )
        url = f"/app/rest/buildQueue?{query}" if query else "/app/rest/buildQueue"
        resp = await self._request("POST", url, json=request.to_teamcity())
        data = self._decode(resp)
        if data.get("id") in (None, ""):
            raise TransportError(
                "TeamCity accepted the build but returned no build id.",
                code="malformed_response",
                details={"body": resp.text[:500]},
            )
        number = data.get("number")
        return BuildHandle(
            id=str(data["id"]),
            number=str(number) if number else None,
            state=BuildState.QUEUED,
            web_url=data.get("webUrl"),
        )

    async def get_build(self, build_id: str) -> BuildStatus:
        """Fetch the current status of a queued, running or finished build.

        A body that is not valid JSON yields a status with
        ``state=UNKNOWN`` rather than an exception.
        """
        resp = await self._request("GET", f"/app/rest/builds/id:{build_id}")
        try:
            payload = resp.json()
        except ValueError:
            logger.warning("client.malformed_build_status", build_id=build_id)
            return BuildStatus(id=build_id)
        return BuildStatus.from_teamcity(build_id, payload)

    # ------------------------------------------------------------------ #
    # HTTP plumbing
    # ------------------------------------------------------------------ #

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Any = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        client = self._ensure_connected()
        try:
            resp = await client.request(method, url, params=params, json=json)
        except httpx.TimeoutException as exc:
            raise TransportError(
                f"Timed out calling TeamCity {method} {url}",
                code="timeout",
                details={"url": url},
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(
                f"Could not reach TeamCity {method} {url}: {exc}",
                code="connection_error",
                details={"url": url},
            ) from exc
        self._raise_for_status(resp, method, url)
        return resp

    @staticmethod
    def _raise_for_status(resp: httpx.Response, method: str, url: str) -> None:
        status = resp.status_code
        if resp.is_success:
            return
        details = {"url": url, "body": resp.text[:500]}
        if status in (401, 403):
            raise AuthenticationError(
                f"TeamCity refused credentials for {method} {url} (HTTP {status})",
                code="unauthorized",
                details=details,
                status_code=status,
            )
        if 400 <= status < 500:
            raise RemoteRejectedError(
                f"TeamCity rejected {method} {url} (HTTP {status}): {resp.text[:200]}",
                code="rejected",
                details=details,
                status_code=status,
            )
        raise TransportError(
            f"TeamCity returned HTTP {status} for {method} {url}",
            code="server_error",
            details=details,
            status_code=status,
        )

    @staticmethod
    def _decode(resp: httpx.Response) -> dict[str, Any]:
        try:
            data = resp.json()
        except ValueError as exc:
            raise TransportError(
                "TeamCity returned a body that is not JSON.",
                code="malformed_response",
                details={"body": resp.text[:500]},
            ) from exc
        if not isinstance(data, dict):
            raise TransportError(
                "TeamCity returned an unexpected JSON document.",
                code="malformed_response",
                details={"body": resp.text[:500]},
            )
        return data
