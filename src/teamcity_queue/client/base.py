"""Base classes for TeamCity REST clients."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Protocol, runtime_checkable

import httpx
import structlog

from teamcity_queue.core.config import TeamCityConfig
from teamcity_queue.core.types import BuildHandle, BuildStatus, BuildType, Project, QueueRequest

logger = structlog.get_logger(__name__)


@runtime_checkable
class RemoteClient(Protocol):
    """Structural type for anything that can talk to a TeamCity server.

    The resolver, submitter and poller accept this Protocol, so they work
    with :class:`~teamcity_queue.client.teamcity.TeamCityClient`,
    :class:`~teamcity_queue.client.mock.MockTeamCityClient` or any other
    backend.
    """

    async def list_projects(self) -> list[Project]: ...

    async def list_build_types(
        self, project_name: str | None = None
    ) -> list[BuildType]: ...

    async def queue_build(self, request: QueueRequest) -> BuildHandle: ...

    async def get_build(self, build_id: str) -> BuildStatus: ...


class Connector(ABC):
    """Owns an :class:`httpx.AsyncClient` configured from a :class:`TeamCityConfig`.

    Subclasses implement :meth:`_build_headers`.

    Usage::

        async with TeamCityClient(TeamCityConfig.from_env()) as tc:
            projects = await tc.list_projects()
    """

    def __init__(self, config: TeamCityConfig) -> None:
        self._config = config
        self._client: httpx.AsyncClient | None = None

    @property
    def config(self) -> TeamCityConfig:
        """Return the connection configuration."""
        return self._config

    async def connect(self) -> None:
        """Open the underlying HTTP client."""
        base_url = self._config.base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=self._build_headers(),
            timeout=self._config.timeout,
            verify=self._config.verify_ssl,
        )
        logger.info(
            "client.connected",
            client=type(self).__name__,
            base_url=base_url,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("client.closed", client=type(self).__name__)

    @abstractmethod
    def _build_headers(self) -> dict[str, str]:
        """Build the default headers for every request."""
        ...

    def _ensure_connected(self) -> httpx.AsyncClient:
        """Return the HTTP client, raising if not connected."""
        if self._client is None:
            raise RuntimeError(
                f"{type(self).__name__} is not connected. Call connect() first."
            )
        return self._client

    async def __aenter__(self) -> Connector:
        await self.connect()
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()
