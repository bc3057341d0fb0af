"""TeamCity REST clients: the httpx one and an in-memory one for tests."""

from __future__ import annotations

from teamcity_queue.client.base import Connector, RemoteClient
from teamcity_queue.client.mock import MockTeamCityClient
from teamcity_queue.client.teamcity import TeamCityClient

__all__ = [
    "Connector",
    "RemoteClient",
    "TeamCityClient",
    "MockTeamCityClient",
]
