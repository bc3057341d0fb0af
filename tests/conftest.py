"""Shared test fixtures."""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import pytest

from teamcity_queue.client.mock import MockTeamCityClient


class RecordingSink:
    """Log sink that keeps every message for assertions."""

    def __init__(self) -> None:
        self.infos: list[str] = []
        self.warnings: list[str] = []

    def info(self, message: str) -> None:
        self.infos.append(message)

    def warning(self, message: str) -> None:
        self.warnings.append(message)


async def _no_delay(_: float) -> None:
    await asyncio.sleep(0)


@pytest.fixture
def mock_client() -> MockTeamCityClient:
    mock = MockTeamCityClient()
    mock.add_build_type("Demo_CI", "CI", project_name="Demo")
    mock.add_build_type("Demo_Nightly", "Nightly", project_name="Demo")
    mock.add_build_type("Tools_CI", "CI", project_name="Tools")
    return mock


@pytest.fixture
def no_delay() -> Callable[[float], Awaitable[None]]:
    """Delay function that only yields to the event loop."""
    return _no_delay


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
