from __future__ import annotations

import os
from typing import Any

from pydantic import BaseModel, Field, model_validator

from teamcity_queue.core.constants import (
    DEFAULT_MAX_UNKNOWN_RETRIES,
    DEFAULT_POLL_INTERVAL,
)
from teamcity_queue.core.exceptions import ValidationError
from teamcity_queue.core.types import BuildTarget


class TeamCityConfig(BaseModel):
    """Connection details for a TeamCity server.

    Authentication uses ``token`` as a bearer token when set, otherwise
    HTTP basic auth with ``username`` / ``password``.
    """

    base_url: str = "http://localhost:8111"
    username: str | None = None
    password: str | None = None
    token: str | None = None
    timeout: float = Field(default=30.0, ge=1, le=600)
    verify_ssl: bool = True
    extra_headers: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_env(cls) -> TeamCityConfig:
        """Create a :class:`TeamCityConfig` from ``TEAMCITY_*`` environment variables.

        Reads the following env vars (all optional):

        * ``TEAMCITY_URL`` → ``base_url``
        * ``TEAMCITY_USERNAME`` / ``TEAMCITY_PASSWORD`` → basic auth
        * ``TEAMCITY_TOKEN`` → ``token``
        * ``TEAMCITY_TIMEOUT`` → ``timeout`` (seconds, 1–600)

        Any variable that is not set or is empty is left at its default value.
        """
        kwargs: dict[str, Any] = {}

        env_map = {
            "TEAMCITY_URL": "base_url",
            "TEAMCITY_USERNAME": "username",
            "TEAMCITY_PASSWORD": "password",
            "TEAMCITY_TOKEN": "token",
        }
        for var, field in env_map.items():
            value = os.environ.get(var)
            if value:
                kwargs[field] = value

        timeout_str = os.environ.get("TEAMCITY_TIMEOUT")
        if timeout_str:
            kwargs["timeout"] = float(timeout_str)

        return cls(**kwargs)


class PollerConfig(BaseModel):
    """Polling behaviour while waiting for a build.

    Attributes:
        poll_interval: Seconds between two status reads.
        max_unknown_retries: Consecutive unreadable status responses
            tolerated before giving up with a transport error.
    """

    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL, ge=0.0, le=300.0)
    max_unknown_retries: int = Field(default=DEFAULT_MAX_UNKNOWN_RETRIES, ge=0, le=50)


class QueueBuildConfig(BaseModel):
    """Inputs of a single queue-build operation.

    Either ``build_configuration_id`` or both ``project_name`` and
    ``build_configuration_name`` must be given.

    Raises:
        ValidationError: At construction when no resolvable target is given.
    """

    project_name: str | None = None
    build_configuration_name: str | None = None
    build_configuration_id: str | None = None
    branch_name: str | None = None
    additional_parameters: str | None = None
    """Extra TeamCity API parameters in query string format,
    e.g. ``"&name=agent&value=linux-01"``."""
    wait_for_completion: bool = True
    log_progress: bool = False

    @model_validator(mode="after")
    def _check_target(self) -> QueueBuildConfig:
        if self.build_configuration_id:
            return self
        if not self.project_name or not self.build_configuration_name:
            raise ValidationError(
                "Either build_configuration_id or both project_name and "
                "build_configuration_name must be specified.",
                code="missing_target",
            )
        return self

    def to_target(self) -> BuildTarget:
        return BuildTarget(
            project_name=self.project_name,
            build_configuration_name=self.build_configuration_name,
            build_configuration_id=self.build_configuration_id,
        )
