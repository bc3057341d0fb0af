"""Resolve project and build configuration names to a TeamCity id."""

from __future__ import annotations

import structlog

from teamcity_queue.client.base import RemoteClient
from teamcity_queue.core.exceptions import (
    AmbiguousTargetError,
    NotFoundError,
    ValidationError,
)
from teamcity_queue.core.types import BuildTarget

logger = structlog.get_logger(__name__)


class TargetResolver:
    """Turns a :class:`BuildTarget` into a TeamCity build configuration id.

    Name matching is exact and case-sensitive on both the project and the
    configuration name. Near matches are never picked.
    """

    def __init__(self, client: RemoteClient) -> None:
        self._client = client

    async def resolve(self, target: BuildTarget) -> str:
        """Return the build configuration id for *target*.

        Raises:
            ValidationError: Neither an id nor both names were given.
            NotFoundError: No project, or no configuration in it, matches.
            AmbiguousTargetError: More than one configuration matches.
            TransportError: The catalog could not be read.
        """
        if target.build_configuration_id:
            return target.build_configuration_id

        project_name = target.project_name
        config_name = target.build_configuration_name
        if not project_name or not config_name:
            raise ValidationError(
                "Both project name and build configuration name are required "
                "when no build configuration id is given.",
                code="missing_target",
                details={"project_name": project_name, "build_configuration_name": config_name},
            )

        build_types = await self._client.list_build_types(project_name=project_name)
        in_project = [b for b in build_types if b.project_name == project_name]
        if not in_project:
            projects = await self._client.list_projects()
            if not any(p.name == project_name for p in projects):
                raise NotFoundError(
                    f"Project '{project_name}' was not found in TeamCity.",
                    code="project_not_found",
                    details={"project_name": project_name},
                )
            raise NotFoundError(
                f"Project '{project_name}' has no build configurations.",
                code="build_configuration_not_found",
                details={
                    "project_name": project_name,
                    "build_configuration_name": config_name,
                    "available": [],
                },
            )

        matches = [b for b in in_project if b.name == config_name]
        if not matches:
            raise NotFoundError(
                f"Build configuration '{config_name}' was not found in project "
                f"'{project_name}'.",
                code="build_configuration_not_found",
                details={
                    "project_name": project_name,
                    "build_configuration_name": config_name,
                    "available": [b.name for b in in_project],
                },
            )
        if len(matches) > 1:
            raise AmbiguousTargetError(
                f"Build configuration '{config_name}' in project '{project_name}' "
                f"matches {len(matches)} configurations; use a build configuration id.",
                code="ambiguous_target",
                details={"candidates": [b.id for b in matches]},
            )

        build_type_id = matches[0].id
        logger.debug(
            "resolver.resolved",
            project_name=project_name,
            build_configuration_name=config_name,
            build_configuration_id=build_type_id,
        )
        return build_type_id
