"""Put builds on the TeamCity queue."""

from __future__ import annotations

import re

import structlog

from teamcity_queue.client.base import RemoteClient
from teamcity_queue.core.exceptions import ValidationError
from teamcity_queue.core.types import BuildHandle, QueueRequest

logger = structlog.get_logger(__name__)

# Whitespace, control characters and fragment markers break the request URL.
_UNSAFE_QUERY_CHARS = re.compile(r"[\s\x00-\x1f\x7f#]")


def parse_additional_parameters(raw: str | None) -> list[tuple[str, str | None]]:
    """Split a raw query string into ordered ``(name, value)`` pairs.

    Leading ``?`` / ``&`` and empty segments are ignored. Everything else
    is kept as written, percent-escapes and ``+`` included, so the request
    carries the caller's text verbatim. A segment without ``=`` gets
    ``None`` as its value. TeamCity decides what it accepts.

    Raises:
        ValidationError: *raw* contains characters that would corrupt the
            request URL.
    """
    if not raw:
        return []
    match = _UNSAFE_QUERY_CHARS.search(raw)
    if match:
        raise ValidationError(
            f"Additional parameters contain an invalid character {match.group()!r} "
            f"at position {match.start()}.",
            code="invalid_additional_parameters",
            details={"additional_parameters": raw},
        )
    pairs: list[tuple[str, str | None]] = []
    for segment in raw.lstrip("?&").split("&"):
        if not segment:
            continue
        name, sep, value = segment.partition("=")
        pairs.append((name, value if sep else None))
    return pairs


class BuildSubmitter:
    """Builds a :class:`QueueRequest` and hands it to TeamCity."""

    def __init__(self, client: RemoteClient) -> None:
        self._client = client

    async def submit(
        self,
        build_configuration_id: str,
        branch_name: str | None = None,
        additional_parameters: str | None = None,
    ) -> BuildHandle:
        """Queue a build and return its handle.

        An empty or blank *branch_name* sends no branch at all, so TeamCity
        uses the configuration's default branch.

        Raises:
            ValidationError: Missing configuration id or unusable parameters.
            RemoteRejectedError: TeamCity refused to queue the build.
            TransportError: TeamCity could not be reached.
        """
        if not build_configuration_id:
            raise ValidationError(
                "A build configuration id is required to queue a build.",
                code="missing_build_configuration_id",
            )

        branch = branch_name.strip() if branch_name else ""
        request = QueueRequest(
            build_configuration_id=build_configuration_id,
            branch_name=branch or None,
            additional_parameters=parse_additional_parameters(additional_parameters),
        )

        handle = await self._client.queue_build(request)
        logger.info(
            "build.queued",
            build_configuration_id=build_configuration_id,
            branch_name=request.branch_name,
            build_id=handle.id,
        )
        return handle
