from __future__ import annotations

from typing import Any


class TeamCityError(Exception):
    """Base exception for all teamcity-queue errors.

    Attributes:
        code: Optional machine-readable error code (e.g. ``"project_not_found"``).
        details: Arbitrary key/value context about the error.
        status_code: HTTP status code when the error originates from a
            TeamCity response (``None`` when not applicable).
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        *,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}
        self.status_code = status_code

    @property
    def is_retryable(self) -> bool:
        """Whether the operation that raised this error can be retried."""
        return False


class ValidationError(TeamCityError):
    """Bad or missing input supplied by the caller."""


class NotFoundError(TeamCityError):
    """No project or build configuration matched the requested target."""


class AmbiguousTargetError(NotFoundError):
    """More than one build configuration matched the requested names."""


class RemoteRejectedError(TeamCityError):
    """TeamCity explicitly refused the request (paused configuration, 4xx)."""


class CancelledError(TeamCityError):
    """The caller aborted the operation through its cancel signal."""


# ---------------------------------------------------------------------------
# Transport failures
# ---------------------------------------------------------------------------


class TransportError(TeamCityError):
    """Network, protocol, or server-side (5xx) failure talking to TeamCity.

    The poller tolerates a bounded number of these in a row.
    """

    @property
    def is_retryable(self) -> bool:  # noqa: D102
        return True


class AuthenticationError(TransportError):
    """Authentication / authorisation failure (HTTP 401/403).

    Never retryable — the caller must fix credentials first.
    """

    @property
    def is_retryable(self) -> bool:  # noqa: D102
        return False
