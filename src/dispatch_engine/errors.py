"""Error taxonomy shared by the matching, scheduling and assignment services."""

from __future__ import annotations

from fastapi import status


class DispatchError(Exception):
    """Base class for failures the API reports to callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR


class ValidationError(DispatchError):
    """Malformed input, rejected before any state is read."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthorizationError(DispatchError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(DispatchError):
    status_code = status.HTTP_404_NOT_FOUND


class ConcurrencyConflict(DispatchError):
    """A precondition no longer holds at commit time. Refresh and retry."""

    status_code = status.HTTP_409_CONFLICT


class UpstreamUnavailable(DispatchError):
    """The driver/trip store could not be reached."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
