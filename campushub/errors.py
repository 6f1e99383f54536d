"""
Error taxonomy shared by services and routers.

Services raise these; `campushub.main` turns them into `{"ok": false, "message": ...}`
responses with the status code declared on each class.
"""

from __future__ import annotations


class CampusHubError(Exception):
    """Base class for failures reported to the caller as a result value."""

    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(CampusHubError):
    """Identity or record missing (or outside the caller's visibility)."""

    status_code = 404


class Unauthorized(CampusHubError):
    """Role or school mismatch for the requested operation."""

    status_code = 403


class Unlinked(Unauthorized):
    """The user's role requires a school (or profile) link that is absent."""


class InvalidRequest(CampusHubError):
    """Input rejected by a business rule (duplicate email, short password, ...)."""

    status_code = 422


class InvalidAmount(InvalidRequest):
    """A fee mutation would break `0 <= paid_amount <= assigned_amount`."""


class ConflictingWrite(CampusHubError):
    """A concurrent write changed the row first; surfaced, never retried."""

    status_code = 409


class UpstreamFailure(CampusHubError):
    """Data store or external service failure."""

    status_code = 502
