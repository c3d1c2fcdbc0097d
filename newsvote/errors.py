"""
Typed failures raised by the vote services.

The HTTP layer maps each class to a status code through ``status_code``;
services never build HTTP responses themselves.
"""


class VoteServiceError(Exception):
    """Base class for expected, caller-visible failures."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(VoteServiceError):
    """Referenced news item, vote or user does not exist."""

    status_code = 404


class DuplicateVote(VoteServiceError):
    """The user already holds a vote for this news item."""

    status_code = 400


class InvalidArgument(VoteServiceError):
    """Malformed vote result, thresholds or request parameters."""

    status_code = 400


class PermissionDenied(VoteServiceError):
    """Caller lacks the role or ownership required for the operation."""

    status_code = 403
