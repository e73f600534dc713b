"""Error taxonomy raised by the account service."""

from __future__ import annotations


class IdentityError(Exception):
    """Base class for failures the HTTP layer turns into JSON error bodies."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(IdentityError):
    status_code = 400


class AuthenticationError(IdentityError):
    status_code = 401


class NotFoundError(IdentityError):
    status_code = 404


class ConflictError(IdentityError):
    status_code = 409


class RateLimitedError(IdentityError):
    status_code = 429
