from __future__ import annotations

from fieldshield.security.decisions import Decision


class AuthorizationError(Exception):
    """Base authorization error for field guard failures."""


class CustomError(AuthorizationError):
    """Raised by a predicate to deny access with an application-supplied message."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotAuthorisedError(AuthorizationError):
    """Raised in place of a field resolver when the field's policy does not allow it."""

    def __init__(self, message: str, decision: Decision | None = None) -> None:
        self.message = message
        self.decision = decision
        super().__init__(message)
