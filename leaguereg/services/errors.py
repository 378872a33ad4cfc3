"""
Service-level exceptions. Not-found errors carry a message meant for the user.
"""
from __future__ import annotations


class NotFoundError(LookupError):
    """A referenced row does not exist."""


class TeamNotFoundError(NotFoundError):
    pass


class PaymentNotFoundError(NotFoundError):
    pass


class LeagueNotFoundError(NotFoundError):
    pass


class PermissionDeniedError(PermissionError):
    """Caller lacks the role the action needs (e.g. not an administrator)."""


class LeagueValidationError(ValueError):
    """Edited league fields are out of range."""
