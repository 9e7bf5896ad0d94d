"""Domain errors raised by the ledger and the engines built on it.

Each error carries the HTTP status it maps to; the global error handler
turns any :class:`LedgerError` into ``{"detail": ..., "code": ...}``.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all domain errors."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def code(self) -> str:
        return type(self).__name__


class NotAuthenticated(LedgerError):
    status_code = 401

    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(message)


class NotAuthorized(LedgerError):
    status_code = 403


class NotFound(LedgerError):
    status_code = 404


class InvalidArgument(LedgerError):
    status_code = 400


class InvariantViolation(LedgerError):
    status_code = 409


class InsufficientCredits(InvariantViolation):
    def __init__(self, message: str = "Insufficient credits") -> None:
        super().__init__(message)
