"""
Domain errors raised by the catalog and entry services.

Routes translate them to HTTP responses in main.py; integrations never
raise these past their boundary, they return typed results instead.
"""
from __future__ import annotations


class DomainError(Exception):
    """Base class for expected, user-facing failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    """Invalid input or a violated entry invariant. Never retried."""

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field


class NotFoundError(DomainError):
    pass


class PermissionDenied(DomainError):
    pass


class AuthenticationRequired(DomainError):
    pass


class ExternalCollaboratorError(DomainError):
    """An external call whose result is the whole point of the request failed."""

    def __init__(self, message: str, *, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable
