"""
auth/errors.py -- Error taxonomy for the session layer.

Every failure the Session Manager reports is a ServiceError subclass tagged
with an ErrorKind. The kind is transport-neutral; api/main.py owns the single
kind -> HTTP status table.

context holds structured detail (field names, user ids) for logs. Only
ValidationError's field list is ever shown to clients.

Layer rule: stdlib only.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    validation = "validation_error"
    conflict = "conflict"
    bad_credentials = "bad_credentials"
    invalid_token = "invalid_token"
    token_expired = "token_expired"
    unauthenticated = "unauthenticated"
    internal = "internal_error"


class ServiceError(Exception):
    """Base class for all classified failures."""

    kind: ErrorKind = ErrorKind.internal
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, **context: Any) -> None:
        self.message = message or self.default_message
        self.context: dict[str, Any] = context
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r}, context={self.context!r})"


class ValidationError(ServiceError):
    kind = ErrorKind.validation
    default_message = "Invalid request"


class ConflictError(ServiceError):
    kind = ErrorKind.conflict
    default_message = "User already exists"


class AuthError(ServiceError):
    """Bad credentials. Deliberately says nothing about which part was wrong."""

    kind = ErrorKind.bad_credentials
    default_message = "Invalid credentials"


class InvalidTokenError(ServiceError):
    kind = ErrorKind.invalid_token
    default_message = "Invalid refresh token"


class TokenExpiredError(InvalidTokenError):
    kind = ErrorKind.token_expired
    default_message = "Refresh token expired"


class UnauthenticatedError(ServiceError):
    kind = ErrorKind.unauthenticated
    default_message = "Access token required"


class InternalError(ServiceError):
    kind = ErrorKind.internal
    default_message = "Internal server error"
